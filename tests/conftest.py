import asyncio
import sys
from pathlib import Path

import httpx
import pytest

# Ensure project root is on sys.path so `import src` works when tests run from any CWD/import mode.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
PROJECT_ROOT_STR = str(PROJECT_ROOT)
if PROJECT_ROOT_STR not in sys.path:
    sys.path.insert(0, PROJECT_ROOT_STR)


class FakeUpstream:
    """
    Canned upstream responses for ``httpx.MockTransport``.

    Routes match on a URL substring, first registered route wins. Any URL
    without a route answers 503, so by default every upstream is down.
    """

    def __init__(self):
        self.routes: list[tuple[str, int, object, str]] = []
        self.calls: list[str] = []

    def add(self, fragment: str, json=None, text: str = None, status: int = 200) -> "FakeUpstream":
        self.routes.append((fragment, status, json, text))
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append(url)
        for fragment, status, body_json, body_text in self.routes:
            if fragment in url:
                if body_json is not None:
                    return httpx.Response(status, json=body_json)
                return httpx.Response(status, text=body_text or "")
        return httpx.Response(503, text="service unavailable")

    def calls_to(self, fragment: str) -> list[str]:
        return [url for url in self.calls if fragment in url]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def settings():
    from src.config import Settings

    return Settings(retry_delay_seconds=0.0)


@pytest.fixture
def ctx(settings, upstream):
    """ProxyContext wired to the fake upstream, with no retry delay."""
    from src.context import build_context

    context = build_context(settings, client=upstream.client())
    yield context
    asyncio.run(context.aclose())
