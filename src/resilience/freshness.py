"""Freshness accounting for each data domain.

DataState records, per domain, when the last successful upstream fetch
happened and how many fetches have failed in a row since. Staleness severity
follows the same ladder the health surface reports: consecutive failures
escalate to ``alert`` at 3 and ``critical`` at 5, and a domain whose last
success is older than twice its cache TTL is at least a ``warning``.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

SEVERITY_ORDER = ["healthy", "warning", "alert", "critical"]


@dataclass
class DomainState:
    domain: str
    last_success_at: Optional[datetime] = None
    consecutive_errors: int = 0
    total_successes: int = 0
    total_errors: int = 0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None


class DataState:
    """Per-domain fetch bookkeeping. One instance per process, never persisted."""

    def __init__(self, domains: Iterable[str]):
        self._domains: dict[str, DomainState] = {d: DomainState(d) for d in domains}

    def _get(self, domain: str) -> DomainState:
        state = self._domains.get(domain)
        if state is None:
            state = self._domains[domain] = DomainState(domain)
        return state

    def get(self, domain: str) -> DomainState:
        return self._get(domain)

    def record_success(self, domain: str, when: datetime = None) -> None:
        state = self._get(domain)
        state.last_success_at = when or datetime.now(UTC)
        state.consecutive_errors = 0
        state.total_successes += 1

    def record_failure(self, domain: str, reason: str = "") -> None:
        state = self._get(domain)
        state.consecutive_errors += 1
        state.total_errors += 1
        state.last_error = reason or None
        state.last_error_at = datetime.now(UTC)
        if state.consecutive_errors in (3, 5):
            logger.warning(
                f"{domain}: {state.consecutive_errors} consecutive upstream failures ({reason})"
            )

    def severity(self, domain: str, ttl_seconds: float, now: datetime = None) -> str:
        """Staleness severity for a domain: healthy, warning, alert or critical."""
        state = self._get(domain)
        now = now or datetime.now(UTC)
        severity = "healthy"

        if state.last_success_at is not None:
            age = (now - state.last_success_at).total_seconds()
            if age > 2 * ttl_seconds:
                severity = "warning"
        elif state.total_errors:
            # Never succeeded since process start
            severity = "alert"

        if state.consecutive_errors >= 5:
            severity = "critical"
        elif state.consecutive_errors >= 3 and severity != "critical":
            severity = "alert"

        return severity

    def snapshot(self, ttls: dict[str, float] = None) -> dict[str, dict]:
        """JSON-ready view of every domain, for the health surface."""
        ttls = ttls or {}
        out = {}
        for domain, state in self._domains.items():
            entry = {
                "lastSuccessAt": state.last_success_at.isoformat() if state.last_success_at else None,
                "consecutiveErrors": state.consecutive_errors,
                "totalSuccesses": state.total_successes,
                "totalErrors": state.total_errors,
                "lastError": state.last_error,
            }
            if domain in ttls:
                entry["severity"] = self.severity(domain, ttls[domain])
            out[domain] = entry
        return out


def worst_severity(severities: Iterable[str]) -> str:
    worst = "healthy"
    for s in severities:
        if SEVERITY_ORDER.index(s) > SEVERITY_ORDER.index(worst):
            worst = s
    return worst


def freshness_score(age_seconds: float, ttl_seconds: float) -> int:
    """
    Score a cached result by age: 100 when just fetched, decaying linearly
    toward 1 at the end of the TTL. Live data never scores 0; 0 is reserved
    for static fallback.
    """
    if ttl_seconds <= 0:
        return 1
    remaining = 1 - max(0.0, age_seconds) / ttl_seconds
    return max(1, min(100, round(100 * remaining)))
