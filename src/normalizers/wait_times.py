"""
Wait-time normalizers.

Field mapping per upstream format:

| Canonical             | queue_times            | touringplans_flat        | themeparks_live                  |
|-----------------------|------------------------|--------------------------|----------------------------------|
| id                    | rides[].id             | id                       | liveData[].id                    |
| land                  | lands[].name           | land / area              | "Park" (not reported)            |
| wait_time             | rides[].wait_time      | waitTime                 | queue.STANDBY.waitTime           |
| is_open               | rides[].is_open        | status == "Operating"    | status == "OPERATING"            |
| fast_pass_available   | rides[].fast_pass      | fastPass / lightningLane | queue has RETURN_TIME variants   |
| last_updated          | rides[].last_updated   | lastUpdated              | lastUpdated                      |

Missing wait → 0, missing open flag → closed, missing fast-pass → False.
"""

from typing import Any

from src.models import AttractionStatus, utc_now_iso
from src.normalizers.common import as_int, dicts, require_items, require_mapping
from src.parks import Park

EXPRESS_QUEUES = ("RETURN_TIME", "PAID_RETURN_TIME", "BOARDING_GROUP")


def _unique(attractions: list[AttractionStatus]) -> list[AttractionStatus]:
    """Drop repeated ids, keeping the first occurrence."""
    seen = set()
    out = []
    for attraction in attractions:
        if attraction.id in seen:
            continue
        seen.add(attraction.id)
        out.append(attraction)
    return out


def _queue_times_ride(ride: dict, land: str, park: Park, fetched_at: str) -> AttractionStatus | None:
    if ride.get("id") is None or not ride.get("name"):
        return None
    return AttractionStatus(
        id=f"{park.park_id}-{ride['id']}",
        name=str(ride["name"]),
        land=land,
        wait_time=as_int(ride.get("wait_time")),
        is_open=bool(ride.get("is_open", False)),
        fast_pass_available=bool(ride.get("fast_pass", False)),
        last_updated=ride.get("last_updated") or fetched_at,
    )


def normalize_queue_times(raw: Any, park: Park) -> list[AttractionStatus]:
    """queue-times.com: ``lands[].rides[]`` plus unassigned top-level ``rides[]``."""
    data = require_mapping(raw, "queue_times")
    fetched_at = utc_now_iso()
    attractions = []

    lands = data.get("lands") if isinstance(data.get("lands"), list) else []
    for land in dicts(lands):
        rides = land.get("rides") if isinstance(land.get("rides"), list) else []
        for ride in dicts(rides):
            record = _queue_times_ride(ride, str(land.get("name") or "Unknown"), park, fetched_at)
            if record:
                attractions.append(record)

    loose = data.get("rides") if isinstance(data.get("rides"), list) else []
    for ride in dicts(loose):
        record = _queue_times_ride(ride, "Other", park, fetched_at)
        if record:
            attractions.append(record)

    return _unique(attractions)


def normalize_touringplans_flat(raw: Any, park: Park) -> list[AttractionStatus]:
    """touringplans: flat list with ``waitTime`` and a ``status`` enum."""
    items = require_items(raw, "touringplans_flat", "attractions", "rides")
    fetched_at = utc_now_iso()
    attractions = []

    for item in dicts(items):
        name = item.get("name")
        if item.get("id") is None or not name:
            continue
        attractions.append(
            AttractionStatus(
                id=f"{park.park_id}-{item['id']}",
                name=str(name),
                land=str(item.get("land") or item.get("area") or "Unknown"),
                wait_time=as_int(item.get("waitTime")),
                is_open=item.get("status") == "Operating",
                fast_pass_available=bool(item.get("fastPass") or item.get("lightningLane")),
                last_updated=item.get("lastUpdated") or fetched_at,
            )
        )

    return _unique(attractions)


def normalize_themeparks_live(raw: Any, park: Park) -> list[AttractionStatus]:
    """themeparks.wiki ``/live``: ``liveData[]`` filtered to attractions."""
    data = require_mapping(raw, "themeparks_live")
    live = data.get("liveData") if isinstance(data.get("liveData"), list) else []
    fetched_at = utc_now_iso()
    attractions = []

    for item in dicts(live):
        if item.get("entityType") != "ATTRACTION":
            continue
        if not item.get("id") or not item.get("name"):
            continue
        queue = item.get("queue") if isinstance(item.get("queue"), dict) else {}
        standby = queue.get("STANDBY") if isinstance(queue.get("STANDBY"), dict) else {}
        attractions.append(
            AttractionStatus(
                id=f"{park.park_id}-{item['id']}",
                name=str(item["name"]),
                land=str(item.get("land") or "Park"),
                wait_time=as_int(standby.get("waitTime")),
                is_open=item.get("status") == "OPERATING",
                fast_pass_available=any(q in queue for q in EXPRESS_QUEUES),
                last_updated=item.get("lastUpdated") or fetched_at,
            )
        )

    return _unique(attractions)
