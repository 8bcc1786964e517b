"""Session caching so authenticated vehicle sessions can be resumed.

A first connection to a vehicle needs an extra handshake round trip. A
:class:`SessionCache` stores the resulting session state so later connections
can skip it. If the cached state is stale, the first command fails and the
vehicle sends fresh session information, which costs no more than a new
handshake.

A cache is tied to one client private key, and may hold sessions for many
VINs. Exported caches should be protected from being read or modified by
third parties.
"""

from __future__ import annotations

import base64
import json
import os
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import IO, Any

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_RFC3339_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})"
)


def _format_time(moment: datetime) -> str:
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    offset = moment.utcoffset() or timedelta(0)
    if not offset:
        return text + "Z"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _parse_time(text: str) -> datetime:
    match = _RFC3339_RE.fullmatch(text)
    if match is None:
        raise ValueError(f"invalid timestamp: {text!r}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    micro = int((fraction or "")[:6].ljust(6, "0"))
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        delta = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        tz = timezone(sign * delta)
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
    )


@dataclass
class CacheEntry:
    """Session state that lets a vehicle domain be resumed without a handshake."""

    created_at: datetime
    domain: int
    session_info: bytes = field(default=b"")

    def __post_init__(self) -> None:
        if self.created_at.tzinfo is None:
            self.created_at = self.created_at.replace(tzinfo=timezone.utc)
        self.session_info = bytes(self.session_info)

    def to_json(self) -> dict[str, Any]:
        """Return the entry as a JSON-compatible dictionary."""
        return {
            "created_at": _format_time(self.created_at),
            "domain": self.domain,
            "data": base64.b64encode(self.session_info).decode("ascii"),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "CacheEntry":
        """Build an entry from a dictionary produced by :meth:`to_json`."""
        if not isinstance(data, dict):
            raise ValueError("cache entry must be a JSON object")
        created = data.get("created_at")
        created_at = _ZERO_TIME if created is None else _parse_time(created)
        domain = data.get("domain") or 0
        if not isinstance(domain, int) or isinstance(domain, bool):
            raise ValueError("cache entry domain must be an integer")
        encoded = data.get("data")
        info = b"" if encoded is None else base64.b64decode(encoded, validate=True)
        return cls(created_at=created_at, domain=domain, session_info=info)


class SessionCache:
    """Holds session state for up to ``max_entries`` vehicles.

    Eviction removes the vehicle whose most recent session is oldest. A
    ``max_entries`` of zero means the cache is unbounded.
    """

    def __init__(self, max_entries: int = 0) -> None:
        self.max_entries = max_entries
        self.vehicles: dict[str, list[CacheEntry]] = {}
        self._lock = threading.Lock()

    def _to_json(self) -> dict[str, Any]:
        return {
            "MaxEntries": self.max_entries,
            "vehicles": {
                vin: [entry.to_json() for entry in sessions]
                for vin, sessions in self.vehicles.items()
            },
        }

    def export(self, stream: IO[str]) -> None:
        """Write the serialised cache to a text stream."""
        with self._lock:
            stream.write(json.dumps(self._to_json()) + "\n")

    def export_to_file(self, filename: str | os.PathLike) -> None:
        """Write the cache to disk."""
        fd = os.open(filename, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
        with open(fd, "w", encoding="utf-8") as stream:
            self.export(stream)

    def update(self, vin: str, sessions: list[CacheEntry]) -> None:
        """Store the sessions for ``vin``, evicting the stalest vehicle if full."""
        with self._lock:
            self.vehicles[vin] = list(sessions)
            if self.max_entries > 0 and len(self.vehicles) > self.max_entries:
                oldest_vin = vin
                oldest_time = datetime.now(timezone.utc)
                for candidate, entries in self.vehicles.items():
                    # A vehicle's age is the age of its most recent session.
                    most_recent = max(
                        (entry.created_at for entry in entries), default=_ZERO_TIME
                    )
                    most_recent = max(most_recent, _ZERO_TIME)
                    if most_recent < oldest_time:
                        oldest_vin = candidate
                        oldest_time = most_recent
                del self.vehicles[oldest_vin]

    def get_entry(self, vin: str) -> list[CacheEntry] | None:
        """Return the sessions stored for ``vin``, or ``None`` if there are none."""
        with self._lock:
            return self.vehicles.get(vin)


def import_cache(stream: IO[str]) -> SessionCache:
    """Read a cache previously written by :meth:`SessionCache.export`."""
    data = json.load(stream)
    if not isinstance(data, dict):
        raise ValueError("session cache must be a JSON object")
    max_entries = data.get("MaxEntries") or 0
    if not isinstance(max_entries, int) or isinstance(max_entries, bool):
        raise ValueError("MaxEntries must be an integer")
    cache = SessionCache(max_entries)
    vehicles = data.get("vehicles") or {}
    if not isinstance(vehicles, dict):
        raise ValueError("vehicles must be a JSON object")
    for vin, entries in vehicles.items():
        cache.vehicles[vin] = [CacheEntry.from_json(entry) for entry in entries or []]
    return cache


def import_from_file(filename: str | os.PathLike) -> SessionCache:
    """Read a cache from disk."""
    with open(filename, encoding="utf-8") as stream:
        return import_cache(stream)