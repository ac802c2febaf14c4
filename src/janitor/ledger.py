"""Mark-and-sweep ledger.

The ledger remembers the first time each resource ARN was observed. Nothing
tracks the intended lifetime of the resources being swept, so liveness is
inferred purely from repeated observation: a resource that keeps showing up
for longer than the TTL is garbage.

Lifecycle per run:
    load -> mark (many times) -> reconcile (once) -> save -> discard
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Union

from src.janitor.errors import PersistenceError
from src.models.identity import ResourceIdentity

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# RFC3339 timestamps, possibly with nanosecond fractions.
_TIMESTAMP = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<tz>Z|z|[+-]\d{2}:?\d{2})?$"
)


def utcnow() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 / RFC3339 timestamp into an aware UTC datetime.

    Naive timestamps are taken as UTC. Fractions beyond microsecond
    precision are truncated.

    Raises:
        ValueError: If the value is not a recognised timestamp
    """
    match = _TIMESTAMP.match(value.strip())
    if not match:
        raise ValueError(f"Invalid timestamp: {value!r}")

    text = match.group("base").replace(" ", "T")
    fraction = match.group("fraction")
    if fraction:
        text += "." + fraction[:6].ljust(6, "0")

    tz = match.group("tz")
    if tz is None or tz in ("Z", "z"):
        tz = "+00:00"
    elif ":" not in tz:
        tz = f"{tz[:3]}:{tz[3:]}"

    return datetime.fromisoformat(text + tz).astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class Ledger:
    """Persisted ARN -> first-seen map plus the per-run marked set.

    The ledger is not thread-safe; it is mutated by one sweeper at a time.

    Attributes:
        ttl: Maximum tolerated time between first observation and deletion.
            ``timedelta(0)`` makes every resource eligible on first sight.
    """

    def __init__(
        self,
        ttl: timedelta,
        first_seen: Optional[Dict[str, datetime]] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        if ttl < timedelta(0):
            raise ValueError(f"TTL cannot be negative: {ttl}")

        self.ttl = ttl
        self._clock: Clock = clock or utcnow
        self._first_seen: Dict[str, datetime] = dict(first_seen or {})
        # ARN -> eligibility decided by the first mark of this run
        self._marked: Dict[str, bool] = {}
        self._reconciled = False

    @classmethod
    def load(cls, store, ttl: timedelta, clock: Optional[Clock] = None) -> "Ledger":
        """Load the ledger from a persistence store.

        A missing object yields an empty ledger.

        Args:
            store: Object with ``get() -> Optional[bytes]``
            ttl: TTL for this run
            clock: Clock override (optional)

        Raises:
            PersistenceError: If the stored ledger cannot be read or parsed
        """
        data = store.get()
        if data is None:
            logger.info(f"No ledger found at {store}, starting empty")
            return cls(ttl, clock=clock)

        try:
            first_seen = cls.parse(data)
        except ValueError as e:
            raise PersistenceError(f"Malformed ledger at {store}: {e}") from e

        logger.info(f"Loaded {len(first_seen)} ledger entries from {store}")
        return cls(ttl, first_seen=first_seen, clock=clock)

    @staticmethod
    def parse(data: Union[bytes, str]) -> Dict[str, datetime]:
        """Parse the serialized ARN -> timestamp mapping.

        Raises:
            ValueError: If the data is not a JSON object of timestamps
        """
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        if not data.strip():
            return {}

        raw = json.loads(data)
        if not isinstance(raw, dict):
            raise ValueError("ledger must be a JSON object")

        first_seen: Dict[str, datetime] = {}
        for arn, value in raw.items():
            if not isinstance(value, str):
                raise ValueError(f"{arn}: timestamp must be a string")
            first_seen[arn] = parse_timestamp(value)
        return first_seen

    def to_json(self) -> str:
        """Serialize the first-seen map. The marked set is never persisted."""
        return json.dumps(
            {arn: format_timestamp(seen) for arn, seen in self._first_seen.items()},
            indent=2,
            sort_keys=True,
        )

    def mark(self, identity: Union[ResourceIdentity, str]) -> bool:
        """Record a resource as present and decide whether it should be deleted.

        Marking the same ARN again within a run returns the original decision
        and never re-timestamps it.

        Returns:
            True if the resource's TTL has expired and it should be deleted
        """
        arn = str(identity)
        if arn in self._marked:
            return self._marked[arn]

        now = self._clock()
        seen = self._first_seen.get(arn)
        if seen is None:
            self._first_seen[arn] = now
            eligible = self.ttl == timedelta(0)
            logger.debug(f"{arn}: first seen")
        else:
            since = now - seen
            eligible = self.ttl == timedelta(0) or since > self.ttl
            if not eligible:
                logger.debug(f"{arn}: seen for {since}")

        self._marked[arn] = eligible
        return eligible

    def reconcile(self, keep: Optional[Callable[[str], bool]] = None) -> list[str]:
        """Drop every entry that was not marked during this run.

        A resource that disappeared without being deleted by this run stops
        aging. Call exactly once, after all regions and sweepers have run.

        Args:
            keep: Predicate retaining unmarked entries whose listing failed
                this run (optional)

        Returns:
            ARNs removed from the ledger
        """
        if self._reconciled:
            raise RuntimeError("Ledger has already been reconciled for this run")

        gone = [
            arn
            for arn in self._first_seen
            if arn not in self._marked and not (keep is not None and keep(arn))
        ]
        for arn in gone:
            logger.info(f"{arn}: gone since last run")
            del self._first_seen[arn]

        self._reconciled = True
        return gone

    def save(self, store) -> None:
        """Persist the first-seen map.

        Args:
            store: Object with ``put(data: bytes)``

        Raises:
            RuntimeError: If called before reconcile
            PersistenceError: Propagated from the store
        """
        if not self._reconciled:
            raise RuntimeError("Ledger must be reconciled before it is saved")
        store.put(self.to_json().encode("utf-8"))
        logger.info(f"Saved {len(self._first_seen)} ledger entries to {store}")

    def first_seen(self, identity: Union[ResourceIdentity, str]) -> Optional[datetime]:
        return self._first_seen.get(str(identity))

    def age(self, identity: Union[ResourceIdentity, str]) -> Optional[timedelta]:
        seen = self.first_seen(identity)
        if seen is None:
            return None
        return self._clock() - seen

    def entries(self) -> Dict[str, datetime]:
        """Copy of the first-seen map."""
        return dict(self._first_seen)

    @property
    def marked(self) -> frozenset:
        return frozenset(self._marked)

    @property
    def reconciled(self) -> bool:
        return self._reconciled

    def __len__(self) -> int:
        return len(self._first_seen)

    def __contains__(self, identity: object) -> bool:
        return str(identity) in self._first_seen
