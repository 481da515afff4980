from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class DocumentPair:
    primary_uri: str
    companion_uri: str
    created_at: float = field(default_factory=time.monotonic)


@dataclass(slots=True)
class PendingOpen:
    primary_uri: str
    companion_uri: str
    token: int


class PairRegistry:
    """Primary-keyed pairs plus the companion opens still in flight.

    At most one pair and at most one pending open exist per primary.
    """

    def __init__(self) -> None:
        self._pairs: dict[str, DocumentPair] = {}
        self._pending: dict[str, PendingOpen] = {}
        self._next_token = 1

    # -------- pairs --------

    def pair_for_primary(self, primary_uri: str) -> DocumentPair | None:
        return self._pairs.get(primary_uri)

    def pair_for_companion(self, companion_uri: str) -> DocumentPair | None:
        for pair in self._pairs.values():
            if pair.companion_uri == companion_uri:
                return pair
        return None

    def register(self, primary_uri: str, companion_uri: str) -> DocumentPair:
        pair = DocumentPair(primary_uri=primary_uri, companion_uri=companion_uri)
        self._pairs[primary_uri] = pair
        return pair

    def remove(self, primary_uri: str) -> DocumentPair | None:
        return self._pairs.pop(primary_uri, None)

    def pairs(self) -> list[DocumentPair]:
        return list(self._pairs.values())

    def is_companion(self, uri: str) -> bool:
        if self.pair_for_companion(uri) is not None:
            return True
        return any(pending.companion_uri == uri for pending in self._pending.values())

    # -------- in-flight opens --------

    def begin_open(self, primary_uri: str, companion_uri: str) -> PendingOpen | None:
        if primary_uri in self._pending:
            return None
        pending = PendingOpen(primary_uri=primary_uri, companion_uri=companion_uri, token=self._next_token)
        self._next_token += 1
        self._pending[primary_uri] = pending
        return pending

    def pending_for(self, primary_uri: str) -> PendingOpen | None:
        return self._pending.get(primary_uri)

    def finish_open(self, pending: PendingOpen) -> bool:
        """Drop the marker; False when it was cancelled or superseded meanwhile."""
        current = self._pending.get(pending.primary_uri)
        if current is None or current.token != pending.token:
            return False
        del self._pending[pending.primary_uri]
        return True

    def cancel_open(self, primary_uri: str) -> PendingOpen | None:
        return self._pending.pop(primary_uri, None)

    def clear(self) -> None:
        self._pairs.clear()
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._pairs)
