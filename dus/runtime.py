from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from typing import Iterable

from .events import utc_now
from .matchers import MatchPredicate, Request


@dataclass(frozen=True)
class Candidate:
    """A routable backend derived from one container."""

    matchers: tuple[MatchPredicate, ...]
    dial: str
    container_id: str = ""

    def match(self, request: Request) -> bool:
        # all() of an empty matcher set is True.
        return all(m.match(request) for m in self.matchers)


@dataclass(frozen=True)
class Snapshot:
    candidates: tuple[Candidate, ...] = ()
    generation: int = 0
    built_at: str = field(default_factory=utc_now)

    def __len__(self) -> int:
        return len(self.candidates)

    def __iter__(self):
        return iter(self.candidates)


class CandidateStore:
    """Holds the current snapshot of candidates.

    Snapshots are immutable; ``replace`` swaps the reference under the lock
    and ``read_all`` hands out the reference, so readers iterate their own
    copy without holding the lock.
    """

    def __init__(self) -> None:
        self.lock = Lock()
        self._snapshot = Snapshot()

    def replace(self, candidates: Iterable[Candidate]) -> Snapshot:
        frozen = tuple(candidates)
        with self.lock:
            snap = Snapshot(candidates=frozen, generation=self._snapshot.generation + 1)
            self._snapshot = snap
        return snap

    def read_all(self) -> Snapshot:
        with self.lock:
            return self._snapshot

    @property
    def generation(self) -> int:
        return self.read_all().generation
