from __future__ import annotations

from .matchers import Request
from .runtime import CandidateStore


def resolve(store: CandidateStore, request: Request) -> list[str]:
    """Return the dial targets whose matchers all accept ``request``.

    The snapshot is read once; order follows the snapshot. An empty list
    means no backend matches, and picking one of several is left to the proxy.
    """
    snapshot = store.read_all()
    return [c.dial for c in snapshot.candidates if c.match(request)]
