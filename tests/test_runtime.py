import threading

from dus.matchers import Request
from dus.resolver import resolve
from dus.runtime import Candidate, CandidateStore


class _Accept:
    def __init__(self, ok):
        self.ok = ok

    def match(self, request):
        return self.ok


def test_store_starts_empty_and_replace_bumps_generation():
    store = CandidateStore()
    assert store.read_all().candidates == ()
    assert store.generation == 0

    snap = store.replace([Candidate(matchers=(), dial="10.0.0.1:80")])
    assert snap.generation == 1
    assert store.read_all() is snap
    assert [c.dial for c in store.read_all()] == ["10.0.0.1:80"]


def test_replace_does_not_merge():
    store = CandidateStore()
    store.replace([Candidate(matchers=(), dial="a:1"), Candidate(matchers=(), dial="b:1")])
    store.replace([Candidate(matchers=(), dial="c:1")])
    assert [c.dial for c in store.read_all()] == ["c:1"]


def test_reader_keeps_its_snapshot_across_replace():
    store = CandidateStore()
    store.replace([Candidate(matchers=(), dial="old:1")])
    held = store.read_all()
    store.replace([Candidate(matchers=(), dial="new:1")])
    assert [c.dial for c in held] == ["old:1"]


def test_snapshot_list_input_is_copied():
    store = CandidateStore()
    items = [Candidate(matchers=(), dial="a:1")]
    store.replace(items)
    items.append(Candidate(matchers=(), dial="b:1"))
    assert len(store.read_all()) == 1


def test_resolve_and_composition():
    store = CandidateStore()
    store.replace(
        [
            Candidate(matchers=(), dial="any:80"),
            Candidate(matchers=(_Accept(True), _Accept(True)), dial="both:80"),
            Candidate(matchers=(_Accept(True), _Accept(False)), dial="one:80"),
            Candidate(matchers=(_Accept(False),), dial="none:80"),
        ]
    )
    assert resolve(store, Request()) == ["any:80", "both:80"]


def test_resolve_empty_store():
    assert resolve(CandidateStore(), Request()) == []


def test_concurrent_reads_never_see_a_mixed_snapshot():
    store = CandidateStore()
    set_a = [Candidate(matchers=(), dial=f"a{i}:80") for i in range(3)]
    set_b = [Candidate(matchers=(), dial=f"b{i}:80") for i in range(7)]
    store.replace(set_a)

    stop = threading.Event()
    bad = []

    def reader():
        while not stop.is_set():
            dials = resolve(store, Request())
            prefixes = {d[0] for d in dials}
            if prefixes == {"a"} and len(dials) == 3:
                continue
            if prefixes == {"b"} and len(dials) == 7:
                continue
            bad.append(dials)

    readers = [threading.Thread(target=reader) for _ in range(4)]
    for t in readers:
        t.start()
    for i in range(2000):
        store.replace(set_b if i % 2 == 0 else set_a)
    stop.set()
    for t in readers:
        t.join(5)

    assert bad == []
    assert store.generation == 2001
