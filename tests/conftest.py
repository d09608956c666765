import queue
import threading
import time

import pytest

from dus.docker_ops import ContainerRecord, NetworkAttachment
from dus.events import clear_events


NS = "com.caddyserver.http"


class FakeStream:
    """Event stream that blocks until an event, an error, or close()."""

    _CLOSED = object()

    def __init__(self):
        self._q = queue.Queue()
        self.closed = False

    def push(self, event=None):
        self._q.put(event if event is not None else {"Type": "container", "Action": "start"})

    def fail(self, exc):
        self._q.put(exc)

    def end(self):
        self._q.put(self._CLOSED)

    def close(self):
        self.closed = True
        self._q.put(self._CLOSED)

    def __iter__(self):
        while True:
            item = self._q.get()
            if item is self._CLOSED:
                return
            if isinstance(item, BaseException):
                raise item
            yield item


class FakeHost:
    def __init__(self, containers=None):
        self.containers = list(containers or [])
        self.list_calls = 0
        self.list_error = None
        self.ping_error = None
        self.subscribe_error = None
        self.subscribe_calls = 0
        self.streams = []
        self._lock = threading.Lock()

    def ping(self):
        if self.ping_error:
            raise self.ping_error
        return "1.43"

    def list_containers(self):
        with self._lock:
            self.list_calls += 1
        if self.list_error:
            raise self.list_error
        return list(self.containers)

    def subscribe_events(self):
        with self._lock:
            self.subscribe_calls += 1
        if self.subscribe_error:
            raise self.subscribe_error
        s = FakeStream()
        with self._lock:
            self.streams.append(s)
        return s

    @property
    def stream(self):
        with self._lock:
            return self.streams[-1] if self.streams else None


def make_container(cid, ip="172.17.0.2", port="80", enable="true", labels=None, networks=None):
    lbl = {}
    if enable is not None:
        lbl[f"{NS}.enable"] = enable
    if port is not None:
        lbl[f"{NS}.upstream.port"] = port
    lbl.update(labels or {})
    if networks is None:
        networks = {"bridge": NetworkAttachment(ip_address=ip)} if ip else {}
    return ContainerRecord(id=cid, labels=lbl, networks=networks)


def _wait_for(predicate, timeout=3.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture(autouse=True)
def _clean_events():
    clear_events()
    yield
    clear_events()


@pytest.fixture
def fake_host():
    return FakeHost()


@pytest.fixture
def container():
    return make_container


@pytest.fixture
def wait_for():
    return _wait_for
