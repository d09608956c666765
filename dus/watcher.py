from __future__ import annotations

from threading import Event, Lock, Thread
from typing import Callable, Iterable

from .builder import build_candidates
from .docker_ops import ContainerHost, ContainerRecord, EventSubscription
from .events import log_event, logger
from .runtime import Candidate, CandidateStore
from .settings import settings


BuildFn = Callable[[Iterable[ContainerRecord]], Iterable[Candidate]]


class DiscoveryWatcher:
    """Keeps the candidate store converged with the container host.

    Every container event triggers a full relist + rebuild + install, one at
    a time on the watcher thread. A failed relist or build keeps the previous
    snapshot. A broken event stream is resubscribed after ``retry_delay_s``.
    ``stop()`` is final: it wakes the thread out of the event wait or the
    retry delay.
    """

    def __init__(
        self,
        host: ContainerHost,
        store: CandidateStore,
        build: BuildFn | None = None,
        retry_delay_s: float | None = None,
    ):
        self.host = host
        self.store = store
        self.build = build or build_candidates
        self.retry_delay_s = settings.retry_delay_s if retry_delay_s is None else max(0.0, float(retry_delay_s))
        self._stop = Event()
        self._lock = Lock()
        self._subscription: EventSubscription | None = None
        self._thr: Thread | None = None

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def is_alive(self) -> bool:
        return bool(self._thr and self._thr.is_alive())

    def start(self) -> None:
        if self._stop.is_set() or self.is_alive():
            return
        self._thr = Thread(target=self._loop, daemon=True, name="dus-watcher")
        self._thr.start()

    def stop(self) -> None:
        self._stop.set()
        with self._lock:
            sub = self._subscription
        if sub is not None:
            self._close(sub)

    def join(self, timeout: float | None = None) -> None:
        if self._thr:
            self._thr.join(timeout)

    def refresh(self) -> bool:
        """Relist, rebuild and install. Returns False if the relist or build failed."""
        try:
            containers = self.host.list_containers()
        except Exception as e:
            log_event("ERROR", "unable to get the list of containers", error=f"{type(e).__name__}: {e}")
            return False
        try:
            candidates = tuple(self.build(containers))
        except Exception as e:
            log_event("ERROR", "unable to build candidates", error=f"{type(e).__name__}: {e}")
            return False
        snap = self.store.replace(candidates)
        logger.debug("installed snapshot generation=%d candidates=%d", snap.generation, len(snap))
        return True

    def _loop(self) -> None:
        log_event("INFO", "Discovery watcher started")
        while not self._stop.is_set():
            try:
                self._watch()
            except Exception as e:
                if self._stop.is_set():
                    break
                log_event("WARN", "unable to monitor container events; will retry", error=f"{type(e).__name__}: {e}")
            else:
                if self._stop.is_set():
                    break
                log_event("WARN", "container event stream ended; will retry")
            if self._stop.wait(self.retry_delay_s):
                break
        log_event("INFO", "Discovery watcher stopped")

    def _watch(self) -> None:
        sub = self.host.subscribe_events()
        with self._lock:
            self._subscription = sub
        try:
            # stop() may have run before the subscription was published.
            if self._stop.is_set():
                return
            for _event in sub:
                if self._stop.is_set():
                    return
                self.refresh()
        finally:
            with self._lock:
                self._subscription = None
            self._close(sub)

    @staticmethod
    def _close(sub: EventSubscription) -> None:
        try:
            sub.close()
        except Exception as e:
            logger.debug("closing event stream failed: %s", e)
