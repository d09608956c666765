from __future__ import annotations

from typing import Iterable, Mapping

from .builder import build_candidates
from .docker_ops import HOST_ERRORS, ContainerHost, ContainerRecord, DockerHost
from .events import log_event
from .matchers import Producer, Request, default_producers
from .resolver import resolve
from .runtime import Candidate, CandidateStore, Snapshot
from .settings import settings
from .watcher import DiscoveryWatcher


class BootstrapError(RuntimeError):
    pass


class Upstreams:
    """Upstream source for a reverse proxy, fed from the docker host.

    ``provision()`` connects, does the first build and starts the watcher;
    only failures in that phase are raised. ``get_upstreams()`` answers from
    the in-memory snapshot and never fails because of discovery trouble.
    """

    def __init__(
        self,
        host: ContainerHost | None = None,
        namespace: str | None = None,
        producers: Mapping[str, Producer] | None = None,
        retry_delay_s: float | None = None,
    ):
        self.namespace = namespace or settings.label_namespace
        self.host = host if host is not None else DockerHost(label_enable=f"{self.namespace}.enable")
        self.producers = dict(producers) if producers is not None else default_producers(self.namespace)
        self.store = CandidateStore()
        self.watcher = DiscoveryWatcher(self.host, self.store, build=self.build, retry_delay_s=retry_delay_s)
        self.api_version: str | None = None
        self._provisioned = False

    def build(self, containers: Iterable[ContainerRecord]) -> tuple[Candidate, ...]:
        return build_candidates(containers, namespace=self.namespace, producers=self.producers)

    def provision(self) -> None:
        if self._provisioned:
            return

        try:
            self.api_version = self.host.ping()
        except HOST_ERRORS as e:
            raise BootstrapError(f"unable to reach the docker engine: {e}") from e
        log_event("INFO", "docker engine is connected", api_version=self.api_version)

        try:
            containers = self.host.list_containers()
        except HOST_ERRORS as e:
            raise BootstrapError(f"unable to get the list of containers: {e}") from e

        self.store.replace(self.build(containers))
        self.watcher.start()
        self._provisioned = True

    def get_upstreams(self, request: Request) -> list[str]:
        return resolve(self.store, request)

    def snapshot(self) -> Snapshot:
        return self.store.read_all()

    def close(self, timeout: float = 2.0) -> None:
        self.watcher.stop()
        self.watcher.join(timeout)
        close = getattr(self.host, "close", None)
        if close is not None:
            close()
