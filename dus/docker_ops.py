from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Protocol

import docker
from docker.errors import DockerException
from requests.exceptions import RequestException

from .settings import settings


# Errors the docker SDK surfaces for an unreachable or failing engine.
HOST_ERRORS: tuple[type[BaseException], ...] = (DockerException, RequestException, OSError)


@dataclass(frozen=True)
class NetworkAttachment:
    ip_address: str


@dataclass(frozen=True)
class ContainerRecord:
    id: str
    labels: dict[str, str] = field(default_factory=dict)
    networks: dict[str, NetworkAttachment] = field(default_factory=dict)
    name: str = ""

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "ContainerRecord":
        """Build a record from one entry of the engine's ``/containers/json`` list."""
        nets = ((raw.get("NetworkSettings") or {}).get("Networks")) or {}
        names = raw.get("Names") or []
        return cls(
            id=raw.get("Id", ""),
            labels=dict(raw.get("Labels") or {}),
            networks={name: NetworkAttachment(ip_address=(n or {}).get("IPAddress", "")) for name, n in nets.items()},
            name=names[0].lstrip("/") if names else "",
        )


class EventSubscription(Protocol):
    def __iter__(self) -> Iterator[Any]: ...

    def close(self) -> None: ...


class ContainerHost(Protocol):
    """What the discovery engine needs from a container host."""

    def ping(self) -> str: ...

    def list_containers(self) -> list[ContainerRecord]: ...

    def subscribe_events(self) -> EventSubscription: ...


class DockerHost:
    """Container host backed by the docker engine API."""

    def __init__(self, label_enable: str | None = None, base_url: str | None = None):
        self.label_enable = label_enable or settings.label_enable
        self.base_url = base_url if base_url is not None else settings.docker_host
        self._client: docker.DockerClient | None = None

    def connect(self) -> docker.DockerClient:
        if self._client is None:
            if self.base_url:
                self._client = docker.DockerClient(base_url=self.base_url, version="auto")
            else:
                self._client = docker.from_env(version="auto")
        return self._client

    def ping(self) -> str:
        """Check the engine is reachable; return the negotiated API version."""
        c = self.connect()
        c.ping()
        return c.api.api_version

    def list_containers(self) -> list[ContainerRecord]:
        c = self.connect()
        return records(c.api.containers(filters={"label": self.label_enable}))

    def subscribe_events(self) -> EventSubscription:
        c = self.connect()
        return c.events(decode=True, filters={"type": "container"})

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


def records(raw: Iterable[dict[str, Any]]) -> list[ContainerRecord]:
    return [ContainerRecord.from_api(x) for x in raw]
