from __future__ import annotations

from typing import Iterable, Mapping

from .docker_ops import ContainerRecord
from .events import log_event
from .matchers import MatchPredicate, Producer, Provisioner, default_producers
from .runtime import Candidate
from .settings import settings


def join_host_port(host: str, port: str) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def valid_port(port: str) -> bool:
    # ASCII digits only; int() rejects digits such as "²".
    return port.isascii() and port.isdecimal() and 1 <= int(port) <= 65535


def build_matchers(container: ContainerRecord, producers: Mapping[str, Producer]) -> tuple[MatchPredicate, ...]:
    """Produce the container's matchers, in producer registration order.

    A matcher whose producer or provisioning fails is logged and left out;
    the rest of the container is still built. Producers may be registered by
    third parties, so any exception counts as a failure here.
    """
    matchers: list[MatchPredicate] = []
    for key, producer in producers.items():
        value = container.labels.get(key)
        if value is None:
            continue
        try:
            matcher = producer(value)
            if isinstance(matcher, Provisioner):
                matcher.provision()
        except Exception as e:
            log_event(
                "ERROR",
                "unable to provision matcher",
                container_id=container.id,
                key=key,
                value=value,
                error=f"{type(e).__name__}: {e}",
            )
            continue
        matchers.append(matcher)
    return tuple(matchers)


def pick_address(container: ContainerRecord) -> str | None:
    # First attachment in engine order; the engine serializes networks sorted by name.
    for attachment in container.networks.values():
        if attachment.ip_address:
            return attachment.ip_address
    return None


def build_candidates(
    containers: Iterable[ContainerRecord],
    namespace: str | None = None,
    producers: Mapping[str, Producer] | None = None,
) -> tuple[Candidate, ...]:
    """Turn a container listing into candidates, preserving listing order.

    Containers without ``<namespace>.enable=true``, a valid
    ``<namespace>.upstream.port`` label or an addressable network are skipped.
    Nothing here touches shared state.
    """
    namespace = namespace or settings.label_namespace
    label_enable = f"{namespace}.enable"
    label_port = f"{namespace}.upstream.port"
    if producers is None:
        producers = default_producers(namespace)

    candidates: list[Candidate] = []
    for container in containers:
        if container.labels.get(label_enable) != "true":
            continue

        matchers = build_matchers(container, producers)

        port = container.labels.get(label_port)
        if port is None:
            log_event("ERROR", "unable to get port from container labels", container_id=container.id)
            continue
        port = port.strip()
        if not valid_port(port):
            log_event("ERROR", "invalid upstream port in container labels", container_id=container.id, port=port)
            continue

        if not container.networks:
            log_event("ERROR", "unable to get ip address from container networks", container_id=container.id)
            continue
        address = pick_address(container)
        if address is None:
            log_event("ERROR", "container networks carry no ip address", container_id=container.id)
            continue

        candidates.append(Candidate(matchers=matchers, dial=join_host_port(address, port), container_id=container.id))

    return tuple(candidates)
