from __future__ import annotations

from pydantic import BaseModel, Field

from .matchers import Request


class ResolveRequest(BaseModel):
    method: str = Field("GET", description="HTTP method of the request being routed")
    host: str = Field("", description="Host header, optionally with port")
    path: str = Field("/", description="Request path")
    query: str = Field("", description="Raw query string without '?'")
    scheme: str = Field("http", description="http|https")
    headers: dict[str, str] = Field(default_factory=dict)
    remote_ip: str = Field("", description="Client address")

    def to_request(self) -> Request:
        return Request(
            method=self.method,
            host=self.host,
            path=self.path or "/",
            query=self.query,
            headers=dict(self.headers),
            scheme=self.scheme,
            remote_ip=self.remote_ip,
        )


class ResolveResponse(BaseModel):
    upstreams: list[str]


class CandidateView(BaseModel):
    dial: str
    container_id: str
    matchers: list[str]


class SnapshotView(BaseModel):
    generation: int
    built_at: str
    candidates: list[CandidateView]
