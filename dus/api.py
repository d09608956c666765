from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Query, Request as HTTPRequest
from starlette.concurrency import run_in_threadpool

from .api_models import CandidateView, ResolveRequest, ResolveResponse, SnapshotView
from .events import latest_events
from .matchers import Request
from .upstreams import Upstreams


def forwarded_request(req: HTTPRequest) -> Request:
    """Rebuild the proxied request from ``X-Forwarded-*`` headers.

    Lets a proxy ask "where would this go?" the same way forward-auth
    subrequests work; falls back to the request's own attributes.
    """
    h = req.headers
    remote = (h.get("x-forwarded-for") or "").split(",")[0].strip()
    if not remote and req.client:
        remote = req.client.host
    uri = h.get("x-forwarded-uri") or req.url.path
    path, _, query = uri.partition("?")
    if not query and "x-forwarded-uri" not in h:
        query = req.url.query
    return Request(
        method=h.get("x-forwarded-method") or req.method,
        host=h.get("x-forwarded-host") or h.get("host", ""),
        path=path or "/",
        query=query,
        headers=dict(h.items()),
        scheme=h.get("x-forwarded-proto") or req.url.scheme,
        remote_ip=remote,
    )


def create_app(upstreams: Upstreams | None = None) -> FastAPI:
    ups = upstreams if upstreams is not None else Upstreams()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # ping + initial list block on the docker engine
        await run_in_threadpool(ups.provision)
        try:
            yield
        finally:
            await run_in_threadpool(ups.close)

    app = FastAPI(title="Docker Upstream Source", lifespan=lifespan)
    app.state.upstreams = ups

    @app.get("/health")
    def health() -> dict[str, Any]:
        snap = ups.snapshot()
        return {
            "status": "healthy" if ups.watcher.is_alive() else "degraded",
            "candidates": len(snap),
            "generation": snap.generation,
            "api_version": ups.api_version,
        }

    @app.get("/candidates", response_model=SnapshotView)
    def candidates() -> SnapshotView:
        snap = ups.snapshot()
        return SnapshotView(
            generation=snap.generation,
            built_at=snap.built_at,
            candidates=[
                CandidateView(dial=c.dial, container_id=c.container_id, matchers=[repr(m) for m in c.matchers])
                for c in snap.candidates
            ],
        )

    @app.post("/resolve", response_model=ResolveResponse)
    def resolve(body: ResolveRequest) -> ResolveResponse:
        return ResolveResponse(upstreams=ups.get_upstreams(body.to_request()))

    @app.get("/upstreams", response_model=ResolveResponse)
    def upstreams_for(req: HTTPRequest) -> ResolveResponse:
        return ResolveResponse(upstreams=ups.get_upstreams(forwarded_request(req)))

    @app.get("/events")
    def events(limit: int = Query(100, ge=1, le=1000)) -> list[dict[str, Any]]:
        return latest_events(limit)

    return app
