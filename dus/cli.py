from __future__ import annotations

import argparse
import json
import sys

import requests

from .settings import settings


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _serve(host: str, port: int, log_level: str) -> int:
    import uvicorn

    from .api import create_app
    from .events import configure_logging

    configure_logging(log_level)
    uvicorn.run(create_app(), host=host, port=port, log_level=log_level.lower())
    return 0


def _parse_headers(items: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for item in items:
        name, sep, value = item.partition(":")
        if not sep:
            raise SystemExit(f"invalid header '{item}', expected 'Name: value'")
        headers[name.strip()] = value.strip()
    return headers


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Docker Upstream Source CLI")
    p.add_argument("--api", default=f"http://localhost:{settings.api_port}", help="API base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_serve = sub.add_parser("serve", help="Run the discovery API")
    s_serve.add_argument("--host", default=settings.api_host)
    s_serve.add_argument("--port", type=int, default=settings.api_port)
    s_serve.add_argument("--log-level", default=settings.log_level)

    sub.add_parser("candidates", help="Show the current candidate snapshot")

    s_ev = sub.add_parser("events", help="Show recent discovery events")
    s_ev.add_argument("--limit", type=int, default=20)

    s_res = sub.add_parser("resolve", help="Show the upstreams a request would be routed to")
    s_res.add_argument("--method", default="GET")
    s_res.add_argument("--host", dest="req_host", default="")
    s_res.add_argument("--path", default="/")
    s_res.add_argument("--query", default="")
    s_res.add_argument("--scheme", default="http")
    s_res.add_argument("--remote-ip", default="")
    s_res.add_argument("--header", action="append", default=[], help="'Name: value', repeatable")

    args = p.parse_args(argv)

    if args.cmd == "serve":
        return _serve(args.host, args.port, args.log_level)

    base = args.api.rstrip("/")

    if args.cmd == "candidates":
        _print(requests.get(f"{base}/candidates", timeout=10).json())
        return 0

    if args.cmd == "events":
        _print(requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10).json())
        return 0

    if args.cmd == "resolve":
        payload = {
            "method": args.method,
            "host": args.req_host,
            "path": args.path,
            "query": args.query,
            "scheme": args.scheme,
            "remote_ip": args.remote_ip,
            "headers": _parse_headers(args.header),
        }
        r = requests.post(f"{base}/resolve", json=payload, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
