"""Docker Upstream Source (DUS).

Discovers reverse-proxy upstreams from the labels of running docker
containers and keeps them current by following container events:
 - label-driven candidate building (enable flag, port, request matchers)
 - event-driven refresh with last-good snapshot on failure
 - lock-protected immutable snapshots shared with request handlers
 - per-request resolution of matching dial targets
"""
