import docker

from dus.docker_ops import ContainerRecord, DockerHost, NetworkAttachment


API_CONTAINER = {
    "Id": "8dfafdbc3a40",
    "Names": ["/web-1"],
    "Image": "nginx:alpine",
    "Labels": {
        "com.caddyserver.http.enable": "true",
        "com.caddyserver.http.upstream.port": "80",
    },
    "State": "running",
    "NetworkSettings": {
        "Networks": {
            "bridge": {"IPAddress": "172.17.0.2", "Gateway": "172.17.0.1"},
            "internal": {"IPAddress": "10.10.0.5"},
        }
    },
}


def test_record_from_api_payload():
    rec = ContainerRecord.from_api(API_CONTAINER)
    assert rec.id == "8dfafdbc3a40"
    assert rec.name == "web-1"
    assert rec.labels["com.caddyserver.http.upstream.port"] == "80"
    assert rec.networks == {
        "bridge": NetworkAttachment(ip_address="172.17.0.2"),
        "internal": NetworkAttachment(ip_address="10.10.0.5"),
    }
    assert list(rec.networks) == ["bridge", "internal"]


def test_record_tolerates_missing_sections():
    rec = ContainerRecord.from_api({"Id": "x", "Labels": None, "NetworkSettings": None})
    assert rec.labels == {}
    assert rec.networks == {}
    assert rec.name == ""


class _FakeAPI:
    api_version = "1.43"

    def __init__(self):
        self.list_filters = None

    def containers(self, filters=None):
        self.list_filters = filters
        return [API_CONTAINER]


class _FakeClient:
    def __init__(self):
        self.api = _FakeAPI()
        self.events_kwargs = None
        self.closed = False

    def ping(self):
        return True

    def events(self, **kwargs):
        self.events_kwargs = kwargs
        return iter([])

    def close(self):
        self.closed = True


def test_docker_host_uses_label_and_type_filters(monkeypatch):
    fake = _FakeClient()
    monkeypatch.setattr(docker, "from_env", lambda **kwargs: fake)

    host = DockerHost(label_enable="com.caddyserver.http.enable", base_url="")
    assert host.ping() == "1.43"

    recs = host.list_containers()
    assert [r.id for r in recs] == ["8dfafdbc3a40"]
    assert fake.api.list_filters == {"label": "com.caddyserver.http.enable"}

    host.subscribe_events()
    assert fake.events_kwargs == {"decode": True, "filters": {"type": "container"}}

    host.close()
    assert fake.closed


def test_docker_host_base_url(monkeypatch):
    seen = {}

    def fake_client(**kwargs):
        seen.update(kwargs)
        return _FakeClient()

    monkeypatch.setattr(docker, "DockerClient", fake_client)
    DockerHost(base_url="tcp://docker-proxy:2375").connect()
    assert seen == {"base_url": "tcp://docker-proxy:2375", "version": "auto"}
