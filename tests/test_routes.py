import json
import uuid
from dataclasses import replace
from pathlib import Path

import pytest

from sitepub.app import create_app
from sitepub.config import Settings
from sitepub.errors import ConfigError, RegistryPersistError
from sitepub.models import SiteRegistration
from sitepub.registry import SiteRegistry


class FakeSupervisor:
    def hosts(self) -> list[str]:
        return ["example.org"]


class FakeDispatcher:
    def __init__(self) -> None:
        self.submitted: list[SiteRegistration] = []
        self.supervisor = FakeSupervisor()

    def submit(self, registration: SiteRegistration) -> bool:
        self.submitted.append(replace(registration))
        return True

    def status(self) -> dict:
        return {"state": "idle", "active_host": None, "waiting": 0}


def _settings(tmp_path: Path) -> Settings:
    return Settings(
        port=9999,
        host="127.0.0.1",
        base_dir=tmp_path,
        sites_file=tmp_path / "sites.json",
        s3_key="AKIA",
        s3_secret="shh",
        s3_region="us-east-1",
        s3_endpoint=None,
        command_timeout=60.0,
        verbose=False,
        generator_command="jekyll build",
        abort_on_sync_failure=False,
    )


@pytest.fixture(autouse=True)
def single_worker(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("SITEPUB_WORKER_PROCESSES", "GUNICORN_WORKERS", "WEB_CONCURRENCY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def registry(tmp_path: Path, registration: SiteRegistration) -> SiteRegistry:
    return SiteRegistry(tmp_path / "sites.json", [registration])


@pytest.fixture
def dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


@pytest.fixture
def client(tmp_path: Path, registry: SiteRegistry, dispatcher: FakeDispatcher):
    app = create_app(_settings(tmp_path), registry=registry, dispatcher=dispatcher, configure_logs=False)
    app.testing = True
    return app.test_client()


def _body(response) -> dict:
    return json.loads(response.get_data(as_text=True))


def test_update_unknown_host_is_404_without_build(client, dispatcher: FakeDispatcher) -> None:
    response = client.get("/update?hostname=unknown.example")

    assert response.status_code == 404
    assert _body(response) == {"Code": 404, "Message": "Host not found"}
    assert response.headers["Content-Type"] == "text/javascript"
    assert response.headers["Cache-Control"] == "no-cache"
    assert dispatcher.submitted == []


def test_update_known_host_queues_build(client, dispatcher: FakeDispatcher) -> None:
    response = client.post("/update/", data={"hostname": "example.org"})

    assert response.status_code == 200
    assert _body(response)["Message"] == "Command executed successfully"
    assert [site.host_name for site in dispatcher.submitted] == ["example.org"]
    assert dispatcher.submitted[0].needs_deployment is False


def test_add_registers_persists_and_queues_first_deploy(
    client, tmp_path: Path, registry: SiteRegistry, dispatcher: FakeDispatcher
) -> None:
    response = client.get(
        "/add",
        query_string={
            "name": "New",
            "email": "new@example.org",
            "baseurl": "",
            "hostname": "new.example",
            "clonetype": "git",
            "cloneurl": "https://git.example.org/new.git",
        },
    )

    assert response.status_code == 200
    secret = _body(response)["Message"]
    assert str(uuid.UUID(secret)) == secret

    queued = dispatcher.submitted[-1]
    assert queued.host_name == "new.example"
    assert queued.needs_deployment is True
    assert queued.api_secret == secret

    stored = registry.find("new.example")
    assert stored is not None
    assert stored.needs_deployment is False
    assert stored.clone_url == "https://git.example.org/new.git"

    on_disk = json.loads((tmp_path / "sites.json").read_text(encoding="utf-8"))
    assert [entry["HostName"] for entry in on_disk] == ["example.org", "new.example"]
    assert on_disk[1]["APISecret"] == secret
    assert on_disk[1]["NeedsDeployment"] is False


def test_added_site_can_be_updated(client, dispatcher: FakeDispatcher) -> None:
    client.post("/add/", data={"hostname": "later.example", "cloneurl": "git://x"})

    response = client.get("/update", query_string={"hostname": "later.example"})

    assert response.status_code == 200
    assert dispatcher.submitted[-1].needs_deployment is False


def test_health_and_status(client) -> None:
    health = client.get("/health")
    assert health.status_code == 200
    assert health.get_json()["status"] == "ok"

    status = client.get("/status")
    payload = status.get_json()
    assert status.status_code == 200
    assert payload["sites"] == 1
    assert payload["publishers"] == ["example.org"]
    assert payload["dispatcher"]["state"] == "idle"


def test_multiple_workers_are_refused(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WEB_CONCURRENCY", "4")

    with pytest.raises(ConfigError):
        create_app(_settings(tmp_path), registry=SiteRegistry(), dispatcher=FakeDispatcher(), configure_logs=False)


@pytest.mark.parametrize("hostname", ["", "..", "a/b", "../../etc"])
def test_add_rejects_unusable_host_names(client, registry: SiteRegistry, dispatcher: FakeDispatcher, hostname: str) -> None:
    response = client.get("/add", query_string={"hostname": hostname, "cloneurl": "git://x"})

    assert response.status_code == 400
    assert _body(response) == {"Code": 400, "Message": "Invalid hostname"}
    assert dispatcher.submitted == []
    assert len(registry) == 1


def test_add_without_host_name_is_rejected(client, dispatcher: FakeDispatcher) -> None:
    response = client.post("/add", data={"name": "nameless"})

    assert response.status_code == 400
    assert dispatcher.submitted == []


class FailingRegistry(SiteRegistry):
    def persist(self) -> Path:
        raise RegistryPersistError("disk full")


def test_add_survives_persist_failure(tmp_path: Path, dispatcher: FakeDispatcher) -> None:
    registry = FailingRegistry(tmp_path / "sites.json")
    app = create_app(_settings(tmp_path), registry=registry, dispatcher=dispatcher, configure_logs=False)

    response = app.test_client().get("/add", query_string={"hostname": "new.example"})

    assert response.status_code == 200
    secret = _body(response)["Message"]
    assert str(uuid.UUID(secret)) == secret
    assert registry.find("new.example") is not None
    assert [site.host_name for site in dispatcher.submitted] == ["new.example"]
    assert not (tmp_path / "sites.json").exists()
