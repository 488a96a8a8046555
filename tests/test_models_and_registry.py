import json
from pathlib import Path

import pytest

from sitepub.errors import ConfigError, RegistryPersistError
from sitepub.models import SiteRegistration, site_paths
from sitepub.registry import SiteRegistry


def test_site_paths_are_derived_from_base_and_host(tmp_path: Path) -> None:
    paths = site_paths(tmp_path, "example.org")

    assert paths.source == tmp_path / "sites" / "example.org"
    assert paths.rendered == tmp_path / "_gen" / "example.org"
    assert paths.live == tmp_path / "_out" / "example.org"
    assert site_paths(tmp_path, "example.org") == paths


def test_site_paths_resolve_relative_base(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    paths = site_paths("", "a.example")

    assert paths.live == Path.cwd() / "_out" / "a.example"


def test_registration_uses_legacy_field_names(registration: SiteRegistration) -> None:
    payload = registration.to_dict()

    assert payload["HostName"] == "example.org"
    assert payload["BaseURL"] == "/blog"
    assert payload["NeedsDeployment"] is False
    assert SiteRegistration.from_dict(payload) == registration


def test_registration_from_partial_payload() -> None:
    site = SiteRegistration.from_dict({"HostName": "b.example", "CloneURL": None})

    assert site.host_name == "b.example"
    assert site.clone_url == ""
    assert site.needs_deployment is False


def test_registry_load_missing_file_is_empty(tmp_path: Path) -> None:
    registry = SiteRegistry.load(tmp_path / "sites.json")

    assert len(registry) == 0
    assert registry.all() == []


def test_registry_load_null_and_empty(tmp_path: Path) -> None:
    target = tmp_path / "sites.json"
    target.write_text("null", encoding="utf-8")
    assert len(SiteRegistry.load(target)) == 0

    target.write_text("  \n", encoding="utf-8")
    assert len(SiteRegistry.load(target)) == 0


def test_registry_load_rejects_invalid_json(tmp_path: Path) -> None:
    target = tmp_path / "sites.json"
    target.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigError):
        SiteRegistry.load(target)


def test_registry_load_rejects_non_list(tmp_path: Path) -> None:
    target = tmp_path / "sites.json"
    target.write_text('{"HostName": "a"}', encoding="utf-8")

    with pytest.raises(ConfigError):
        SiteRegistry.load(target)


def test_registry_persist_then_load(tmp_path: Path, registration: SiteRegistration) -> None:
    target = tmp_path / "conf" / "sites.json"
    registry = SiteRegistry(target)
    registry.add(registration)

    assert registry.persist() == target

    on_disk = json.loads(target.read_text(encoding="utf-8"))
    assert on_disk[0]["HostName"] == "example.org"
    assert SiteRegistry.load(target).all() == [registration]
    assert [p.name for p in target.parent.iterdir()] == ["sites.json"]


def test_registry_returns_copies(registration: SiteRegistration) -> None:
    registry = SiteRegistry(sites=[registration])

    found = registry.find("example.org")
    assert found is not None
    found.base_url = "/changed"

    assert registry.find("example.org").base_url == "/blog"
    assert registry.find("missing.example") is None
    assert registry.find("") is None


def test_registry_persist_without_path_fails(registration: SiteRegistration) -> None:
    registry = SiteRegistry(sites=[registration])

    with pytest.raises(RegistryPersistError):
        registry.persist()


@pytest.mark.parametrize("host_name", ["", ".", "..", "a/b", "../escape", "a\\b"])
def test_site_paths_rejects_host_names_outside_one_level(tmp_path: Path, host_name: str) -> None:
    with pytest.raises(ValueError):
        site_paths(tmp_path, host_name)


def test_persisted_false_string_stays_false() -> None:
    site = SiteRegistration.from_dict({"HostName": "a.example", "NeedsDeployment": "false"})

    assert site.needs_deployment is False
    assert SiteRegistration.from_dict({"HostName": "a.example", "NeedsDeployment": "true"}).needs_deployment


def test_registry_load_skips_invalid_host_names(tmp_path: Path) -> None:
    target = tmp_path / "sites.json"
    target.write_text(json.dumps([{"HostName": ""}, {"HostName": "../x"}, {"HostName": "ok.example"}]))

    registry = SiteRegistry.load(target)

    assert [site.host_name for site in registry.all()] == ["ok.example"]
