import json

import pytest

from bypass_verifier.catalog import ProfileCatalog


@pytest.fixture
def profiles_dir(tmp_path):
    directory = tmp_path / "profiles"
    directory.mkdir()
    (directory / "01-general.json").write_text(
        json.dumps({"name": "General", "description": "default", "arguments": ["--wf-tcp=80,443"]}),
        encoding="utf-8",
    )
    (directory / "02-alt.json").write_text(
        json.dumps([
            {"name": "General (ALT)", "arguments": ["--dpi-desync=fake"]},
            {"description": "no name"},
            {"name": "general"},
        ]),
        encoding="utf-8",
    )
    (directory / "03-broken.json").write_text("{not json", encoding="utf-8")
    return directory


def test_lists_profiles_in_file_order(profiles_dir):
    profiles = ProfileCatalog(profiles_dir).list_available_profiles()
    assert [p.name for p in profiles] == ["General", "General (ALT)"]
    assert profiles[0].arguments == ("--wf-tcp=80,443",)
    assert profiles[0].description == "default"


def test_lookup_is_case_insensitive(profiles_dir):
    catalog = ProfileCatalog(profiles_dir)
    assert catalog.get_profile_by_name("general (alt)").name == "General (ALT)"
    assert catalog.get_profile_by_name("missing") is None


def test_results_are_cached(profiles_dir):
    catalog = ProfileCatalog(profiles_dir)
    assert len(catalog.list_available_profiles()) == 2

    (profiles_dir / "04-new.json").write_text(json.dumps({"name": "New"}), encoding="utf-8")
    assert len(catalog.list_available_profiles()) == 2

    catalog.invalidate()
    assert len(catalog.list_available_profiles()) == 3


def test_zero_ttl_always_reloads(profiles_dir):
    catalog = ProfileCatalog(profiles_dir, cache_ttl=0)
    catalog.list_available_profiles()
    (profiles_dir / "04-new.json").write_text(json.dumps({"name": "New"}), encoding="utf-8")
    assert len(catalog.list_available_profiles()) == 3


def test_missing_directory(tmp_path):
    assert ProfileCatalog(tmp_path / "nope").list_available_profiles() == []
