"""Tests for storage settings."""

from pathlib import Path

import pytest

from tabflows.config import (
    ENV_MQTT_PASSWORD,
    ENV_USER_DIR,
    StorageSettings,
    load_settings,
    resolve_flow_file,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv(ENV_USER_DIR, raising=False)
    monkeypatch.delenv(ENV_MQTT_PASSWORD, raising=False)


class TestResolveFlowFile:
    """Tests for resolve_flow_file()."""

    def test_default_uses_hostname(self, tmp_path):
        path = resolve_flow_file(None, tmp_path, cwd=tmp_path, hostname="box")
        assert path == tmp_path / "flows_box.json"

    def test_absolute(self, tmp_path):
        path = resolve_flow_file("/srv/flows.json", tmp_path / "user", cwd=tmp_path)
        assert path == Path("/srv/flows.json")

    def test_drive_letter_is_absolute(self, tmp_path):
        assert resolve_flow_file("C:flows.json", tmp_path) == Path("C:flows.json")

    def test_dot_slash_is_cwd_relative(self, tmp_path):
        path = resolve_flow_file("./mine.json", tmp_path / "user", cwd=tmp_path)
        assert path == tmp_path / "mine.json"

    def test_bare_name_prefers_existing_cwd_file(self, tmp_path):
        (tmp_path / "mine.json").write_text("[]")
        path = resolve_flow_file("mine.json", tmp_path / "user", cwd=tmp_path)
        assert path == tmp_path / "mine.json"

    def test_bare_name_falls_back_to_user_dir(self, tmp_path):
        path = resolve_flow_file("mine.json", tmp_path / "user", cwd=tmp_path)
        assert path == tmp_path / "user" / "mine.json"


class TestStorageSettings:
    """Tests for StorageSettings loading."""

    def test_defaults(self):
        settings = load_settings()
        assert settings.user_dir == Path("~/.tabflows").expanduser()
        assert settings.read_only is False
        assert settings.mirror.enabled is False

    def test_from_dict(self, tmp_path):
        settings = StorageSettings.from_dict(
            {
                "user_dir": str(tmp_path),
                "flow_file": "f.json",
                "flow_file_pretty": True,
                "sort_flows": True,
                "mirror": {"broker": "b", "password": "file-pw"},
            }
        )
        assert settings.user_dir == tmp_path
        assert settings.flow_file_pretty is True
        assert settings.sort_flows is True
        assert settings.projects_dir == tmp_path / "projects"
        assert settings.mirror.enabled is True
        assert settings.mirror.password == "file-pw"

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv(ENV_USER_DIR, str(tmp_path / "env"))
        monkeypatch.setenv(ENV_MQTT_PASSWORD, "env-pw")

        settings = StorageSettings.from_dict(
            {"user_dir": str(tmp_path / "file"), "mirror": {"password": "file-pw"}}
        )

        assert settings.user_dir == tmp_path / "env"
        assert settings.mirror.password == "env-pw"

    def test_document_paths(self, tmp_path):
        settings = StorageSettings(user_dir=tmp_path, flow_file="f.json")
        paths = settings.document_paths(cwd=tmp_path / "elsewhere")
        assert paths.flow_file == tmp_path / "f.json"
        assert paths.flow_file_backup == tmp_path / ".f.json.backup"
        assert paths.credentials_file == tmp_path / "f_cred.json"
        assert paths.flows_root == (tmp_path / "flows").resolve()


class TestFromYaml:
    def test_loads_mapping(self, tmp_path):
        config = tmp_path / "tabflows.yaml"
        config.write_text(
            "user_dir: {}\n"
            "read_only: true\n"
            "mirror:\n"
            "  subscribe_topic: in/refresh\n"
            "  publish_topic:\n"
            "    - out/a\n"
            "    - out/b\n".format(tmp_path)
        )

        settings = load_settings(config)

        assert settings.user_dir == tmp_path
        assert settings.read_only is True
        assert settings.mirror.subscribe_topics == ["in/refresh"]
        assert settings.mirror.publish_topics == ["out/a", "out/b"]

    def test_empty_file_is_defaults(self, tmp_path):
        config = tmp_path / "tabflows.yaml"
        config.write_text("")
        assert load_settings(config).flow_file is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "nope.yaml")

    def test_non_mapping(self, tmp_path):
        config = tmp_path / "tabflows.yaml"
        config.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="mapping"):
            load_settings(config)
