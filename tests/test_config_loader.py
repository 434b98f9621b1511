"""Tests for leavesync.config_loader -- hierarchical config loading."""

import textwrap

import pytest

from leavesync.config_loader import (
    _interpolate_recursive,
    discover_config_files,
    interpolate_env_vars,
    load_hierarchical_config,
    load_yaml_file,
)

# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestInterpolateEnvVars:
    """Tests for ${VAR} and ${VAR:-default} substitution."""

    def test_replaces_set_var(self, monkeypatch):
        monkeypatch.setenv("BLOB_HOST", "blob.example.com")
        assert interpolate_env_vars("https://${BLOB_HOST}/api/data") == "https://blob.example.com/api/data"

    def test_unset_var_replaced_with_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("${UNSET_VAR_XYZ}") == ""

    def test_default_used_when_unset(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("${UNSET_VAR_XYZ:-manual}") == "manual"

    def test_nested_structures(self, monkeypatch):
        monkeypatch.setenv("MODE", "auto")
        data = {"sync": {"mode": "${MODE}", "poll_interval": 15}, "tags": ["${MODE}"]}
        assert _interpolate_recursive(data) == {
            "sync": {"mode": "auto", "poll_interval": 15},
            "tags": ["auto"],
        }


# -------------------------------------------------------------------------
# !include
# -------------------------------------------------------------------------


class TestIncludes:
    def test_include_relative_file(self, tmp_path):
        (tmp_path / "store.yml").write_text("url: https://example.com/api/data\n")
        main = tmp_path / "config.yml"
        main.write_text("store: !include store.yml\n")

        assert load_yaml_file(main) == {"store": {"url": "https://example.com/api/data"}}

    def test_circular_include_detected(self, tmp_path):
        (tmp_path / "a.yml").write_text("b: !include b.yml\n")
        (tmp_path / "b.yml").write_text("a: !include a.yml\n")

        with pytest.raises(ValueError, match="Circular include"):
            load_yaml_file(tmp_path / "a.yml")

    def test_missing_include(self, tmp_path):
        main = tmp_path / "config.yml"
        main.write_text("store: !include nowhere.yml\n")

        with pytest.raises(FileNotFoundError, match="Include file not found"):
            load_yaml_file(main)


# -------------------------------------------------------------------------
# Discovery and merge
# -------------------------------------------------------------------------


class TestDiscovery:
    def test_no_files(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        monkeypatch.delenv("LEAVESYNC_CONFIG", raising=False)

        assert discover_config_files() == []
        assert load_hierarchical_config() == {}

    def test_env_file_outranks_project_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        project = tmp_path / ".leavesync"
        project.mkdir()
        (project / "config.yml").write_text(
            textwrap.dedent(
                """\
                store:
                  path: ./shared
                sync:
                  mode: manual
                """
            )
        )
        explicit = tmp_path / "explicit.yml"
        explicit.write_text("sync:\n  mode: ${SYNC_MODE_UNDER_TEST:-auto}\n")
        monkeypatch.setenv("LEAVESYNC_CONFIG", str(explicit))
        monkeypatch.delenv("SYNC_MODE_UNDER_TEST", raising=False)

        files = discover_config_files()
        merged = load_hierarchical_config()

        assert files[0] == explicit.resolve()
        assert merged == {"store": {"path": "./shared"}, "sync": {"mode": "auto"}}
