"""Tests for pke_vsphere.config: file resolution and env overrides."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from pke_vsphere.config import load_config, resolve_config_path
from pke_vsphere.config.loader import CONFIG_ENV, default_config_path
from pke_vsphere.config.models import DEFAULT_PKE_VERSION, DEFAULT_TASK_QUEUE


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    for name in (
        CONFIG_ENV,
        "PKE_VSPHERE_DATABASE_URL",
        "PKE_VSPHERE_TEMPORAL_ADDRESS",
        "PKE_VSPHERE_ENCRYPTION_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


# ── path resolution ──────────────────────────────────────────────────


class TestResolveConfigPath:
    def test_explicit_path_wins(self, monkeypatch, tmp_path):
        monkeypatch.setenv(CONFIG_ENV, "/from/env.yaml")
        assert resolve_config_path(tmp_path / "cli.yaml") == tmp_path / "cli.yaml"

    def test_env(self, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV, "/from/env.yaml")
        assert str(resolve_config_path()) == "/from/env.yaml"

    def test_xdg_default(self, tmp_path):
        assert resolve_config_path() == tmp_path / "xdg" / "pke-vsphere" / "config.yaml"
        assert default_config_path() == resolve_config_path()


# ── loading ──────────────────────────────────────────────────────────


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = load_config(tmp_path / "absent.yaml")
        assert cfg.temporal.task_queue == DEFAULT_TASK_QUEUE
        assert cfg.pke.version == DEFAULT_PKE_VERSION
        assert cfg.workflow.master_ready_timeout == 3600

    def test_file_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "temporal:\n  address: temporal:7233\n"
            "pipeline:\n  external_url: https://pipeline.example.com\n"
            "workflow:\n  master_ready_timeout: 600\n"
        )
        cfg = load_config(path)
        assert cfg.temporal.address == "temporal:7233"
        assert cfg.temporal.namespace == "default"
        assert cfg.pipeline.external_url == "https://pipeline.example.com"
        assert cfg.workflow.master_ready_timeout == 600

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path).database.url == "sqlite:///pke-vsphere.db"

    def test_env_overrides_file(self, monkeypatch, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("database:\n  url: sqlite:///file.db\n")
        monkeypatch.setenv("PKE_VSPHERE_DATABASE_URL", "postgresql://db/pke")
        monkeypatch.setenv("PKE_VSPHERE_ENCRYPTION_KEY", "key")

        cfg = load_config(path)

        assert cfg.database.url == "postgresql://db/pke"
        assert cfg.pipeline.encryption_key == "key"

    def test_invalid_timeout(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("workflow:\n  master_ready_timeout: 0\n")
        with pytest.raises(ValidationError):
            load_config(path)
