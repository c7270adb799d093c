"""Tests for the pke-vsphere CLI commands that need no Temporal server."""

from __future__ import annotations

import pytest
from cryptography.fernet import Fernet
from typer.testing import CliRunner

from conftest import make_create_params
from pke_vsphere.cli import EXIT_FAILURE, EXIT_NOT_FOUND, EXIT_VALIDATION, app
from pke_vsphere.config import load_config
from pke_vsphere.worker import open_stores

runner = CliRunner()


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.delenv("PKE_VSPHERE_DATABASE_URL", raising=False)
    monkeypatch.setenv("PKE_VSPHERE_ENCRYPTION_KEY", Fernet.generate_key().decode())
    path = tmp_path / "config.yaml"
    path.write_text(f"database:\n  url: sqlite:///{tmp_path / 'pke.db'}\n")
    return path


def _invoke(config_path, *args):
    return runner.invoke(app, ["--config", str(config_path), *args])


class TestInitDB:
    def test_creates_schema(self, config_path):
        result = _invoke(config_path, "init-db")
        assert result.exit_code == 0, result.output
        assert "Database schema ready" in result.output

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("workflow:\n  master_ready_timeout: -1\n")
        result = _invoke(path, "init-db")
        assert result.exit_code == EXIT_VALIDATION


class TestStatus:
    def test_shows_cluster(self, config_path):
        assert _invoke(config_path, "init-db").exit_code == 0
        store, _ = open_stores(load_config(config_path))
        cluster = store.create(make_create_params())

        result = _invoke(config_path, "status", str(cluster.id), "--history")

        assert result.exit_code == 0, result.output
        assert "demo" in result.output
        assert "CREATING" in result.output
        assert "workers" in result.output

    def test_missing_cluster(self, config_path):
        assert _invoke(config_path, "init-db").exit_code == 0
        result = _invoke(config_path, "status", "99")
        assert result.exit_code == EXIT_NOT_FOUND


class TestRequestFiles:
    def test_missing_request(self, config_path, tmp_path):
        result = _invoke(config_path, "create", str(tmp_path / "absent.yaml"))
        assert result.exit_code == EXIT_FAILURE

    def test_malformed_request(self, config_path, tmp_path):
        request = tmp_path / "cluster.yaml"
        request.write_text("name: demo\nnode_pools: not-a-list\n")
        result = _invoke(config_path, "create", str(request))
        assert result.exit_code == EXIT_VALIDATION

    def test_missing_kubeconfig(self, config_path, tmp_path):
        result = _invoke(config_path, "master-ready", "1", "--kubeconfig", str(tmp_path / "absent"))
        assert result.exit_code == EXIT_FAILURE


def test_no_args_shows_help():
    result = runner.invoke(app, [])
    assert "Usage" in result.output
