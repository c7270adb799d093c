"""CLI entry point for pke-vsphere.

Runs the Temporal worker and drives the cluster lifecycle from YAML
request files.

Usage::

    python -m pke_vsphere --help
    python -m pke_vsphere init-db
    python -m pke_vsphere worker
    python -m pke_vsphere create cluster.yaml
    python -m pke_vsphere status 42 --history
    python -m pke_vsphere delete 42 --force --wait
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Type, TypeVar

import typer
import yaml
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from pke_vsphere import ui
from pke_vsphere.config import ControlPlaneConfig, load_config, resolve_config_path
from pke_vsphere.errors import PKEError, ValidationError, is_not_found

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_VALIDATION = 2
EXIT_NOT_FOUND = 3

app = typer.Typer(
    name="pke-vsphere",
    help="Create, update and delete PKE clusters on vSphere.",
    no_args_is_help=True,
    add_completion=False,
)

M = TypeVar("M", bound=BaseModel)


# ── Root callback (global options) ───────────────────────────────────────────


@app.callback()
def _root_callback(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the control plane config YAML. Default: $PKE_VSPHERE_CONFIG or ~/.config/pke-vsphere/config.yaml",
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    """PKE on vSphere control plane."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = config


def _config(ctx: typer.Context) -> ControlPlaneConfig:
    try:
        return load_config(ctx.obj)
    except (PydanticValidationError, yaml.YAMLError) as exc:
        ui.error_panel("Invalid configuration", f"{resolve_config_path(ctx.obj)}\n\n{exc}")
        raise typer.Exit(EXIT_VALIDATION) from exc


def _load_request(path: Path, model: Type[M]) -> M:
    if not path.is_file():
        ui.fail(f"Request file not found: {path}")
        raise typer.Exit(EXIT_FAILURE)
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return model.model_validate(raw)
    except (PydanticValidationError, yaml.YAMLError) as exc:
        ui.error_panel("Invalid request", str(exc))
        raise typer.Exit(EXIT_VALIDATION) from exc


def _run(coro: Any) -> Any:
    """Run *coro*, mapping control plane errors to exit codes."""
    try:
        return asyncio.run(coro)
    except ValidationError as exc:
        ui.error_panel("Validation failed", str(exc))
        raise typer.Exit(EXIT_VALIDATION) from exc
    except PKEError as exc:
        if is_not_found(exc):
            ui.fail(str(exc))
            raise typer.Exit(EXIT_NOT_FOUND) from exc
        ui.error_panel("Failed", str(exc))
        raise typer.Exit(EXIT_FAILURE) from exc


# ── worker / init-db ─────────────────────────────────────────────────────────


@app.command()
def worker(ctx: typer.Context) -> None:
    """Run a Temporal worker for every workflow and activity."""
    from pke_vsphere.worker import run_worker

    cfg = _config(ctx)
    ui.step(f"Starting worker on task queue {cfg.temporal.task_queue} ({cfg.temporal.address})")
    try:
        _run(run_worker(cfg))
    except KeyboardInterrupt:
        ui.warn("Interrupted")


@app.command("init-db")
def init_db(ctx: typer.Context) -> None:
    """Create the cluster, status history and secret tables."""
    from pke_vsphere.worker import open_stores

    cfg = _config(ctx)
    store, secrets = open_stores(cfg)
    store.create_schema()
    secrets.create_schema()
    ui.ok(f"Database schema ready ({cfg.database.url})")


# ── lifecycle commands ───────────────────────────────────────────────────────


@app.command()
def create(
    ctx: typer.Context,
    request: Path = typer.Argument(..., help="Cluster creation request YAML."),
) -> None:
    """Validate a creation request and start the creation workflow."""
    from pke_vsphere.driver import ClusterCreationParams, ClusterCreator
    from pke_vsphere.worker import connect_client, open_stores

    cfg = _config(ctx)
    params = _load_request(request, ClusterCreationParams)
    store, secrets = open_stores(cfg)

    async def _create():
        client = await connect_client(cfg)
        return await ClusterCreator(cfg, secrets, store, client).create(params)

    ui.step(f"Creating cluster {params.name}")
    cluster = _run(_create())
    ui.ok(f"Cluster {cluster.name} is being created (id={cluster.id})")
    ui.cluster_summary(cluster)


@app.command()
def update(
    ctx: typer.Context,
    request: Path = typer.Argument(..., help="Cluster update request YAML."),
) -> None:
    """Reconcile a cluster's node pools with an update request."""
    from pke_vsphere.driver import ClusterUpdateParams, ClusterUpdater
    from pke_vsphere.worker import connect_client, open_stores

    cfg = _config(ctx)
    params = _load_request(request, ClusterUpdateParams)
    store, secrets = open_stores(cfg)

    async def _update():
        client = await connect_client(cfg)
        return await ClusterUpdater(cfg, secrets, store, client).update(params)

    ui.step(f"Updating cluster {params.cluster_id}")
    cluster = _run(_update())
    ui.ok(f"Cluster {cluster.name} is being updated")
    ui.cluster_summary(cluster)


@app.command()
def delete(
    ctx: typer.Context,
    cluster_id: int = typer.Argument(..., help="Cluster ID."),
    force: bool = typer.Option(False, "--force", help="Log failures and keep deleting."),
    wait: bool = typer.Option(False, "--wait", help="Wait for the deletion workflow to finish."),
) -> None:
    """Start deleting a cluster."""
    from pke_vsphere.driver import ClusterDeleter
    from pke_vsphere.worker import connect_client, open_stores

    cfg = _config(ctx)
    store, _ = open_stores(cfg)

    async def _delete():
        client = await connect_client(cfg)
        deleter = ClusterDeleter(cfg, store, client)
        workflow_id = await deleter.delete(cluster_id, forced=force)
        if wait:
            ui.step(f"Waiting for {workflow_id}")
            await deleter.wait_pending()
        return workflow_id

    workflow_id = _run(_delete())
    ui.ok(f"Deletion workflow {workflow_id} started" + (" and finished" if wait else ""))


@app.command()
def status(
    ctx: typer.Context,
    cluster_id: int = typer.Argument(..., help="Cluster ID."),
    history: bool = typer.Option(False, "--history", help="Show status transitions."),
) -> None:
    """Show a cluster's status and node pools."""
    from pke_vsphere.worker import open_stores

    cfg = _config(ctx)
    store, _ = open_stores(cfg)
    try:
        cluster = store.get_by_id(cluster_id)
    except PKEError as exc:
        ui.fail(str(exc))
        raise typer.Exit(EXIT_NOT_FOUND if is_not_found(exc) else EXIT_FAILURE) from exc

    ui.cluster_summary(cluster)
    if history:
        ui.status_history(store.status_history(cluster_id))


@app.command("master-ready")
def master_ready(
    ctx: typer.Context,
    cluster_id: int = typer.Argument(..., help="Cluster ID."),
    kubeconfig: Path = typer.Option(..., "--kubeconfig", help="Admin kubeconfig uploaded by the master."),
) -> None:
    """Store a master's kubeconfig and signal the creation workflow."""
    from pke_vsphere.driver import MasterReadyNotifier
    from pke_vsphere.worker import connect_client, open_stores

    cfg = _config(ctx)
    if not kubeconfig.is_file():
        ui.fail(f"Kubeconfig not found: {kubeconfig}")
        raise typer.Exit(EXIT_FAILURE)
    store, secrets = open_stores(cfg)

    async def _notify():
        client = await connect_client(cfg)
        return await MasterReadyNotifier(store, secrets, client).notify(
            cluster_id, kubeconfig.read_text(encoding="utf-8")
        )

    secret_id = _run(_notify())
    ui.ok(f"Master of cluster {cluster_id} reported ready (kubeconfig secret {secret_id})")


# ── Entry point ──────────────────────────────────────────────────────────────


def main() -> int:
    """Run the CLI and return an exit code."""
    try:
        app()
        return EXIT_SUCCESS
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
