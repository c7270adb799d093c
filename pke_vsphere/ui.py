"""Console output for the ``pke-vsphere`` CLI.

Thin wrapper around :mod:`rich`.  Operator-facing messages go through this
module; ``logger.*`` calls stay for structured logging.
"""

from __future__ import annotations

from typing import Iterable

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pke_vsphere.store.models import (
    CREATING,
    DELETING,
    ERROR,
    RUNNING,
    UPDATING,
    WARNING,
    Cluster,
    StatusHistoryEntry,
)

console = Console(stderr=False, force_terminal=None)

_PASS = "[bold green]✓[/]"
_FAIL = "[bold red]✗[/]"
_WARN = "[bold yellow]⚠[/]"
_ARROW = "[bold cyan]›[/]"

_STATUS_STYLE = {
    RUNNING: "green",
    CREATING: "cyan",
    UPDATING: "cyan",
    DELETING: "magenta",
    WARNING: "yellow",
    ERROR: "red",
}


def ok(msg: str) -> None:
    console.print(f"  {_PASS} {msg}")


def fail(msg: str) -> None:
    console.print(f"  {_FAIL} [red]{msg}[/]")


def warn(msg: str) -> None:
    console.print(f"  {_WARN} [yellow]{msg}[/]")


def step(msg: str) -> None:
    """Cyan arrow + in-progress action."""
    console.print(f"  {_ARROW} {msg}")


def detail(key: str, value: str) -> None:
    console.print(f"    [bold]{key}[/]: {value}")


def error_panel(title: str, body: str) -> None:
    console.print()
    console.print(
        Panel(body, title=f"[bold red]{title}[/]", border_style="red", padding=(1, 2))
    )


def status_text(status: str) -> str:
    style = _STATUS_STYLE.get(status, "white")
    return f"[{style}]{status}[/]"


def cluster_summary(cluster: Cluster) -> None:
    """Print a cluster's identity, status and node pools."""
    console.print()
    console.print(f"[bold blue]── {cluster.name} ──[/]")
    detail("id", str(cluster.id))
    detail("uid", cluster.uid)
    detail("status", f"{status_text(cluster.status)} {cluster.status_message}")
    detail("kubernetes", cluster.kubernetes.version)
    if cluster.active_workflow_id:
        detail("active workflow", cluster.active_workflow_id)

    table = Table(show_header=True, header_style="bold")
    table.add_column("node pool")
    table.add_column("roles")
    table.add_column("size", justify="right")
    table.add_column("shape")
    table.add_column("template")
    for np in cluster.node_pools:
        table.add_row(np.name, ",".join(np.roles), str(np.size), np.instance_type(), np.template_name)
    console.print(table)


def status_history(entries: Iterable[StatusHistoryEntry]) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("time")
    table.add_column("from")
    table.add_column("to")
    table.add_column("message")
    for e in entries:
        when = e.created_at.isoformat(timespec="seconds") if e.created_at else ""
        table.add_row(when, e.from_status, status_text(e.to_status), e.to_status_message)
    console.print(table)
