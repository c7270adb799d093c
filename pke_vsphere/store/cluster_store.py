"""Relational cluster store.

The single source of truth for cluster and node pool state.  Every method
runs in its own transaction; a missing row surfaces as a
:class:`~pke_vsphere.errors.NotFoundError` subclass so callers can branch on
``is_not_found`` instead of parsing messages.
"""

from __future__ import annotations

import logging
from typing import List

from sqlalchemy import Engine, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from pke_vsphere.errors import (
    ClusterAlreadyExistsError,
    ClusterNotFoundError,
    NodePoolNotFoundError,
    StoreError,
    WorkflowConflictError,
)
from pke_vsphere.store.models import (
    CREATING,
    CREATING_MESSAGE,
    Cluster,
    CreateParams,
    HTTPProxy,
    Kubernetes,
    Network,
    NodePool,
    StatusHistoryEntry,
)
from pke_vsphere.store.tables import Base, ClusterRow, NodePoolRow, StatusHistoryRow

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Row <-> entity conversion
# ---------------------------------------------------------------------------


def _node_pool_from_row(row: NodePoolRow) -> NodePool:
    return NodePool(
        name=row.name,
        created_by=row.created_by,
        roles=list(row.roles or []),
        size=row.size,
        vcpu=row.vcpu,
        ram=row.ram,
        admin_username=row.admin_username,
        template_name=row.template_name,
    )


def _fill_node_pool_row(row: NodePoolRow, node_pool: NodePool) -> None:
    row.name = node_pool.name
    row.created_by = node_pool.created_by
    row.roles = list(node_pool.roles)
    row.size = node_pool.size
    row.vcpu = node_pool.vcpu
    row.ram = node_pool.ram
    row.admin_username = node_pool.admin_username
    row.template_name = node_pool.template_name


def _cluster_from_row(row: ClusterRow) -> Cluster:
    return Cluster(
        id=row.id,
        uid=row.uid,
        name=row.name,
        organization_id=row.organization_id,
        created_by=row.created_by,
        creation_time=row.created_at,
        status=row.status,
        status_message=row.status_message,
        secret_id=row.secret_id,
        config_secret_id=row.config_secret_id,
        ssh_secret_id=row.ssh_secret_id,
        kubernetes=Kubernetes(
            version=row.kubernetes_version,
            rbac=row.rbac_enabled,
            oidc=row.oidc_enabled,
            network=Network.model_validate(row.network or {}),
        ),
        http_proxy=HTTPProxy.model_validate(row.http_proxy or {}),
        resource_pool=row.resource_pool,
        folder=row.folder,
        datastore=row.datastore,
        load_balancer_ip_range=row.load_balancer_ip_range,
        active_workflow_id=row.active_workflow_id,
        node_pools=[_node_pool_from_row(np) for np in row.node_pools],
    )


def _validate_cluster_id(cluster_id: int) -> None:
    if not cluster_id:
        raise StoreError("cluster ID cannot be 0")


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SQLClusterStore:
    """Cluster store backed by any SQLAlchemy-supported database."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_schema(self) -> None:
        """Create the store's tables if they do not exist yet."""
        logger.info("Creating cluster store tables on %s", self.engine.url)
        Base.metadata.create_all(self.engine)

    # -- helpers ------------------------------------------------------------

    def _get_row(self, session: Session, cluster_id: int) -> ClusterRow:
        _validate_cluster_id(cluster_id)
        row = session.execute(
            select(ClusterRow)
            .where(ClusterRow.id == cluster_id)
            .options(selectinload(ClusterRow.node_pools))
        ).scalar_one_or_none()
        if row is None:
            raise ClusterNotFoundError(cluster_id)
        return row

    def _get_node_pool_row(self, session: Session, cluster_id: int, name: str) -> NodePoolRow:
        if not name:
            raise StoreError("empty node pool name")
        row = self._get_row(session, cluster_id)
        for np in row.node_pools:
            if np.name == name:
                return np
        raise NodePoolNotFoundError(cluster_id, name)

    # -- cluster ------------------------------------------------------------

    def create(self, params: CreateParams) -> Cluster:
        row = ClusterRow(
            name=params.name,
            organization_id=params.organization_id,
            created_by=params.created_by,
            status=CREATING,
            status_message=CREATING_MESSAGE,
            secret_id=params.secret_id,
            ssh_secret_id=params.ssh_secret_id,
            kubernetes_version=params.kubernetes.version,
            rbac_enabled=params.kubernetes.rbac,
            oidc_enabled=params.kubernetes.oidc,
            network=params.kubernetes.network.model_dump(),
            http_proxy=params.http_proxy.model_dump(),
            resource_pool=params.resource_pool,
            folder=params.folder,
            datastore=params.datastore,
            load_balancer_ip_range=params.load_balancer_ip_range,
            active_workflow_id="",
        )
        for np in params.node_pools:
            np_row = NodePoolRow()
            _fill_node_pool_row(np_row, np)
            row.node_pools.append(np_row)

        try:
            with Session(self.engine) as session, session.begin():
                session.add(row)
                session.flush()
                cluster = _cluster_from_row(row)
        except IntegrityError as exc:
            if self.exists(params.organization_id, params.name):
                raise ClusterAlreadyExistsError(params.organization_id, params.name) from exc
            raise

        logger.info("Created cluster %s (id=%d, uid=%s)", cluster.name, cluster.id, cluster.uid)
        return cluster

    def exists(self, organization_id: int, name: str) -> bool:
        with Session(self.engine) as session:
            found = session.execute(
                select(ClusterRow.id).where(
                    ClusterRow.organization_id == organization_id,
                    ClusterRow.name == name,
                )
            ).first()
        return found is not None

    def get_by_id(self, cluster_id: int) -> Cluster:
        with Session(self.engine) as session:
            return _cluster_from_row(self._get_row(session, cluster_id))

    def delete(self, cluster_id: int) -> None:
        with Session(self.engine) as session, session.begin():
            row = self._get_row(session, cluster_id)
            session.delete(row)
        logger.info("Deleted cluster record %d", cluster_id)

    def set_status(self, cluster_id: int, status: str, message: str) -> None:
        """Persist a status change and record it in the status history.

        Repeating the current (status, message) pair is a no-op: nothing is
        written and no history row is added.
        """
        with Session(self.engine) as session, session.begin():
            row = self._get_row(session, cluster_id)
            if row.status == status and row.status_message == message:
                return

            session.add(
                StatusHistoryRow(
                    cluster_id=row.id,
                    cluster_name=row.name,
                    from_status=row.status,
                    from_status_message=row.status_message,
                    to_status=status,
                    to_status_message=message,
                )
            )
            row.status = status
            row.status_message = message

        logger.debug("Cluster %d status set to %s: %s", cluster_id, status, message)

    def status_history(self, cluster_id: int) -> List[StatusHistoryEntry]:
        with Session(self.engine) as session:
            rows = session.execute(
                select(StatusHistoryRow)
                .where(StatusHistoryRow.cluster_id == cluster_id)
                .order_by(StatusHistoryRow.id)
            ).scalars()
            return [
                StatusHistoryEntry(
                    cluster_id=r.cluster_id,
                    cluster_name=r.cluster_name,
                    from_status=r.from_status,
                    from_status_message=r.from_status_message,
                    to_status=r.to_status,
                    to_status_message=r.to_status_message,
                    created_at=r.created_at,
                )
                for r in rows
            ]

    def set_active_workflow_id(self, cluster_id: int, workflow_id: str) -> None:
        """Unconditionally record (or clear, with ``""``) the active workflow."""
        with Session(self.engine) as session, session.begin():
            row = self._get_row(session, cluster_id)
            row.active_workflow_id = workflow_id

    def acquire_active_workflow(self, cluster_id: int, workflow_id: str, expected: str = "") -> None:
        """Compare-and-swap the active workflow ID.

        Sets ``active_workflow_id`` to *workflow_id* only if it currently
        equals *expected*.  Raises :class:`WorkflowConflictError` otherwise.
        """
        with Session(self.engine) as session, session.begin():
            result = session.execute(
                update(ClusterRow)
                .where(ClusterRow.id == cluster_id)
                .where(ClusterRow.active_workflow_id == expected)
                .values(active_workflow_id=workflow_id)
            )
            if result.rowcount == 1:
                return
            row = self._get_row(session, cluster_id)
            raise WorkflowConflictError(cluster_id, row.active_workflow_id)

    def set_config_secret_id(self, cluster_id: int, secret_id: str) -> None:
        with Session(self.engine) as session, session.begin():
            self._get_row(session, cluster_id).config_secret_id = secret_id

    def get_config_secret_id(self, cluster_id: int) -> str:
        with Session(self.engine) as session:
            return self._get_row(session, cluster_id).config_secret_id

    def set_ssh_secret_id(self, cluster_id: int, secret_id: str) -> None:
        with Session(self.engine) as session, session.begin():
            self._get_row(session, cluster_id).ssh_secret_id = secret_id

    # -- node pools ---------------------------------------------------------

    def create_node_pool(self, cluster_id: int, node_pool: NodePool) -> None:
        with Session(self.engine) as session, session.begin():
            row = self._get_row(session, cluster_id)
            np_row = NodePoolRow()
            _fill_node_pool_row(np_row, node_pool)
            row.node_pools.append(np_row)

    def delete_node_pool(self, cluster_id: int, name: str) -> None:
        with Session(self.engine) as session, session.begin():
            np_row = self._get_node_pool_row(session, cluster_id, name)
            session.delete(np_row)

    def update_node_pool_size(self, cluster_id: int, name: str, size: int) -> None:
        with Session(self.engine) as session, session.begin():
            self._get_node_pool_row(session, cluster_id, name).size = size
