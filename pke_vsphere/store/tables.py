"""SQLAlchemy table mappings for the cluster store."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ClusterRow(Base):
    __tablename__ = "vsphere_pke_clusters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    uid = Column(String(36), nullable=False, unique=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    organization_id = Column(Integer, nullable=False, index=True)
    created_by = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    status = Column(String(32), nullable=False, default="")
    status_message = Column(Text, nullable=False, default="")

    secret_id = Column(String(255), nullable=False, default="")
    config_secret_id = Column(String(255), nullable=False, default="")
    ssh_secret_id = Column(String(255), nullable=False, default="")

    kubernetes_version = Column(String(32), nullable=False, default="")
    rbac_enabled = Column(Boolean, nullable=False, default=True)
    oidc_enabled = Column(Boolean, nullable=False, default=False)
    network = Column(JSON, nullable=False, default=dict)
    http_proxy = Column(JSON, nullable=False, default=dict)

    resource_pool = Column(String(255), nullable=False, default="")
    folder = Column(String(255), nullable=False, default="")
    datastore = Column(String(255), nullable=False, default="")
    load_balancer_ip_range = Column(String(255), nullable=False, default="")

    active_workflow_id = Column(String(255), nullable=False, default="")

    node_pools = relationship(
        "NodePoolRow",
        back_populates="cluster",
        cascade="all, delete-orphan",
        order_by="NodePoolRow.id",
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_vsphere_pke_cluster_org_name"),
    )


class NodePoolRow(Base):
    __tablename__ = "vsphere_pke_node_pools"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cluster_id = Column(Integer, ForeignKey("vsphere_pke_clusters.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    created_by = Column(Integer, nullable=False, default=0)
    roles = Column(JSON, nullable=False, default=list)
    size = Column(Integer, nullable=False, default=0)
    vcpu = Column(Integer, nullable=False, default=0)
    ram = Column(Integer, nullable=False, default=0)
    admin_username = Column(String(255), nullable=False, default="")
    template_name = Column(String(255), nullable=False, default="")

    cluster = relationship("ClusterRow", back_populates="node_pools")

    __table_args__ = (
        UniqueConstraint("cluster_id", "name", name="uq_vsphere_pke_node_pool_name"),
    )


class StatusHistoryRow(Base):
    __tablename__ = "cluster_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cluster_id = Column(Integer, nullable=False, index=True)
    cluster_name = Column(String(255), nullable=False)
    from_status = Column(String(32), nullable=False)
    from_status_message = Column(Text, nullable=False)
    to_status = Column(String(32), nullable=False)
    to_status_message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
