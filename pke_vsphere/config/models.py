"""Pydantic models for the control plane configuration file.

Structure::

    database:
      url: sqlite:///pke-vsphere.db
    temporal:
      address: localhost:7233
      namespace: default
      task_queue: pke-vsphere
    pipeline:
      external_url: https://pipeline.example.com/pipeline
      external_url_insecure: false
      encryption_key: <fernet key>
    pke:
      version: 0.4.14
      oidc_issuer_url: ""
    workflow:
      master_ready_timeout: 3600
"""

from __future__ import annotations

from pydantic import BaseModel, Field

DEFAULT_PKE_VERSION = "0.4.14"
DEFAULT_TASK_QUEUE = "pke-vsphere"


class DatabaseConfig(BaseModel):
    url: str = Field(default="sqlite:///pke-vsphere.db")
    echo: bool = Field(default=False)


class TemporalConfig(BaseModel):
    address: str = Field(default="localhost:7233")
    namespace: str = Field(default="default")
    task_queue: str = Field(default=DEFAULT_TASK_QUEUE)


class PipelineConfig(BaseModel):
    """How provisioned nodes reach back to the control plane."""

    external_url: str = Field(default="")
    external_url_insecure: bool = Field(default=False)
    encryption_key: str = Field(default="")


class PKEConfig(BaseModel):
    version: str = Field(default=DEFAULT_PKE_VERSION)
    oidc_issuer_url: str = Field(default="")


class WorkflowConfig(BaseModel):
    master_ready_timeout: int = Field(default=3600, gt=0, description="Seconds")
    activity_workers: int = Field(default=10, gt=0)


class ControlPlaneConfig(BaseModel):
    """Root model of the configuration file."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    temporal: TemporalConfig = Field(default_factory=TemporalConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    pke: PKEConfig = Field(default_factory=PKEConfig)
    workflow: WorkflowConfig = Field(default_factory=WorkflowConfig)
