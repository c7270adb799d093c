"""Error taxonomy shared by drivers, activities and workflows.

Errors carry their classification as attributes instead of being matched on
message text:

* ``ValidationError``: bad input, never retried, never reaches a workflow.
* ``not_found``: any exception with a truthy ``not_found`` attribute is a
  "does not exist" condition (see :func:`is_not_found`).
* ``FatalActivityError``: an activity failure the retry policy must not
  retry.
* ``CombinedError``: the joined failures of a fan-out.
"""

from __future__ import annotations

from typing import Iterable, List, Optional


class PKEError(Exception):
    """Base class for control plane errors."""


class ValidationError(PKEError):
    """Invalid request input."""

    input_validation_error = True
    retriable = False


class NotFoundError(PKEError):
    """A referenced record or resource does not exist."""

    not_found = True


class ClusterNotFoundError(NotFoundError):
    def __init__(self, cluster_id: int) -> None:
        super().__init__(f"cluster {cluster_id} was not found")
        self.cluster_id = cluster_id


class NodePoolNotFoundError(NotFoundError):
    def __init__(self, cluster_id: int, name: str) -> None:
        super().__init__(f"node pool {name!r} of cluster {cluster_id} was not found")
        self.cluster_id = cluster_id
        self.name = name


class SecretNotFoundError(NotFoundError):
    def __init__(self, organization_id: int, secret: str) -> None:
        super().__init__(f"secret {secret!r} of organization {organization_id} was not found")
        self.organization_id = organization_id
        self.secret = secret


class StoreError(PKEError):
    """Invalid arguments passed to a store operation."""


class ClusterAlreadyExistsError(PKEError):
    def __init__(self, organization_id: int, name: str) -> None:
        super().__init__(f"cluster {name!r} already exists in organization {organization_id}")
        self.organization_id = organization_id
        self.name = name


class WorkflowConflictError(PKEError):
    """Another workflow already holds the cluster's active workflow slot."""

    def __init__(self, cluster_id: int, active_workflow_id: str) -> None:
        super().__init__(
            f"cluster {cluster_id} is busy with workflow {active_workflow_id!r}"
        )
        self.cluster_id = cluster_id
        self.active_workflow_id = active_workflow_id


class FatalActivityError(PKEError):
    """Activity failure that retrying cannot fix."""

    retriable = False


class CombinedError(PKEError):
    """Several errors reported together, in dispatch order."""

    def __init__(self, errors: Iterable[BaseException]) -> None:
        self.errors: List[BaseException] = list(errors)
        super().__init__("; ".join(str(e) for e in self.errors))


def is_not_found(exc: Optional[BaseException]) -> bool:
    """Return True if *exc* (or anything it wraps) reports ``not_found``."""
    while exc is not None:
        if getattr(exc, "not_found", False):
            return True
        exc = exc.__cause__
    return False


def is_retriable(exc: BaseException) -> bool:
    return getattr(exc, "retriable", True)


def combine(errors: Iterable[Optional[BaseException]]) -> Optional[BaseException]:
    """Collapse a list of optional errors.

    Returns ``None`` if every entry is ``None``, the error itself if exactly
    one is set, and a :class:`CombinedError` otherwise.
    """
    errs = [e for e in errors if e is not None]
    if not errs:
        return None
    if len(errs) == 1:
        return errs[0]
    return CombinedError(errs)


def unwrap_error(exc: BaseException) -> BaseException:
    """Follow the ``__cause__`` chain down to the innermost error.

    Workflow engines wrap activity failures in several layers; the status
    message shown to operators comes from the innermost one.
    """
    while exc.__cause__ is not None:
        exc = exc.__cause__
    return exc


def error_message(exc: BaseException) -> str:
    """Operator-facing message for *exc*.

    Control plane errors already carry a composed message; anything else
    (engine wrappers in particular) is reported by its innermost cause.
    """
    if isinstance(exc, PKEError):
        return str(exc)
    root = unwrap_error(exc)
    return str(root) or type(root).__name__
