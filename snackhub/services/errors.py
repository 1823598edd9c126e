"""
Typed failures raised by the reconciliation engine and the ordering services.

Every failure of a unit of work reaches the caller as one of these; nothing
is retried internally.
"""

from __future__ import annotations


class ReconcileError(Exception):
    """Base class for reconciliation failures."""


# ---------- INPUT VALIDATION ----------
class InputValidationError(ReconcileError):
    pass


class MalformedRowError(InputValidationError):
    def __init__(self, line_number: int, raw: str, reason: str) -> None:
        self.line_number = line_number
        self.raw = raw
        self.reason = reason
        super().__init__(f"Malformed row at line {line_number} ({reason}): {raw!r}")


class MissingDatasetError(InputValidationError):
    def __init__(self, name: str, path: str | None = None) -> None:
        self.name = name
        self.path = path
        where = f" at {path}" if path else ""
        super().__init__(f"Required dataset {name!r} is missing or empty{where}")


class DatasetValidationError(InputValidationError):
    def __init__(self, name: str, detail: str) -> None:
        self.name = name
        self.detail = detail
        super().__init__(f"Dataset {name!r} failed validation: {detail}")


# ---------- REFERENTIAL INTEGRITY ----------
class ReferentialGapError(ReconcileError):
    """A batch row points at an id that is not part of the dataset being loaded."""

    def __init__(self, entity: str, field: str, identifier: str | None) -> None:
        self.entity = entity
        self.field = field
        self.identifier = identifier
        super().__init__(f"{entity}.{field} references missing id {identifier!r}")


class ConstraintViolationError(ReconcileError):
    """The store refused a batch row for a reason insert-if-absent does not absorb."""

    def __init__(self, batch: str, detail: str) -> None:
        self.batch = batch
        self.detail = detail
        super().__init__(f"Batch {batch!r} rejected by the store: {detail}")


class DuplicateLineItemError(ReconcileError):
    def __init__(self, entity: str, envelope_id: str, product_id: str) -> None:
        self.entity = entity
        self.envelope_id = envelope_id
        self.product_id = product_id
        super().__init__(f"{entity}: product {product_id!r} already present on {envelope_id!r}")


# ---------- UNIT OF WORK ----------
class TransactionTimeoutError(ReconcileError):
    def __init__(self, unit: str, timeout_seconds: float, step: str | None = None) -> None:
        self.unit = unit
        self.timeout_seconds = timeout_seconds
        self.step = step
        at = f" at step {step!r}" if step else ""
        super().__init__(f"Unit of work {unit!r} exceeded {timeout_seconds:g}s{at}; rolled back")


class UnitOfWorkCancelled(ReconcileError):
    def __init__(self, unit: str, step: str | None = None) -> None:
        self.unit = unit
        self.step = step
        at = f" at step {step!r}" if step else ""
        super().__init__(f"Unit of work {unit!r} cancelled{at}; rolled back")


# ---------- LIVE ORDERING PATH ----------
class NotFoundError(LookupError):
    def __init__(self, entity: str, identifier: str) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier!r} not found")


class InvalidTransitionError(ValueError):
    def __init__(self, entity: str, current: str, target: str) -> None:
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"{entity} cannot move from {current} to {target}")
