"""
Typed exceptions for the inventory core.

Every error carries a machine-readable ``code`` and structured attributes so
callers (the API blueprint, CLI commands, tests) catch by type and never parse
messages.

    PackTrackError
    +-- ValidationError
    +-- NotFoundError
    +-- InsufficientStockError
    +-- InvalidTransitionError
    +-- ConcurrencyConflictError
"""

from __future__ import annotations

from typing import Any


class PackTrackError(Exception):
    """Base class for all inventory-core errors."""

    code: str = "PACKTRACK_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationError(PackTrackError):
    """Input rejected before any state was touched."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class NotFoundError(PackTrackError):
    code: str = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({"resource": self.resource, "id": self.identifier})
        return data


class InsufficientStockError(PackTrackError):
    """Raised when a committed draw cannot be fully served from active lots."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        material_id: int | None,
        required: float,
        available: float,
        *,
        product_id: int | None = None,
        shortages: list[dict[str, Any]] | None = None,
    ):
        self.material_id = material_id
        self.product_id = product_id
        self.required = required
        self.available = available
        self.shortfall = max(required - available, 0.0)
        self.shortages = shortages or []
        subject = f"material {material_id}" if material_id is not None else f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {subject}: required {required:.4f}, "
            f"available {available:.4f}, missing {self.shortfall:.4f}"
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "material_id": self.material_id,
                "product_id": self.product_id,
                "required": self.required,
                "available": self.available,
                "shortfall": self.shortfall,
            }
        )
        if self.shortages:
            data["shortages"] = self.shortages
        return data


class InvalidTransitionError(PackTrackError):
    code: str = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, entity: str = "order"):
        self.from_status = from_status
        self.to_status = to_status
        self.entity = entity
        super().__init__(f"Cannot move {entity} from '{from_status}' to '{to_status}'")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({"from": self.from_status, "to": self.to_status, "entity": self.entity})
        return data


class ConcurrencyConflictError(PackTrackError):
    """Another writer won the race for the same material or order."""

    code: str = "CONCURRENCY_CONFLICT"
