"""
orderflow/errors.py

Typed error taxonomy for the entry pipeline.

Every error carries:
- code: machine-readable, stable across message wording changes
- http_status: how the JSON API reports it
- details: structured data (entry id, missing fields, ...)

Hierarchy:

    OrderflowError
    +-- ValidationError            400  missing/malformed input
    +-- AuthenticationError        401  not logged in / bad credentials
    +-- AuthorizationError         403  role not permitted for operation
    +-- NotFoundError              404  partner/project/entry/user unknown
    +-- PreconditionError          409  pipeline guard unmet
    +-- ReferentialIntegrityError  409  delete blocked by children
    +-- PersistenceError           500  database failure (infrastructure)

None of these are retried; each is terminal for the request that raised it.
"""

from __future__ import annotations

from typing import Any, Dict, List


class OrderflowError(Exception):
    """Base class for all errors raised by the core."""

    code = "ORDERFLOW_ERROR"
    http_status = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": self.code, "message": self.message}
        payload.update(self.details)
        return payload


class ValidationError(OrderflowError):
    code = "VALIDATION_ERROR"
    http_status = 400


class AuthenticationError(OrderflowError):
    code = "AUTHENTICATION_REQUIRED"
    http_status = 401


class InvalidCredentialsError(AuthenticationError):
    code = "INVALID_CREDENTIALS"


class AuthorizationError(OrderflowError):
    code = "ACCESS_DENIED"
    http_status = 403

    def __init__(self, role: str | None, operation: str, allowed: List[str] | None = None) -> None:
        super().__init__(
            f"Role '{role}' may not perform {operation}",
            role=role,
            operation=operation,
            allowed_roles=allowed or [],
        )
        self.role = role
        self.operation = operation


class NotFoundError(OrderflowError):
    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} {entity_id} not found", entity=entity, entity_id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class PreconditionError(OrderflowError):
    code = "PRECONDITION_FAILED"
    http_status = 409


class ReferentialIntegrityError(OrderflowError):
    code = "REFERENTIAL_INTEGRITY"
    http_status = 409

    def __init__(self, message: str, *, entity: str, entity_id: Any, dependents: int) -> None:
        super().__init__(message, entity=entity, entity_id=entity_id, dependents=dependents)
        self.dependents = dependents


class PersistenceError(OrderflowError):
    code = "PERSISTENCE_ERROR"
    http_status = 500
