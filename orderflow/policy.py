"""
orderflow/policy.py

Access policy: (role, operation) -> allow | deny.

Key rules:
- One table. Adding a role or operation is a one-place change.
- Pure: no request, no database. Authentication happens before this
  (unauthenticated calls never reach the policy).
- Deny surfaces as AuthorizationError, distinct from NotFound/Precondition.

Row-level visibility (the `user` role only sees self-authored entries) is a
filter applied by the workflow engine on top of an allowed List/Get.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, FrozenSet

from .errors import AuthorizationError


class Role(str, enum.Enum):
    USER = "user"
    OFFICE = "office"
    OFFICE_ADMIN = "office_admin"
    STORES = "stores"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value) -> "Role | None":
        """Role from a string; None if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class Operation(str, enum.Enum):
    # Entry workflow
    CREATE_ENTRY = "CreateEntry"
    SET_ORDER_FORM = "SetOrderForm"
    APPROVE = "Approve"
    SET_PO = "SetPO"
    SET_INVOICE = "SetInvoice"
    SET_DRIVER_DETAILS = "SetDriverDetails"
    SET_DRIVER_DETAILS_STORES = "SetDriverDetailsStores"
    ADMIN_UPDATE = "AdminUpdate"

    # Reads
    LIST_PARTNERS = "ListPartners"
    LIST_PROJECTS = "ListProjects"
    LIST_ENTRIES = "ListEntries"
    GET_ENTRY = "GetEntry"
    VIEW_STATUS_FULL = "ViewStatusFull"
    VIEW_STATUS_OFFICE = "ViewStatusOffice"

    # Directory & accounts
    CREATE_PARTNER = "CreatePartner"
    DELETE_PARTNER = "DeletePartner"
    CREATE_PROJECT = "CreateProject"
    DELETE_PROJECT = "DeleteProject"
    CREATE_USER = "CreateUser"
    LIST_USERS = "ListUsers"


ALL_ROLES: FrozenSet[Role] = frozenset(Role)
OFFICE_ROLES: FrozenSet[Role] = frozenset({Role.OFFICE, Role.OFFICE_ADMIN})
ADMIN_ONLY: FrozenSet[Role] = frozenset({Role.ADMIN})

POLICY: Dict[Operation, FrozenSet[Role]] = {
    Operation.CREATE_ENTRY: frozenset({Role.USER}),
    Operation.SET_ORDER_FORM: OFFICE_ROLES,
    Operation.APPROVE: frozenset({Role.ADMIN, Role.OFFICE_ADMIN}),
    Operation.SET_PO: OFFICE_ROLES,
    Operation.SET_INVOICE: OFFICE_ROLES,
    Operation.SET_DRIVER_DETAILS: OFFICE_ROLES,
    Operation.SET_DRIVER_DETAILS_STORES: frozenset({Role.STORES}),
    Operation.ADMIN_UPDATE: ADMIN_ONLY,
    Operation.LIST_PARTNERS: ALL_ROLES,
    Operation.LIST_PROJECTS: ALL_ROLES,
    Operation.LIST_ENTRIES: ALL_ROLES,
    Operation.GET_ENTRY: ALL_ROLES,
    Operation.VIEW_STATUS_FULL: frozenset({Role.ADMIN, Role.OFFICE_ADMIN}),
    Operation.VIEW_STATUS_OFFICE: frozenset({Role.OFFICE, Role.STORES, Role.ADMIN, Role.OFFICE_ADMIN}),
    Operation.CREATE_PARTNER: ADMIN_ONLY,
    Operation.DELETE_PARTNER: ADMIN_ONLY,
    Operation.CREATE_PROJECT: ADMIN_ONLY,
    Operation.DELETE_PROJECT: ADMIN_ONLY,
    Operation.CREATE_USER: ADMIN_ONLY,
    Operation.LIST_USERS: ADMIN_ONLY,
}


def allowed_roles(operation: Operation) -> FrozenSet[Role]:
    return POLICY.get(operation, frozenset())


def is_allowed(role, operation: Operation) -> bool:
    """True if role may perform operation. Unknown roles are denied."""
    parsed = Role.parse(role)
    if parsed is None:
        return False
    return parsed in allowed_roles(operation)


def authorize(role, operation: Operation) -> Role:
    """Return the parsed role, or raise AuthorizationError."""
    if not is_allowed(role, operation):
        raw = role.value if isinstance(role, Role) else role
        allowed = sorted(r.value for r in allowed_roles(operation))
        raise AuthorizationError(raw, operation.value, allowed=allowed)
    return Role.parse(role)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as the HTTP layer hands it to the engines."""

    id: int
    username: str
    role: Role

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(id=user.id, username=user.username, role=Role.parse(user.role))
