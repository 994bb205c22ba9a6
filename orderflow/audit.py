"""
orderflow/audit.py

Audit trail helper utilities.

Goals:
- Capture WHO did WHAT to WHICH record, with BEFORE/AFTER snapshots.
- Store username snapshot to preserve identity even if the user is removed later.
- Store IP address when called inside a request.

IMPORTANT:
- This helper ADDS AuditLog rows to the given session.
  The store adds them inside the transaction of the change itself (AuditSpec),
  and controls commit/rollback.
- Engines pass the acting user explicitly, so the trail works outside a request too.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from flask import has_request_context, request

from .models import AuditLog


def _safe_str(value: Any) -> Optional[str]:
    """
    Convert a value to a stable string representation suitable for JSON and DB storage.

    - For date/datetime/etc: str(value) is typically safe.
    - For None: return None.
    """
    if value is None:
        return None
    return str(value)


def serialize_model(instance: Any) -> Dict[str, Optional[str]]:
    """
    Convert a SQLAlchemy model instance to a dict snapshot based on table columns.

    Captures only scalar column values (not relationships).
    """
    data: Dict[str, Optional[str]] = {}
    for column in instance.__table__.columns:
        data[column.name] = _safe_str(getattr(instance, column.name))
    return data


@dataclass(frozen=True)
class AuditSpec:
    """
    Audit row to write together with the change it describes.

    The store adds it to the same transaction as the insert/update/delete,
    so both commit or neither does. `exclude` drops columns from the after
    snapshot (password hashes).
    """

    action: str
    actor: Any = None
    before: Optional[Dict[str, Any]] = None
    exclude: Tuple[str, ...] = ()


def log_action(
    session,
    entity: Any,
    action: str,
    *,
    actor: Any = None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an AuditLog row to session.

    Parameters:
        entity: model instance with .id (after flush)
        action: CREATE / DELETE / SET_PO / APPROVE / ...
        actor: object with .id and .username (Actor or User), optional
        before, after: dict snapshots (optional)
    """
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("log_action entity must have an 'id' attribute (after flush).")

    entry = AuditLog(
        user_id=getattr(actor, "id", None),
        username_snapshot=getattr(actor, "username", None),
        entity_type=entity.__class__.__name__,
        entity_id=int(entity_id),
        action=str(action),
        before_data=json.dumps(before, ensure_ascii=False) if before else None,
        after_data=json.dumps(after, ensure_ascii=False) if after else None,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    session.add(entry)
    return entry
