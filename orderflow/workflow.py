"""
orderflow/workflow.py

Entry workflow engine.

Pipeline (each step gated by the access policy first):

    Create                 user
    SetOrderForm           office, office_admin     upsert, stamps office_user_1/office_datetime_1
    Approve                admin, office_admin      idempotent, no guard on the order form
    SetPO                  office, office_admin     only when approved
    SetInvoice             office, office_admin     no guard on po_no (known gap)
    SetDriverDetails       office, office_admin     no guard (known gap)
    SetDriverDetailsStores stores                   only when invoice_no is set
    AdminUpdate            admin                    coalesce partial update, no guards

Rules:
- Every transition is a single conditional UPDATE through the store, and
  its audit row commits in the same transaction.
- Text fields longer than their column raise ValidationError.
- Stage timestamps are server-assigned and written once: re-running a stage
  keeps the first timestamp (COALESCE in the UPDATE).
- When a guarded update hits zero rows the entry is re-read to tell
  NotFoundError from PreconditionError.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

import sqlalchemy as sa

from .audit import AuditSpec, serialize_model
from .errors import NotFoundError, PreconditionError, ValidationError
from .models import Entry
from .policy import Actor, Operation, Role, authorize
from .store import EntryStore
from .utils import check_length, clean_text, parse_bool, parse_date, parse_datetime, parse_optional_int, utcnow

logger = logging.getLogger(__name__)


DRIVER_FIELDS = ("purchase_date", "drivers_name", "vehicle_no", "received", "driver_description")


def _parse_quantity(value: Any) -> int:
    parsed = parse_optional_int(value)
    if parsed is None or parsed < 1:
        raise ValueError(f"not a positive integer: {value!r}")
    return parsed


# AdminUpdate payload key -> parser
ADMIN_FIELDS: Dict[str, Callable[[Any], Any]] = {
    "user_name": clean_text,
    "user_datetime": parse_datetime,
    "product": clean_text,
    "quantity": _parse_quantity,
    "description": clean_text,
    "office_name": clean_text,
    "office_datetime": parse_datetime,
    "status": clean_text,
    "delivery_date": parse_datetime,
    "office_locked": parse_bool,
}


def _required_text(payload: Mapping[str, Any], key: str) -> str:
    value = _optional_text(payload, key)
    if value is None:
        raise ValidationError(f"{key} is required", field=key)
    return value


def _optional_text(payload: Mapping[str, Any], key: str) -> str | None:
    return check_length(Entry, key, clean_text(payload.get(key)))


def _positive_int(value: Any, key: str) -> int:
    parsed = parse_optional_int(value)
    if parsed is None or parsed < 1:
        raise ValidationError(f"{key} must be a positive integer", field=key)
    return parsed


def _parse_field(parser: Callable[[Any], Any], value: Any, key: str) -> Any:
    try:
        return parser(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{key} is malformed", field=key) from exc


class WorkflowEngine:
    """Validates and applies entry transitions."""

    def __init__(self, store: EntryStore, clock: Callable[[], Any] = utcnow) -> None:
        self.store = store
        self.clock = clock

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------
    def list_entries(self, actor: Actor, project_id: int | None = None) -> List[Entry]:
        """Entries in scope, newest first. The `user` role sees only its own."""
        role = authorize(actor.role, Operation.LIST_ENTRIES)
        requester_id = actor.id if role is Role.USER else None
        return self.store.list_entries(project_id=project_id, requester_id=requester_id)

    def get_entry(self, actor: Actor, entry_id: int) -> Entry:
        role = authorize(actor.role, Operation.GET_ENTRY)
        entry = self.store.get_entry(entry_id)
        if entry is None or (role is Role.USER and entry.user_id != actor.id):
            raise NotFoundError("Entry", entry_id)
        return entry

    # -----------------------------------------------------------------
    # 1. Create
    # -----------------------------------------------------------------
    def create(self, actor: Actor, payload: Mapping[str, Any]) -> Entry:
        authorize(actor.role, Operation.CREATE_ENTRY)

        project_id = parse_optional_int(payload.get("project_id"))
        if project_id is None:
            raise ValidationError("project_id is required", field="project_id")

        product = _required_text(payload, "product")
        quantity = _positive_int(payload.get("quantity"), "quantity")

        due_date = _parse_field(parse_date, payload.get("due_date"), "due_date")
        if due_date is None:
            raise ValidationError("due_date is required", field="due_date")

        if self.store.get_project(project_id) is None:
            raise ValidationError(f"Project {project_id} does not exist", field="project_id")

        fields = {
            "project_id": project_id,
            "user_id": actor.id,
            "user_name": actor.username,
            "product": product,
            "quantity": quantity,
            "description": _optional_text(payload, "description"),
            "due_date": due_date,
            "user_datetime": self.clock(),
        }
        entry = self.store.insert_entry(fields, audit=AuditSpec("CREATE", actor=actor))
        logger.info("Entry %s created by %s in project %s", entry.id, actor.username, project_id)
        return entry

    # -----------------------------------------------------------------
    # 2. Order form
    # -----------------------------------------------------------------
    def set_order_form(self, actor: Actor, entry_id: int, payload: Mapping[str, Any]) -> Entry:
        authorize(actor.role, Operation.SET_ORDER_FORM)
        fields = {
            "order_form_no": _required_text(payload, "order_form_no"),
            "notes": clean_text(payload.get("notes")),
            "office_user_1": actor.username,
            "office_datetime_1": sa.func.coalesce(Entry.office_datetime_1, self.clock()),
        }
        return self._apply(actor, entry_id, "SET_ORDER_FORM", fields)

    # -----------------------------------------------------------------
    # 3. Approve
    # -----------------------------------------------------------------
    def approve(self, actor: Actor, entry_id: int) -> Entry:
        authorize(actor.role, Operation.APPROVE)
        entry = self.store.update_entry_conditional(
            entry_id,
            {"approved": True, "approved_by": actor.username},
            Entry.approved.is_(False),
            audit=AuditSpec("APPROVE", actor=actor),
        )
        if entry is not None:
            logger.info("Entry %s approved by %s", entry_id, actor.username)
            return entry

        # Zero rows: unknown id, or already approved (no-op).
        entry = self._require(entry_id)
        logger.debug("Entry %s already approved; approve is a no-op", entry_id)
        return entry

    # -----------------------------------------------------------------
    # 4. Purchase order
    # -----------------------------------------------------------------
    def set_po(self, actor: Actor, entry_id: int, payload: Mapping[str, Any]) -> Entry:
        authorize(actor.role, Operation.SET_PO)
        fields = {
            "po_no": _required_text(payload, "po_no"),
            "office_user_2": actor.username,
            "office_datetime_2": sa.func.coalesce(Entry.office_datetime_2, self.clock()),
        }
        entry = self.store.update_entry_conditional(
            entry_id, fields, Entry.approved.is_(True), audit=AuditSpec("SET_PO", actor=actor)
        )
        if entry is None:
            self._require(entry_id)
            logger.warning("SetPO rejected for entry %s: not approved yet (%s)", entry_id, actor.username)
            raise PreconditionError("Entry not approved yet", entry_id=entry_id, requires="approved")

        logger.info("Entry %s PO set by %s", entry_id, actor.username)
        return entry

    # -----------------------------------------------------------------
    # 5. Invoice
    # -----------------------------------------------------------------
    def set_invoice(self, actor: Actor, entry_id: int, payload: Mapping[str, Any]) -> Entry:
        """No po_no guard here; only the UI hides the control before a PO exists."""
        authorize(actor.role, Operation.SET_INVOICE)
        fields = {
            "invoice_no": _required_text(payload, "invoice_no"),
            "office_user_3": actor.username,
            "office_datetime_3": sa.func.coalesce(Entry.office_datetime_3, self.clock()),
        }
        return self._apply(actor, entry_id, "SET_INVOICE", fields)

    # -----------------------------------------------------------------
    # 6/7. Driver details
    # -----------------------------------------------------------------
    def set_driver_details(self, actor: Actor, entry_id: int, payload: Mapping[str, Any]) -> Entry:
        """Office path. No invoice guard (UI-only gating)."""
        authorize(actor.role, Operation.SET_DRIVER_DETAILS)
        return self._apply(actor, entry_id, "SET_DRIVER_DETAILS", self._driver_fields(payload))

    def set_driver_details_stores(self, actor: Actor, entry_id: int, payload: Mapping[str, Any]) -> Entry:
        """Stores path. Rejected until an invoice number exists."""
        authorize(actor.role, Operation.SET_DRIVER_DETAILS_STORES)
        fields = self._driver_fields(payload)
        entry = self.store.update_entry_conditional(
            entry_id,
            fields,
            Entry.invoice_no.isnot(None),
            Entry.invoice_no != "",
            audit=AuditSpec("SET_DRIVER_DETAILS_STORES", actor=actor),
        )
        if entry is None:
            self._require(entry_id)
            logger.warning("Stores driver details rejected for entry %s: no invoice yet", entry_id)
            raise PreconditionError(
                "Cannot update driver details before invoice number is added",
                entry_id=entry_id,
                requires="invoice_no",
            )

        logger.info("Entry %s driver details set by stores user %s", entry_id, actor.username)
        return entry

    def _driver_fields(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        purchase_date = _parse_field(parse_date, payload.get("purchase_date"), "purchase_date")
        if purchase_date is None:
            raise ValidationError("purchase_date is required", field="purchase_date")
        fields: Dict[str, Any] = {"purchase_date": purchase_date}
        for key in DRIVER_FIELDS[1:]:
            fields[key] = _optional_text(payload, key)
        return fields

    # -----------------------------------------------------------------
    # 8. Admin override
    # -----------------------------------------------------------------
    def admin_update(self, actor: Actor, entry_id: int, payload: Mapping[str, Any]) -> Entry:
        """
        Replace-if-provided for each admin field; absent/null keeps the stored value.

        Always stamps updated_at. Bypasses every pipeline guard.
        """
        authorize(actor.role, Operation.ADMIN_UPDATE)

        fields: Dict[str, Any] = {}
        for key, parser in ADMIN_FIELDS.items():
            raw = payload.get(key)
            if raw is None or (isinstance(raw, str) and raw.strip() == ""):
                continue
            value = _parse_field(parser, raw, key)
            if value is not None:
                fields[key] = check_length(Entry, key, value)
        fields["updated_at"] = self.clock()

        before = self.store.get_entry(entry_id)
        before_snapshot = serialize_model(before) if before is not None else None
        return self._apply(actor, entry_id, "ADMIN_UPDATE", fields, before=before_snapshot)

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------
    def _require(self, entry_id: int) -> Entry:
        entry = self.store.get_entry(entry_id)
        if entry is None:
            raise NotFoundError("Entry", entry_id)
        return entry

    def _apply(
        self,
        actor: Actor,
        entry_id: int,
        action: str,
        fields: Dict[str, Any],
        *,
        before: Optional[Dict[str, Any]] = None,
    ) -> Entry:
        """Unguarded single-row update; zero rows means the entry does not exist."""
        entry = self.store.update_entry_conditional(
            entry_id, fields, audit=AuditSpec(action, actor=actor, before=before)
        )
        if entry is None:
            raise NotFoundError("Entry", entry_id)

        logger.info("Entry %s %s by %s", entry_id, action, actor.username)
        return entry
