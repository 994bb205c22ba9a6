"""
orderflow/states.py

Derived pipeline state of a data entry.

The stage of an entry is never stored. It is computed from which stage fields
are populated, evaluated top to bottom (first match wins):

    NEW                  order_form_no empty
    AWAITING_APPROVAL    order_form_no set, approved false
    APPROVED_PENDING_PO  approved, po_no empty
    PENDING_INVOICE      po_no set, invoice_no empty
    PENDING_DRIVER_INFO  invoice_no set, driver_description empty
    COMPLETE             driver_description set

derive_state() is the only place this table lives. The store counts buckets
with it and the aggregation engine colors with it.
"""

from __future__ import annotations

import enum
from typing import Any


class EntryState(str, enum.Enum):
    NEW = "new"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED_PENDING_PO = "approved_pending_po"
    PENDING_INVOICE = "pending_invoice"
    PENDING_DRIVER_INFO = "pending_driver_info"
    COMPLETE = "complete"


# Columns derive_state reads; the store loads only these for bucket counts.
STATE_FIELDS = ("order_form_no", "approved", "po_no", "invoice_no", "driver_description")


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


def derive_state(entry: Any) -> EntryState:
    """
    Map an entry (model instance, row or any object with the stage attributes) to its state.

    Pure function: no I/O, no clock.
    """
    if not _present(entry.order_form_no):
        return EntryState.NEW
    if not entry.approved:
        return EntryState.AWAITING_APPROVAL
    if not _present(entry.po_no):
        return EntryState.APPROVED_PENDING_PO
    if not _present(entry.invoice_no):
        return EntryState.PENDING_INVOICE
    if not _present(entry.driver_description):
        return EntryState.PENDING_DRIVER_INFO
    return EntryState.COMPLETE
