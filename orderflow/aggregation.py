"""
orderflow/aggregation.py

Backlog aggregation: per-stage pending counts and one notification color for
each partner / project in scope.

Buckets are derived entry states (mutually exclusive by construction):

    new_entries          NEW                  red
    pending_approval     AWAITING_APPROVAL    yellow   (full variant only)
    approved_pending_po  APPROVED_PENDING_PO  green
    pending_invoice      PENDING_INVOICE      orange
    pending_driver       PENDING_DRIVER_INFO  gray

Color priority: first nonzero bucket in the order above wins; nothing pending
means no color. The office variant (office, stores) drops pending_approval
from counts, total and color.

Nothing is cached: every call re-reads the store, so the engine is stateless
and safe to call concurrently (dashboards poll it every few seconds).
"""

from __future__ import annotations

import enum
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .errors import AuthorizationError, NotFoundError, ValidationError
from .policy import Actor, Operation, Role, allowed_roles, authorize
from .states import EntryState
from .store import EntryStore

logger = logging.getLogger(__name__)


class Variant(str, enum.Enum):
    FULL = "full"
    OFFICE = "office"

    @classmethod
    def for_role(cls, role) -> "Variant":
        """Variant a role sees by default. Roles without status views are denied."""
        parsed = Role.parse(role)
        if parsed in (Role.ADMIN, Role.OFFICE_ADMIN):
            return cls.FULL
        if parsed in (Role.OFFICE, Role.STORES):
            return cls.OFFICE
        allowed = sorted(r.value for r in allowed_roles(Operation.VIEW_STATUS_OFFICE))
        raise AuthorizationError(parsed.value if parsed else role, Operation.VIEW_STATUS_OFFICE.value, allowed=allowed)


@dataclass(frozen=True)
class Bucket:
    key: str
    state: EntryState
    color: str


BUCKETS: Tuple[Bucket, ...] = (
    Bucket("new_entries", EntryState.NEW, "red"),
    Bucket("pending_approval", EntryState.AWAITING_APPROVAL, "yellow"),
    Bucket("approved_pending_po", EntryState.APPROVED_PENDING_PO, "green"),
    Bucket("pending_invoice", EntryState.PENDING_INVOICE, "orange"),
    Bucket("pending_driver", EntryState.PENDING_DRIVER_INFO, "gray"),
)

# Priority order per variant (also the order of the counts mapping).
VARIANT_BUCKETS: Dict[Variant, Tuple[Bucket, ...]] = {
    Variant.FULL: BUCKETS,
    Variant.OFFICE: tuple(b for b in BUCKETS if b.state is not EntryState.AWAITING_APPROVAL),
}

VARIANT_OPERATION = {
    Variant.FULL: Operation.VIEW_STATUS_FULL,
    Variant.OFFICE: Operation.VIEW_STATUS_OFFICE,
}


@dataclass(frozen=True)
class StatusSummary:
    counts: Dict[str, int]
    total: int
    notification_color: Optional[str]

    def to_dict(self) -> dict:
        return {
            "notification_color": self.notification_color,
            "total_pending": self.total,
            "counts": dict(self.counts),
        }


@dataclass(frozen=True)
class UnitStatus:
    """Summary for one partner or project."""

    id: int
    name: str
    summary: StatusSummary
    extra: Dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = {"id": self.id, "name": self.name}
        data.update(self.extra)
        data.update(self.summary.to_dict())
        return data


def summarize(states: Counter, variant: Variant) -> StatusSummary:
    """
    Fold a Counter of EntryState into bucket counts, total and color.

    Pure function. COMPLETE entries (and, for the office variant,
    AWAITING_APPROVAL entries) fall in no bucket.
    """
    buckets = VARIANT_BUCKETS[variant]
    counts = {b.key: int(states.get(b.state, 0)) for b in buckets}

    color = None
    for b in buckets:
        if counts[b.key] > 0:
            color = b.color
            break

    return StatusSummary(counts=counts, total=sum(counts.values()), notification_color=color)


class AggregationEngine:
    """Computes backlog summaries on demand from the store."""

    def __init__(self, store: EntryStore) -> None:
        self.store = store

    def _resolve(self, actor: Actor, variant: Variant | str | None) -> Variant:
        if variant is None:
            chosen = Variant.for_role(actor.role)
        else:
            try:
                chosen = Variant(variant)
            except ValueError as exc:
                raise ValidationError(f"Unknown status variant: {variant}", field="variant") from exc
        authorize(actor.role, VARIANT_OPERATION[chosen])
        return chosen

    def partner_statuses(self, actor: Actor, variant: Variant | str | None = None) -> List[UnitStatus]:
        """One summary per partner, across all of its projects."""
        chosen = self._resolve(actor, variant)
        per_partner = self.store.count_states_per_partner()

        result = [
            UnitStatus(
                id=partner.id,
                name=partner.name,
                summary=summarize(per_partner.get(partner.id, Counter()), chosen),
                extra={"image_url": partner.image_url},
            )
            for partner in self.store.list_partners()
        ]
        logger.debug("Computed %s partner statuses (%s variant)", len(result), chosen.value)
        return result

    def project_statuses(
        self, actor: Actor, partner_id: int, variant: Variant | str | None = None
    ) -> List[UnitStatus]:
        """One summary per project of a partner."""
        chosen = self._resolve(actor, variant)
        if self.store.get_partner(partner_id) is None:
            raise NotFoundError("Partner", partner_id)

        per_project = self.store.count_states_per_project(partner_id=partner_id)
        return [
            UnitStatus(
                id=project.id,
                name=project.name,
                summary=summarize(per_project.get(project.id, Counter()), chosen),
                extra={"partner_id": project.partner_id},
            )
            for project in self.store.list_projects(partner_id=partner_id)
        ]

    def project_status(self, actor: Actor, project_id: int, variant: Variant | str | None = None) -> UnitStatus:
        """Summary of a single project's entries."""
        chosen = self._resolve(actor, variant)
        project = self.store.get_project(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)

        states = self.store.count_entries_by_state(project_id=project_id)
        return UnitStatus(
            id=project.id,
            name=project.name,
            summary=summarize(states, chosen),
            extra={"partner_id": project.partner_id},
        )
