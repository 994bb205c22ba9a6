"""
Tests for backlog aggregation.

Pure summarize() math first, then the engine against SQLite.
"""

from collections import Counter

import pytest

from orderflow.aggregation import BUCKETS, Variant, summarize
from orderflow.errors import AuthorizationError, NotFoundError, ValidationError
from orderflow.models import Project
from orderflow.extensions import db
from orderflow.states import EntryState


class TestSummarize:
    def test_empty_has_no_color(self):
        summary = summarize(Counter(), Variant.FULL)
        assert summary.total == 0
        assert summary.notification_color is None
        assert set(summary.counts) == {b.key for b in BUCKETS}

    @pytest.mark.parametrize(
        "state, color",
        [
            (EntryState.NEW, "red"),
            (EntryState.AWAITING_APPROVAL, "yellow"),
            (EntryState.APPROVED_PENDING_PO, "green"),
            (EntryState.PENDING_INVOICE, "orange"),
            (EntryState.PENDING_DRIVER_INFO, "gray"),
        ],
    )
    def test_single_bucket_color(self, state, color):
        assert summarize(Counter({state: 1}), Variant.FULL).notification_color == color

    def test_first_nonzero_bucket_wins(self):
        states = Counter({EntryState.PENDING_DRIVER_INFO: 4, EntryState.APPROVED_PENDING_PO: 1})
        assert summarize(states, Variant.FULL).notification_color == "green"

    def test_office_variant_drops_pending_approval(self):
        states = Counter({EntryState.AWAITING_APPROVAL: 3, EntryState.PENDING_INVOICE: 2})
        summary = summarize(states, Variant.OFFICE)
        assert "pending_approval" not in summary.counts
        assert summary.total == 2
        assert summary.notification_color == "orange"

    def test_office_variant_only_awaiting_approval_has_no_color(self):
        summary = summarize(Counter({EntryState.AWAITING_APPROVAL: 5}), Variant.OFFICE)
        assert summary.total == 0
        assert summary.notification_color is None

    def test_complete_is_in_no_bucket(self):
        summary = summarize(Counter({EntryState.COMPLETE: 9}), Variant.FULL)
        assert summary.total == 0

    def test_total_is_sum_of_counts(self):
        states = Counter({s: i + 1 for i, s in enumerate(EntryState)})
        for variant in Variant:
            summary = summarize(states, variant)
            assert summary.total == sum(summary.counts.values())


class TestVariantForRole:
    def test_defaults(self):
        assert Variant.for_role("admin") is Variant.FULL
        assert Variant.for_role("office_admin") is Variant.FULL
        assert Variant.for_role("office") is Variant.OFFICE
        assert Variant.for_role("stores") is Variant.OFFICE

    def test_user_role_has_no_status_view(self):
        with pytest.raises(AuthorizationError) as exc:
            Variant.for_role("user")
        assert exc.value.details["allowed_roles"] == ["admin", "office", "office_admin", "stores"]


class TestAggregationEngine:
    @pytest.fixture
    def pipeline(self, workflow, actors, entry_payload):
        """One entry per open stage, plus a complete one."""
        user, office, admin = actors["user"], actors["office"], actors["admin"]

        workflow.create(user, entry_payload)  # NEW

        e = workflow.create(user, entry_payload)
        workflow.set_order_form(office, e.id, {"order_form_no": "OF-2"})  # AWAITING_APPROVAL

        e = workflow.create(user, entry_payload)
        workflow.set_order_form(office, e.id, {"order_form_no": "OF-3"})
        workflow.approve(admin, e.id)  # APPROVED_PENDING_PO

        e = workflow.create(user, entry_payload)
        workflow.set_order_form(office, e.id, {"order_form_no": "OF-4"})
        workflow.approve(admin, e.id)
        workflow.set_po(office, e.id, {"po_no": "PO-4"})
        workflow.set_invoice(office, e.id, {"invoice_no": "INV-4"})
        workflow.set_driver_details(
            office, e.id, {"purchase_date": "2024-06-01", "driver_description": "Delivered"}
        )  # COMPLETE

    def test_partner_statuses_full(self, aggregation, actors, pipeline, partner_id):
        [unit] = aggregation.partner_statuses(actors["admin"])
        data = unit.to_dict()
        assert data["id"] == partner_id
        assert data["image_url"] == "/static/acme.png"
        assert data["counts"] == {
            "new_entries": 1,
            "pending_approval": 1,
            "approved_pending_po": 1,
            "pending_invoice": 0,
            "pending_driver": 0,
        }
        assert data["total_pending"] == 3
        assert data["notification_color"] == "red"

    def test_partner_statuses_office_for_office_role(self, aggregation, actors, pipeline):
        [unit] = aggregation.partner_statuses(actors["office"])
        assert "pending_approval" not in unit.summary.counts
        assert unit.summary.total == 2

    def test_admin_may_request_office_variant(self, aggregation, actors, pipeline):
        [unit] = aggregation.partner_statuses(actors["admin"], "office")
        assert unit.summary.total == 2

    def test_office_may_not_request_full_variant(self, aggregation, actors, pipeline):
        with pytest.raises(AuthorizationError):
            aggregation.partner_statuses(actors["office"], Variant.FULL)

    def test_unknown_variant(self, aggregation, actors):
        with pytest.raises(ValidationError):
            aggregation.partner_statuses(actors["admin"], "everything")

    def test_user_role_denied(self, aggregation, actors):
        with pytest.raises(AuthorizationError):
            aggregation.partner_statuses(actors["user"])

    def test_project_statuses(self, aggregation, actors, pipeline, partner_id, project_id):
        empty = Project(name="Site B", partner_id=partner_id)
        db.session.add(empty)
        db.session.commit()

        units = {u.id: u for u in aggregation.project_statuses(actors["office_admin"], partner_id)}
        assert units[project_id].summary.total == 3
        assert units[empty.id].summary.total == 0
        assert units[empty.id].summary.notification_color is None

    def test_project_statuses_unknown_partner(self, aggregation, actors):
        with pytest.raises(NotFoundError):
            aggregation.project_statuses(actors["admin"], 999)

    def test_project_status(self, aggregation, actors, pipeline, project_id):
        unit = aggregation.project_status(actors["stores"], project_id)
        assert unit.summary.counts["new_entries"] == 1
        assert unit.summary.counts["approved_pending_po"] == 1
        assert unit.summary.total == 2

    def test_project_status_unknown_project(self, aggregation, actors):
        with pytest.raises(NotFoundError):
            aggregation.project_status(actors["admin"], 404)
