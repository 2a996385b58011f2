"""
Tests for variance tracking: the formula, the risk bands, and
the Budgeted → Planned → Actual lifecycle.
"""

from datetime import date
from decimal import Decimal

import pytest

from governance_core.errors import (
    DuplicateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from governance_core.models.enums import AuditAction, AuditSubject, VarianceStatus
from governance_core.schemas.proposal import ProposalCreate
from governance_core.schemas.variance import (
    VarianceBudgetCreate,
    VarianceUpdate,
    MilestoneCreate,
    MilestoneUpdate,
)
from governance_core.services.audit_trail import AuditTrail
from governance_core.services.proposal_service import ProposalService
from governance_core.services.variance_service import (
    VarianceService,
    calculate_variance_pct,
    calculate_risk_status_from_variance,
)


def make_proposal(db_session, clock):
    proposal = ProposalService(db_session, clock).create_proposal(ProposalCreate(
        stencil_id="capex", circle_id="finance", submitted_by="alice",
    ))
    db_session.commit()
    return proposal


def make_budget(service, proposal, total="100000"):
    return service.create_variance_budget(proposal.id, VarianceBudgetCreate(
        case_number=proposal.case_number,
        stencil_id=proposal.stencil_id,
        budgeted_total=Decimal(total),
        budgeted_breakdown={"construction": "80000", "permits": "20000"},
        budgeted_by="alice",
    ))


@pytest.fixture
def tracked(db_session, clock):
    """A proposal with a 100,000 budget, committed."""
    proposal = make_proposal(db_session, clock)
    service = VarianceService(db_session, clock)
    record = make_budget(service, proposal)
    db_session.commit()
    return service, proposal, record


# --- Pure calculations ---

class TestVarianceFormula:

    @pytest.mark.parametrize("budgeted, actual, expected", [
        ("100000", "115000", "15.00"),
        ("1000", "1100", "10.00"),
        ("1000", "0", "-100.00"),
        ("100", "100", "0.00"),
        ("100", "90", "-10.00"),
        ("3", "2", "-33.33"),
        ("3", "1", "-66.67"),
        ("200", "200.01", "0.01"),
        ("200", "199.99", "-0.01"),
    ])
    def test_percentage(self, budgeted, actual, expected):
        assert calculate_variance_pct(Decimal(budgeted), Decimal(actual)) == Decimal(expected)

    def test_zero_budget_yields_zero(self):
        assert calculate_variance_pct(Decimal("0"), Decimal("500")) == Decimal("0")

    def test_accepts_plain_numbers(self):
        assert calculate_variance_pct(100, 112.5) == Decimal("12.50")


class TestRiskBands:

    @pytest.mark.parametrize("pct, expected", [
        ("35", VarianceStatus.CRITICAL),
        ("20", VarianceStatus.CRITICAL),
        ("19.99", VarianceStatus.OVERRUN),
        ("10", VarianceStatus.OVERRUN),
        ("9.99", VarianceStatus.WARNING),
        ("5", VarianceStatus.WARNING),
        ("4.99", VarianceStatus.ON_TRACK),
        ("0", VarianceStatus.ON_TRACK),
        ("-9.99", VarianceStatus.ON_TRACK),
        ("-10", VarianceStatus.UNDERRUN),
        ("-60", VarianceStatus.UNDERRUN),
    ])
    def test_boundaries(self, pct, expected):
        assert calculate_risk_status_from_variance(Decimal(pct)) == expected


# --- Budget creation ---

class TestCreateVarianceBudget:

    def test_create_budget(self, db_session, clock):
        proposal = make_proposal(db_session, clock)
        service = VarianceService(db_session, clock)
        record = make_budget(service, proposal)
        db_session.commit()

        assert record.id is not None
        assert record.proposal_id == proposal.id
        assert record.budgeted_total == Decimal("100000")
        assert record.budgeted_at == clock.now()
        assert record.actual_review_count == 0
        assert record.variance_pct is None
        assert record.variance_status is None

    def test_budget_creation_is_audited(self, db_session, clock):
        proposal = make_proposal(db_session, clock)
        service = VarianceService(db_session, clock)
        record = make_budget(service, proposal)
        db_session.commit()

        events = AuditTrail(db_session).list_by_subject(
            AuditSubject.VARIANCE_RECORD, record.id
        )
        assert [e.what for e in events] == [AuditAction.BUDGET_CREATED]
        assert events[0].who == "alice"
        assert events[0].event_metadata["budgeted_total"] == "100000.00"

    @pytest.mark.parametrize("total", ["0", "-5"])
    def test_non_positive_budget_rejected(self, db_session, clock, total):
        proposal = make_proposal(db_session, clock)
        service = VarianceService(db_session, clock)

        with pytest.raises(ValidationError):
            make_budget(service, proposal, total=total)
        assert service.get_variance_record(proposal.id) is None

    def test_duplicate_budget_rejected(self, tracked):
        service, proposal, _ = tracked
        with pytest.raises(DuplicateError):
            make_budget(service, proposal, total="5000")

    def test_unknown_proposal_rejected(self, db_session, clock):
        service = VarianceService(db_session, clock)
        with pytest.raises(NotFoundError):
            service.create_variance_budget(404, VarianceBudgetCreate(
                case_number="CASE-2025-000404",
                stencil_id="capex",
                budgeted_total=Decimal("10"),
                budgeted_by="alice",
            ))


# --- Planned / actual updates ---

class TestUpdateVarianceBudget:

    def test_actual_recomputes_variance(self, tracked, db_session, clock):
        service, proposal, _ = tracked
        record = service.update_variance_budget(proposal.id, VarianceUpdate(
            updated_by="bob", actual_total=Decimal("115000"),
            variance_reason="Steel prices",
        ))
        db_session.commit()

        assert record.variance_pct == Decimal("15.00")
        assert record.variance_status == VarianceStatus.OVERRUN
        assert record.last_actual_at == clock.now()
        assert record.actual_review_count == 1
        assert record.variance_reason == "Steel prices"

    def test_planned_only_leaves_variance_null(self, tracked, db_session, clock):
        service, proposal, _ = tracked
        clock.advance(days=2)
        record = service.update_variance_budget(proposal.id, VarianceUpdate(
            updated_by="bob",
            planned_total=Decimal("98000"),
            planned_metrics={"headcount": 4},
            planned_notes="Vendor quote",
        ))
        db_session.commit()

        assert record.planned_total == Decimal("98000")
        assert record.planned_at == clock.now()
        assert record.planned_metrics == {"headcount": 4}
        assert record.actual_review_count == 0
        assert record.variance_pct is None
        assert record.variance_status is None

    def test_each_actual_counts_as_a_review(self, tracked, db_session):
        service, proposal, _ = tracked
        service.update_variance_budget(proposal.id, VarianceUpdate(
            updated_by="bob", actual_total=Decimal("40000"),
        ))
        service.update_variance_budget(proposal.id, VarianceUpdate(
            updated_by="bob", actual_total=Decimal("104000"),
        ))
        record = service.update_variance_budget(proposal.id, VarianceUpdate(
            updated_by="bob", planned_notes="Re-forecast",
        ))
        db_session.commit()

        assert record.actual_review_count == 2
        assert record.variance_pct == Decimal("4.00")
        assert record.variance_status == VarianceStatus.ON_TRACK

    def test_omitted_fields_are_kept(self, tracked, db_session):
        service, proposal, _ = tracked
        service.update_variance_budget(proposal.id, VarianceUpdate(
            updated_by="bob", actual_total=Decimal("130000"),
        ))
        record = service.update_variance_budget(proposal.id, VarianceUpdate(
            updated_by="bob", actual_total=None, planned_notes="Noted",
        ))
        db_session.commit()

        assert record.actual_total == Decimal("130000")
        assert record.variance_status == VarianceStatus.CRITICAL

    def test_update_is_audited(self, tracked, db_session):
        service, proposal, record = tracked
        service.update_variance_budget(proposal.id, VarianceUpdate(
            updated_by="bob", actual_total=Decimal("85000"),
            variance_reason="Scope cut",
        ))
        db_session.commit()

        events = AuditTrail(db_session).list_by_subject(
            AuditSubject.VARIANCE_RECORD, record.id
        )
        assert [e.what for e in events] == [
            AuditAction.BUDGET_CREATED,
            AuditAction.VARIANCE_UPDATED,
        ]
        updated = events[-1]
        assert updated.who == "bob"
        assert updated.why == "Scope cut"
        assert updated.event_metadata["fields"] == ["actual_total", "variance_reason"]
        assert updated.event_metadata["variance_status"] == "underrun"

    def test_empty_update_rejected(self, tracked):
        service, proposal, _ = tracked
        with pytest.raises(ValidationError):
            service.update_variance_budget(proposal.id, VarianceUpdate(updated_by="bob"))

    def test_non_positive_plan_rejected(self, tracked):
        service, proposal, _ = tracked
        with pytest.raises(ValidationError):
            service.update_variance_budget(proposal.id, VarianceUpdate(
                updated_by="bob", planned_total=Decimal("0"),
            ))

    def test_untracked_proposal_rejected(self, db_session, clock):
        proposal = make_proposal(db_session, clock)
        service = VarianceService(db_session, clock)
        with pytest.raises(NotFoundError):
            service.update_variance_budget(proposal.id, VarianceUpdate(
                updated_by="bob", actual_total=Decimal("1"),
            ))


# --- Milestones ---

class TestMilestones:

    def test_create_milestone_computes_variance(self, tracked, db_session):
        service, proposal, record = tracked
        milestone = service.create_milestone(proposal.id, MilestoneCreate(
            created_by="alice",
            milestone_key="q1",
            milestone_label="Q1 review",
            scheduled_date=date(2025, 3, 31),
            budget_to_date=Decimal("50000"),
            actual_to_date=Decimal("55000"),
        ))
        db_session.commit()

        assert milestone.variance_record_id == record.id
        assert milestone.variance_pct_to_date == Decimal("10.00")

        events = AuditTrail(db_session).list_by_subject(
            AuditSubject.MILESTONE, milestone.id
        )
        assert [e.what for e in events] == [AuditAction.MILESTONE_CREATED]

    def test_milestone_without_amounts_has_no_variance(self, tracked, db_session):
        service, proposal, _ = tracked
        milestone = service.create_milestone(proposal.id, MilestoneCreate(
            created_by="alice",
            milestone_key="kickoff",
            milestone_label="Kickoff",
            scheduled_date=date(2025, 1, 15),
        ))
        db_session.commit()

        assert milestone.variance_pct_to_date is None

    def test_update_recomputes_from_stored_values(self, tracked, db_session, clock):
        service, proposal, _ = tracked
        milestone = service.create_milestone(proposal.id, MilestoneCreate(
            created_by="alice",
            milestone_key="q1",
            milestone_label="Q1 review",
            scheduled_date=date(2025, 3, 31),
            budget_to_date=Decimal("50000"),
            actual_to_date=Decimal("55000"),
        ))
        db_session.commit()

        updated = service.update_milestone(milestone.id, MilestoneUpdate(
            updated_by="bob",
            actual_to_date=Decimal("60000"),
            actual_date=date(2025, 4, 2),
            reviewed_by="carol",
            notes="Overtime",
        ))
        db_session.commit()

        assert updated.variance_pct_to_date == Decimal("20.00")
        assert updated.actual_date == date(2025, 4, 2)
        assert updated.reviewed_by == "carol"
        assert updated.reviewed_at == clock.now()

        event = AuditTrail(db_session).list_by_subject(
            AuditSubject.MILESTONE, milestone.id
        )[-1]
        assert event.what == AuditAction.MILESTONE_UPDATED
        assert event.who == "bob"
        assert event.why == "Overtime"

    def test_notes_only_update_keeps_variance(self, tracked, db_session):
        service, proposal, _ = tracked
        milestone = service.create_milestone(proposal.id, MilestoneCreate(
            created_by="alice",
            milestone_key="q1",
            milestone_label="Q1 review",
            scheduled_date=date(2025, 3, 31),
            budget_to_date=Decimal("50000"),
            actual_to_date=Decimal("45000"),
        ))
        updated = service.update_milestone(milestone.id, MilestoneUpdate(
            updated_by="bob", notes="On plan",
        ))
        db_session.commit()

        assert updated.variance_pct_to_date == Decimal("-10.00")
        assert updated.reviewed_at is None

    def test_empty_milestone_update_rejected(self, tracked):
        service, proposal, _ = tracked
        milestone = service.create_milestone(proposal.id, MilestoneCreate(
            created_by="alice",
            milestone_key="q1",
            milestone_label="Q1 review",
            scheduled_date=date(2025, 3, 31),
        ))
        with pytest.raises(ValidationError):
            service.update_milestone(milestone.id, MilestoneUpdate(updated_by="bob"))

    def test_missing_milestone(self, tracked):
        service, _, _ = tracked
        with pytest.raises(NotFoundError):
            service.update_milestone(999, MilestoneUpdate(updated_by="bob", notes="x"))

    def test_milestone_requires_budget(self, db_session, clock):
        proposal = make_proposal(db_session, clock)
        service = VarianceService(db_session, clock)
        with pytest.raises(NotFoundError):
            service.create_milestone(proposal.id, MilestoneCreate(
                created_by="alice",
                milestone_key="q1",
                milestone_label="Q1 review",
                scheduled_date=date(2025, 3, 31),
            ))

    def test_list_is_ordered_by_schedule(self, tracked, db_session):
        service, proposal, _ = tracked
        for key, day in (("q3", date(2025, 9, 30)), ("q1", date(2025, 3, 31)),
                         ("q2", date(2025, 6, 30))):
            service.create_milestone(proposal.id, MilestoneCreate(
                created_by="alice",
                milestone_key=key,
                milestone_label=key.upper(),
                scheduled_date=day,
            ))
        db_session.commit()

        keys = [m.milestone_key for m in service.list_milestones(proposal.id)]
        assert keys == ["q1", "q2", "q3"]


# --- Snapshot ---

class TestVarianceSnapshot:

    def test_untracked_proposal_has_no_snapshot(self, db_session, clock):
        proposal = make_proposal(db_session, clock)
        assert VarianceService(db_session, clock).get_variance_data(proposal.id) is None

    def test_snapshot_reflects_record(self, tracked, db_session, clock):
        service, proposal, _ = tracked
        service.update_variance_budget(proposal.id, VarianceUpdate(
            updated_by="bob",
            planned_total=Decimal("105000"),
            actual_total=Decimal("121000"),
        ))
        service.create_milestone(proposal.id, MilestoneCreate(
            created_by="alice",
            milestone_key="q2",
            milestone_label="Q2",
            scheduled_date=date(2025, 6, 30),
        ))
        service.create_milestone(proposal.id, MilestoneCreate(
            created_by="alice",
            milestone_key="q1",
            milestone_label="Q1",
            scheduled_date=date(2025, 3, 31),
        ))
        db_session.commit()

        snapshot = service.get_variance_data(proposal.id)

        assert snapshot.case_number == proposal.case_number
        assert snapshot.budgeted == Decimal("100000")
        assert snapshot.planned == Decimal("105000")
        assert snapshot.actual == Decimal("121000")
        assert snapshot.variance_pct == Decimal("21.00")
        assert snapshot.variance_status == VarianceStatus.CRITICAL
        assert snapshot.actual_review_count == 1
        assert snapshot.actual_at == clock.now()
        assert [m.milestone_key for m in snapshot.milestones] == ["q1", "q2"]

    def test_reading_twice_changes_nothing(self, tracked, db_session):
        service, proposal, _ = tracked
        first = service.get_variance_data(proposal.id)
        second = service.get_variance_data(proposal.id)

        assert first == second
        assert second.actual_review_count == 0


# --- Stored precision ---

class TestMoneyPrecision:

    def test_budget_below_one_cent_rejected(self, db_session, clock):
        proposal = make_proposal(db_session, clock)
        service = VarianceService(db_session, clock)

        with pytest.raises(ValidationError):
            make_budget(service, proposal, total="0.004")
        assert service.get_variance_record(proposal.id) is None

    def test_amounts_are_rounded_to_cents(self, db_session, clock):
        proposal = make_proposal(db_session, clock)
        service = VarianceService(db_session, clock)
        make_budget(service, proposal, total="10.005")
        db_session.commit()

        db_session.expire_all()
        assert service.get_variance_record(proposal.id).budgeted_total == Decimal("10.01")

    def test_variance_matches_stored_totals(self, db_session, clock):
        proposal = make_proposal(db_session, clock)
        service = VarianceService(db_session, clock)
        make_budget(service, proposal, total="0.02")
        service.update_variance_budget(proposal.id, VarianceUpdate(
            updated_by="bob", actual_total=Decimal("0.0249"),
        ))
        db_session.commit()

        db_session.expire_all()
        record = service.get_variance_record(proposal.id)
        assert record.actual_total == Decimal("0.02")
        assert record.variance_pct == calculate_variance_pct(
            record.budgeted_total, record.actual_total
        )
        assert record.variance_pct == Decimal("0.00")
        assert record.variance_status == VarianceStatus.ON_TRACK

    def test_plan_below_one_cent_rejected(self, tracked):
        service, proposal, _ = tracked
        with pytest.raises(ValidationError):
            service.update_variance_budget(proposal.id, VarianceUpdate(
                updated_by="bob", planned_total=Decimal("0.004"),
            ))

    def test_largest_ratio_is_stored(self, db_session, clock):
        proposal = make_proposal(db_session, clock)
        service = VarianceService(db_session, clock)
        make_budget(service, proposal, total="0.01")
        service.update_variance_budget(proposal.id, VarianceUpdate(
            updated_by="bob", actual_total=Decimal("9999999999.99"),
        ))
        db_session.commit()

        db_session.expire_all()
        record = service.get_variance_record(proposal.id)
        assert record.variance_pct == Decimal("99999999999800.00")
        assert record.variance_status == VarianceStatus.CRITICAL

    def test_amount_beyond_column_rejected(self, tracked):
        service, proposal, _ = tracked
        with pytest.raises(ValidationError):
            service.update_variance_budget(proposal.id, VarianceUpdate(
                updated_by="bob", actual_total=Decimal("10000000000"),
            ))

    def test_milestone_amounts_are_rounded(self, tracked, db_session):
        service, proposal, _ = tracked
        milestone = service.create_milestone(proposal.id, MilestoneCreate(
            created_by="alice",
            milestone_key="q1",
            milestone_label="Q1",
            scheduled_date=date(2025, 3, 31),
            budget_to_date=Decimal("100.004"),
            actual_to_date=Decimal("110.006"),
        ))
        updated = service.update_milestone(milestone.id, MilestoneUpdate(
            updated_by="bob", actual_to_date=Decimal("120.004"),
        ))
        db_session.commit()

        assert milestone.budget_to_date == Decimal("100.00")
        assert updated.actual_to_date == Decimal("120.00")
        assert updated.variance_pct_to_date == Decimal("20.00")


class TestBudgetIdentity:

    def test_case_number_must_match_proposal(self, db_session, clock):
        proposal = make_proposal(db_session, clock)
        service = VarianceService(db_session, clock)

        with pytest.raises(ValidationError, match="does not match"):
            service.create_variance_budget(proposal.id, VarianceBudgetCreate(
                case_number="CASE-2025-000099",
                stencil_id=proposal.stencil_id,
                budgeted_total=Decimal("10"),
                budgeted_by="alice",
            ))
        assert service.get_variance_record(proposal.id) is None

    def test_stencil_must_match_proposal(self, db_session, clock):
        proposal = make_proposal(db_session, clock)
        service = VarianceService(db_session, clock)

        with pytest.raises(ValidationError):
            service.create_variance_budget(proposal.id, VarianceBudgetCreate(
                case_number=proposal.case_number,
                stencil_id="hiring",
                budgeted_total=Decimal("10"),
                budgeted_by="alice",
            ))


class TestAuditFailure:

    def test_failed_append_undoes_update(self, tracked, db_session, monkeypatch):
        service, proposal, record = tracked

        def unavailable(self, *args, **kwargs):
            raise PersistenceError("audit store unavailable")

        monkeypatch.setattr(AuditTrail, "append", unavailable)
        with pytest.raises(PersistenceError):
            service.update_variance_budget(proposal.id, VarianceUpdate(
                updated_by="bob", actual_total=Decimal("150000"),
            ))
        db_session.rollback()

        stored = service.get_variance_record(proposal.id)
        assert stored.actual_total is None
        assert stored.actual_review_count == 0
        assert stored.variance_pct is None
        events = AuditTrail(db_session).list_by_subject(
            AuditSubject.VARIANCE_RECORD, record.id
        )
        assert [e.what for e in events] == [AuditAction.BUDGET_CREATED]
