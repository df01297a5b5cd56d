"""Tests for contract state transitions."""

from datetime import date

import pytest

from conftest import make_contract, make_counter
from contractflow.engine.lifecycle import (
    cancel_contract,
    completion_target,
    create_counter_offer,
    mark_signed,
    next_counter_offer_number,
    set_milestone_completed,
)
from contractflow.engine.resolver import resolve_active_contracts
from contractflow.errors import ContractNotFoundError, LifecycleError
from contractflow.models import ContractStatus, MilestoneType


class TestMilestoneCompletion:

    def test_toggle(self, root):
        set_milestone_completed(root, MilestoneType.INSPECTION)
        assert root.inspection_completed is True
        set_milestone_completed(root, MilestoneType.INSPECTION, completed=False)
        assert root.inspection_completed is False
        assert root.status == ContractStatus.PENDING

    def test_completing_closing_closes_contract(self, root):
        set_milestone_completed(root, MilestoneType.CLOSING)
        assert root.closing_completed is True
        assert root.status == ContractStatus.CLOSED

    def test_closed_contract_closing_cannot_be_reopened(self, root):
        set_milestone_completed(root, MilestoneType.CLOSING)
        with pytest.raises(LifecycleError):
            set_milestone_completed(root, MilestoneType.CLOSING, completed=False)
        assert root.closing_completed is True

    def test_unclosed_closing_can_be_unchecked(self, root):
        set_milestone_completed(root, MilestoneType.CLOSING, completed=False)
        assert root.closing_completed is False


class TestCompletionTarget:

    def test_counter_using_original_dates_targets_original(self, scenario):
        assert completion_target(scenario, "C1").id == "R"

    def test_toggle_shows_on_active_record(self, scenario):
        target = completion_target(scenario, "C1")
        set_milestone_completed(target, MilestoneType.INSPECTION)
        [active] = resolve_active_contracts(scenario)
        assert active.id == "C1"
        assert active.inspection_completed is True

    def test_counter_with_own_dates_targets_itself(self, root):
        co = make_counter("C1", "R", 1, signed=True, closing_date=date(2025, 4, 1))
        assert completion_target([root, co], "C1") is co

    @pytest.mark.parametrize("cid", ["R", "C2"])
    def test_records_that_are_not_active_target_themselves(self, scenario, cid):
        assert completion_target(scenario, cid).id == cid

    def test_unknown_contract(self, scenario):
        with pytest.raises(ContractNotFoundError):
            completion_target(scenario, "nope")


class TestCounterOffers:

    def test_numbers_increase_per_original(self, scenario):
        assert next_counter_offer_number(scenario, "R") == 3
        assert next_counter_offer_number(scenario, "other") == 1

    def test_create_copies_parties_not_dates(self, root, scenario):
        co = create_counter_offer(root, scenario, purchase_price=410000)
        assert co.is_counter_offer
        assert co.original_contract_id == "R"
        assert co.counter_offer_number == 3
        assert co.buyer_name == "Dana Buyer"
        assert co.property_address == "R Main St"
        assert co.purchase_price == 410000
        assert co.closing_date is None
        assert co.all_parties_signed is False
        assert co.id not in {c.id for c in scenario}

    def test_cannot_counter_a_counter_offer(self, scenario):
        with pytest.raises(LifecycleError):
            create_counter_offer(scenario[1], scenario)

    def test_cannot_counter_cancelled(self, root):
        root.status = ContractStatus.CANCELLED
        with pytest.raises(LifecycleError):
            create_counter_offer(root, [root])


class TestSigning:

    def test_signing_root(self, root):
        changed = mark_signed([root], "R", date(2025, 1, 5))
        assert changed == [root]
        assert root.all_parties_signed
        assert root.signature_date == date(2025, 1, 5)

    def test_signing_counter_supersedes_siblings(self, scenario):
        changed = mark_signed(scenario, "C2", date(2025, 1, 9))
        assert [c.id for c in changed] == ["C2", "R", "C1"]
        assert scenario[0].status == ContractStatus.SUPERSEDED
        assert scenario[1].status == ContractStatus.SUPERSEDED
        assert scenario[2].status == ContractStatus.PENDING

    def test_signed_counter_becomes_active(self, scenario):
        mark_signed(scenario, "C2")
        [active] = resolve_active_contracts(scenario)
        assert active.id == "C2"
        assert active.closing_date == date(2025, 3, 10)

    def test_other_transactions_untouched(self, scenario):
        other = make_contract("S")
        mark_signed(scenario + [other], "C2")
        assert other.status == ContractStatus.PENDING

    def test_unknown_contract(self, scenario):
        with pytest.raises(LifecycleError):
            mark_signed(scenario, "nope")

    @pytest.mark.parametrize("status", [ContractStatus.CANCELLED, ContractStatus.SUPERSEDED])
    def test_inactive_contract_cannot_be_signed(self, status):
        co = make_counter("C1", "R", 1, status=status)
        with pytest.raises(LifecycleError):
            mark_signed([co], "C1")


class TestCancellation:

    def test_cancel(self, root):
        cancel_contract(root, "financing", "buyer lost approval")
        assert root.status == ContractStatus.CANCELLED
        assert root.cancellation_reason == "financing"
        assert root.cancellation_notes == "buyer lost approval"
        assert root.cancellation_date is not None

    def test_closed_contract_cannot_be_cancelled(self, root):
        set_milestone_completed(root, MilestoneType.CLOSING)
        with pytest.raises(LifecycleError):
            cancel_contract(root, "too late")
