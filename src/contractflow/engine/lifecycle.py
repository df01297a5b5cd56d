"""Contract state transitions: milestones, signatures, counter-offers, cancellation."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Iterable

from contractflow.engine.resolver import find_original, group_transactions, select_active, transaction_key
from contractflow.errors import ContractNotFoundError, LifecycleError
from contractflow.models import Contract, ContractStatus, MilestoneType


def completion_target(contracts: list[Contract], contract_id: str) -> Contract:
    """Record whose completion flags back the milestones shown for ``contract_id``.

    An active counter-offer that uses the original's dates also shows the
    original's completion flags, so toggles go to the original.
    """
    target = next((c for c in contracts if c.id == contract_id), None)
    if target is None:
        raise ContractNotFoundError(f"Contract {contract_id} not found")
    key = transaction_key(target)
    group = group_transactions(contracts)[key]
    active = select_active(group, key)
    if active is not None and active.id == target.id and active.using_original_dates:
        return find_original(group)
    return target


def set_milestone_completed(contract: Contract, milestone: MilestoneType,
                            completed: bool = True) -> Contract:
    """Toggle a milestone. Completing Closing also closes the contract.

    A closed contract cannot have its closing reopened.
    """
    if milestone == MilestoneType.CLOSING and not completed and contract.status == ContractStatus.CLOSED:
        raise LifecycleError(f"Contract {contract.id} is closed; closing cannot be reopened")
    setattr(contract, milestone.completed_field, completed)
    if milestone == MilestoneType.CLOSING and completed:
        contract.status = ContractStatus.CLOSED
    contract.updated_at = datetime.now()
    return contract


def next_counter_offer_number(contracts: Iterable[Contract], original_id: str) -> int:
    numbers = [
        c.counter_offer_number or 0 for c in contracts
        if c.is_counter_offer and c.original_contract_id == original_id
    ]
    return max(numbers, default=0) + 1


def create_counter_offer(original: Contract, contracts: Iterable[Contract],
                         **fields: Any) -> Contract:
    """Create the next counter-offer for ``original``.

    Descriptive fields default to the original's; milestone dates and
    signatures start empty unless passed in ``fields``.
    """
    if original.is_counter_offer:
        raise LifecycleError(f"{original.id} is a counter-offer; counter the original contract")
    if original.status == ContractStatus.CANCELLED:
        raise LifecycleError(f"{original.id} is cancelled")

    now = datetime.now()
    data = {
        "owner_id": original.owner_id,
        "property_address": original.property_address,
        "representing_side": original.representing_side,
        "buyer_name": original.buyer_name,
        "buyer_email": original.buyer_email,
        "buyer_phone": original.buyer_phone,
        "seller_name": original.seller_name,
        "seller_email": original.seller_email,
        "seller_phone": original.seller_phone,
    }
    data.update(fields)
    data.update(
        id=fields.get("id") or uuid.uuid4().hex[:12],
        is_counter_offer=True,
        original_contract_id=original.id,
        counter_offer_number=next_counter_offer_number(contracts, original.id),
        created_at=now,
        updated_at=now,
    )
    return Contract.model_validate(data)


def mark_signed(contracts: list[Contract], contract_id: str,
                signed_on: date | None = None) -> list[Contract]:
    """Record that all parties signed ``contract_id``.

    A signed counter-offer supersedes the original and every other
    counter-offer of the same transaction. Returns all changed contracts,
    the signed one first.
    """
    target = next((c for c in contracts if c.id == contract_id), None)
    if target is None:
        raise LifecycleError(f"Contract {contract_id} not found")
    if target.status in (ContractStatus.CANCELLED, ContractStatus.SUPERSEDED):
        raise LifecycleError(f"Contract {contract_id} is {target.status.value}")

    now = datetime.now()
    target.all_parties_signed = True
    target.signature_date = signed_on or date.today()
    target.updated_at = now
    changed = [target]

    if target.is_counter_offer and target.original_contract_id:
        for other in contracts:
            if other.id == target.id:
                continue
            same_txn = (other.id == target.original_contract_id
                        or other.original_contract_id == target.original_contract_id)
            if same_txn and other.status != ContractStatus.SUPERSEDED:
                other.status = ContractStatus.SUPERSEDED
                other.updated_at = now
                changed.append(other)
    return changed


def cancel_contract(contract: Contract, reason: str, notes: str = "") -> Contract:
    if contract.status == ContractStatus.CLOSED:
        raise LifecycleError(f"Contract {contract.id} is already closed")
    contract.status = ContractStatus.CANCELLED
    contract.cancellation_reason = reason
    contract.cancellation_notes = notes
    contract.cancellation_date = datetime.now()
    contract.updated_at = contract.cancellation_date
    return contract
