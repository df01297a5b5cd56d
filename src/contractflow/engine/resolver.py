"""Active-contract resolution.

A transaction is one root contract plus the counter-offers that reference it.
For each transaction exactly one record is "active": its dates drive the
calendar, the dashboard and client reminders.

Selection rule, per transaction:
  1. The signed counter-offer with the highest number wins.
  2. If that counter-offer carries no milestone dates of its own, it inherits
     the root's dates and completion flags (using_original_dates=True).
  3. With no signed counter-offer, the root is active.
  4. A transaction with neither contributes nothing.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable

from contractflow.errors import AmbiguousCounterOfferError
from contractflow.models import (
    COMPLETION_FIELDS,
    DATE_FIELDS,
    ActiveContract,
    Contract,
    ContractStatus,
    IntegrityIssue,
)

logger = logging.getLogger(__name__)


def transaction_key(contract: Contract) -> str:
    """Group key: the root's id for linked counter-offers, the contract's own id otherwise.

    A counter-offer with no original_contract_id is its own transaction.
    """
    if contract.is_counter_offer and contract.original_contract_id:
        return contract.original_contract_id
    return contract.id


def group_transactions(contracts: Iterable[Contract]) -> dict[str, list[Contract]]:
    """Partition contracts by transaction, preserving first-seen order."""
    groups: dict[str, list[Contract]] = {}
    for c in contracts:
        groups.setdefault(transaction_key(c), []).append(c)
    return groups


def find_original(group: list[Contract]) -> Contract | None:
    return next((c for c in group if not c.is_counter_offer), None)


def signed_winner(group: list[Contract], key: str | None = None) -> Contract | None:
    """Return the fully signed counter-offer with the highest number.

    Raises AmbiguousCounterOfferError when several counter-offers are signed
    and their numbers are missing or repeated.
    """
    signed = [c for c in group if c.is_counter_offer and c.all_parties_signed]
    if not signed:
        return None
    if len(signed) == 1:
        return signed[0]

    numbers = Counter(c.counter_offer_number for c in signed)
    if None in numbers or any(n > 1 for n in numbers.values()):
        raise AmbiguousCounterOfferError(str(key), [c.id for c in signed])
    return max(signed, key=lambda c: c.counter_offer_number)


def _activate(contract: Contract, using_original_dates: bool = False) -> ActiveContract:
    data = contract.model_dump()
    data["using_original_dates"] = using_original_dates
    return ActiveContract.model_validate(data)


def merge_original_dates(counter_offer: Contract, original: Contract) -> ActiveContract:
    """Counter-offer fields with the original's milestone dates and completion flags."""
    inherited = {f: getattr(original, f) for f in DATE_FIELDS + COMPLETION_FIELDS}
    return _activate(counter_offer.model_copy(update=inherited), using_original_dates=True)


def select_active(group: list[Contract], key: str | None = None) -> ActiveContract | None:
    """Pick the active record for one transaction group."""
    original = find_original(group)
    winner = signed_winner(group, key)

    if winner is not None:
        if not winner.has_milestone_dates() and original is not None:
            return merge_original_dates(winner, original)
        return _activate(winner)
    if original is not None:
        return _activate(original)

    logger.warning(
        "Transaction %s has no original contract and no signed counter-offer; skipping %d record(s)",
        key, len(group),
    )
    return None


def resolve_active_contracts(contracts: Iterable[Contract]) -> list[ActiveContract]:
    """One active record per transaction, in order of first appearance."""
    active: list[ActiveContract] = []
    for key, group in group_transactions(contracts).items():
        record = select_active(group, key)
        if record is not None:
            active.append(record)
    return active


def validate_lineage(contracts: Iterable[Contract]) -> list[IntegrityIssue]:
    """Report lineage and status invariants that the data violates."""
    contracts = list(contracts)
    by_id = {c.id: c for c in contracts}
    issues: list[IntegrityIssue] = []

    for c in contracts:
        if c.is_counter_offer:
            if not c.original_contract_id:
                issues.append(IntegrityIssue(
                    contract_id=c.id, code="missing_original",
                    message="Counter-offer has no original_contract_id",
                ))
            elif c.original_contract_id not in by_id:
                issues.append(IntegrityIssue(
                    contract_id=c.id, code="dangling_original",
                    message=f"Original contract {c.original_contract_id} does not exist",
                ))
            elif by_id[c.original_contract_id].is_counter_offer:
                issues.append(IntegrityIssue(
                    contract_id=c.id, code="nested_counter_offer",
                    message=f"Original {c.original_contract_id} is itself a counter-offer",
                ))
            if c.counter_offer_number is None:
                issues.append(IntegrityIssue(
                    contract_id=c.id, code="missing_number",
                    message="Counter-offer has no counter_offer_number",
                ))
        elif c.original_contract_id:
            issues.append(IntegrityIssue(
                contract_id=c.id, code="stray_original_reference",
                message="Root contract references an original contract",
            ))

        if c.closing_completed and c.status != ContractStatus.CLOSED:
            issues.append(IntegrityIssue(
                contract_id=c.id, code="closing_not_closed",
                message=f"Closing completed but status is {c.status.value}",
            ))

    for key, group in group_transactions(contracts).items():
        seen: set[int] = set()
        for c in group:
            if not c.is_counter_offer or c.counter_offer_number is None:
                continue
            if c.counter_offer_number in seen:
                issues.append(IntegrityIssue(
                    contract_id=c.id, code="duplicate_number",
                    message=f"Counter-offer #{c.counter_offer_number} repeated in transaction {key}",
                ))
            seen.add(c.counter_offer_number)

    return issues
