"""Shared fixtures: contract factories and a temporary store."""

from __future__ import annotations

from datetime import date

import pytest

from contractflow.models import Contract
from contractflow.store import ContractStore

TODAY = date(2025, 1, 10)


def make_contract(id: str, **fields) -> Contract:
    fields.setdefault("property_address", f"{id} Main St")
    return Contract(id=id, **fields)


def make_counter(id: str, original: str, number: int | None, signed: bool = False, **fields) -> Contract:
    return make_contract(
        id,
        is_counter_offer=True,
        original_contract_id=original,
        counter_offer_number=number,
        all_parties_signed=signed,
        **fields,
    )


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def root() -> Contract:
    """Original contract from the example scenario."""
    return make_contract(
        "R",
        closing_date=date(2025, 3, 1),
        inspection_date=date(2025, 1, 15),
        inspection_completed=False,
        buyer_name="Dana Buyer",
        buyer_email="dana@example.com",
    )


@pytest.fixture
def scenario(root) -> list[Contract]:
    """Root R, signed dateless C1, unsigned C2 with its own closing date."""
    return [
        root,
        make_counter("C1", "R", 1, signed=True),
        make_counter("C2", "R", 2, signed=False, closing_date=date(2025, 3, 10)),
    ]


@pytest.fixture
def store(tmp_path) -> ContractStore:
    return ContractStore(tmp_path)
