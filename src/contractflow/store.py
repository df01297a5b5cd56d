"""JSON-file contract persistence with a read-through cache.

Contracts live in ``<data_dir>/contracts/<id>.json`` and reminder offsets in
``<data_dir>/reminder_preferences.json``. The store keeps one
cached listing per instance; ``save``, ``save_many`` and ``delete`` are the
only places that invalidate it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable

from contractflow.errors import ContractNotFoundError
from contractflow.models import Contract, ReminderPreferences

logger = logging.getLogger(__name__)


class ContractStore:
    def __init__(self, data_dir: Path | str):
        self.root = Path(data_dir) / "contracts"
        self.preferences_path = Path(data_dir) / "reminder_preferences.json"
        self._cache: dict[str, Contract] | None = None

    # -- reads ---------------------------------------------------------------

    def _load_all(self) -> dict[str, Contract]:
        if self._cache is None:
            contracts: dict[str, Contract] = {}
            if self.root.exists():
                for f in sorted(self.root.glob("*.json")):
                    c = Contract.model_validate_json(f.read_text())
                    contracts[c.id] = c
            logger.debug("Loaded %d contracts from %s", len(contracts), self.root)
            self._cache = contracts
        return self._cache

    def list_contracts(self, owner_id: str | None = None) -> list[Contract]:
        """All contracts (optionally for one owner), oldest first."""
        contracts = [
            c.model_copy(deep=True) for c in self._load_all().values()
            if not owner_id or c.owner_id == owner_id
        ]
        return sorted(contracts, key=lambda c: (c.created_at, c.id))

    def get(self, contract_id: str) -> Contract:
        try:
            return self._load_all()[contract_id].model_copy(deep=True)
        except KeyError:
            raise ContractNotFoundError(f"Contract {contract_id} not found") from None

    # -- writes --------------------------------------------------------------

    def invalidate(self) -> None:
        self._cache = None

    def _write(self, contract: Contract) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        contract.updated_at = datetime.now()
        (self.root / f"{contract.id}.json").write_text(contract.model_dump_json(indent=2))

    def save(self, contract: Contract) -> Contract:
        self._write(contract)
        self.invalidate()
        return contract

    def save_many(self, contracts: Iterable[Contract]) -> None:
        for c in contracts:
            self._write(c)
        self.invalidate()

    def delete(self, contract_id: str) -> None:
        path = self.root / f"{contract_id}.json"
        if not path.exists():
            raise ContractNotFoundError(f"Contract {contract_id} not found")
        path.unlink()
        self.invalidate()

    # -- reminder preferences ------------------------------------------------

    def load_reminder_preferences(self) -> ReminderPreferences:
        """Saved offsets, or the defaults when none were saved yet."""
        if not self.preferences_path.exists():
            return ReminderPreferences()
        return ReminderPreferences.model_validate_json(self.preferences_path.read_text())

    def save_reminder_preferences(self, preferences: ReminderPreferences) -> ReminderPreferences:
        self.preferences_path.parent.mkdir(parents=True, exist_ok=True)
        self.preferences_path.write_text(preferences.model_dump_json(indent=2))
        return preferences
