"""Exception types raised by the contract engine and its integrations."""


class ContractFlowError(Exception):
    """Base class for all ContractFlow errors."""


class ContractNotFoundError(ContractFlowError):
    """Raised when a contract id does not exist in the store."""


class ContractIntegrityError(ContractFlowError):
    """Raised when contract lineage data violates an invariant."""


class AmbiguousCounterOfferError(ContractIntegrityError):
    """Raised when two signed counter-offers cannot be ordered by number."""

    def __init__(self, transaction_id: str, contract_ids: list[str]):
        self.transaction_id = transaction_id
        self.contract_ids = contract_ids
        super().__init__(
            f"Transaction {transaction_id}: signed counter-offers "
            f"{', '.join(contract_ids)} share a counter-offer number"
        )


class LifecycleError(ContractFlowError):
    """Raised when a state transition is not allowed."""


class ExtractionError(ContractFlowError):
    """Raised when AI extraction or verification fails."""


class IntegrationError(ContractFlowError):
    """Raised when an external service is not set up for use."""
