from typing import Optional


class ResolverError(Exception):
    """Base class for every error the resolver reports to its callers."""

    @property
    def kind(self) -> str:
        return type(self).__name__


class RpcError(ResolverError):
    """Node or network failure, including confirmation timeouts. Retryable."""


class RevertError(ResolverError):
    """The chain rejected the transaction."""

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class InsufficientAllowanceError(ResolverError):
    def __init__(self, owner: str, spender: str, allowance: int, required: int):
        super().__init__(
            f"Insufficient allowance: {owner} approved {allowance} units to {spender}, "
            f"{required} required"
        )
        self.owner = owner
        self.spender = spender
        self.allowance = allowance
        self.required = required


class UnknownAssetError(ResolverError):
    def __init__(self, network: str, token: str):
        super().__init__(f"Unknown asset {token} on {network}")
        self.network = network
        self.token = token


class InvalidAmountError(ResolverError):
    pass


class EncodingError(ResolverError):
    pass


class ConfigurationError(ResolverError):
    pass


class UnsupportedOperationError(ResolverError):
    pass


class InvalidTransitionError(ResolverError):
    pass


class OrderNotFoundError(ResolverError):
    pass


class PartialSettlementError(ResolverError):
    """One leg of a swap moved value and the other did not.

    The resolver holds the user's source funds without a matching destination
    obligation; this needs operator attention and must never be reported as
    plain success or plain failure.
    """

    def __init__(self, message: str, src_tx_hash: Optional[str], cause: Exception):
        super().__init__(message)
        self.src_tx_hash = src_tx_hash
        self.cause = cause
