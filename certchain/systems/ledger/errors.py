"""
certchain — Ledger Error Hierarchy

Everything that can go wrong talking to the ledger node or the
certificate contract. None of these are retried inside certchain;
a failed submission is re-issued by the caller.
"""

from __future__ import annotations

from typing import Any


class LedgerError(RuntimeError):
    """Base for all ledger-side errors."""


class NoAccountsAvailable(LedgerError):
    """The node manages no accounts. Fatal for the run."""


class MalformedResult(LedgerError):
    """Return data does not match the function signature (ABI mismatch)."""


class CapabilityUnavailable(LedgerError):
    """The runtime lacks the typed contract-call abstraction."""


class ContractAddressUnavailable(LedgerError):
    """No contract address configured and no deployment record found."""


class LedgerRpcError(LedgerError):
    """The node answered a JSON-RPC request with an error member."""

    def __init__(self, method: str, error: Any) -> None:
        self.method = method
        self.error = error
        message = error.get("message", error) if isinstance(error, dict) else error
        super().__init__(f"{method} failed: {message}")


class SubmissionFailure(LedgerError):
    """Both the preferred and the fallback transaction paths failed."""

    def __init__(
        self,
        function: str,
        preferred_error: BaseException | None,
        fallback_error: BaseException,
    ) -> None:
        self.function = function
        self.preferred_error = preferred_error
        self.fallback_error = fallback_error
        super().__init__(
            f"{function} submission failed: "
            f"contract call: {preferred_error}; raw transaction: {fallback_error}"
        )


class TransactionReverted(LedgerError):
    """The transaction was mined but its receipt reports failure."""

    def __init__(self, tx_hash: str) -> None:
        self.tx_hash = tx_hash
        super().__init__(f"Transaction {tx_hash} reverted")


class TransactionPending(LedgerError):
    """A hash was issued but its receipt could not be fetched. The send stands."""

    def __init__(self, tx_hash: str, cause: BaseException) -> None:
        self.tx_hash = tx_hash
        self.cause = cause
        super().__init__(f"Transaction {tx_hash} sent but unconfirmed: {cause}")
