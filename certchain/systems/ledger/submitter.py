"""
certchain — Transaction Submitter

Sends state-changing calls to the certificate contract. The node runtime
may or may not support web3's typed contract abstraction (an unlocked dev
node does; some gateways reject the estimate/transact round trip), so
submission goes through two strategies behind one contract:

  1. ContractCallStrategy — `contract.functions.<name>(*args).transact()`,
     then wait for the receipt.
  2. RawTransactionStrategy — encode the call with the local codec, send
     `eth_sendTransaction {from, to, data}` over raw JSON-RPC, then wait
     for the receipt.

An exception from (1) before it has a transaction hash, or a reverted
receipt, triggers (2). Once (1) holds a hash, a failed receipt wait
returns a hash-only outcome for `confirm` instead: the call is already
broadcast. If (2) fails too, SubmissionFailure carries both causes.
Nothing is retried beyond that single fallback.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import structlog

from certchain.clients.ledger import rpc_request
from certchain.primitives.certificate import TransactionOutcome, TransactionReceipt
from certchain.primitives.common import to_hex
from certchain.systems.ledger.abi import CONTRACT_ABI, encode_call, normalize_args
from certchain.systems.ledger.errors import (
    CapabilityUnavailable,
    SubmissionFailure,
    TransactionPending,
    TransactionReverted,
)

if TYPE_CHECKING:
    from certchain.config import LedgerConfig

logger = structlog.get_logger("certchain.ledger.submitter")


async def wait_for_receipt(w3: Any, tx_hash: str, config: LedgerConfig) -> TransactionReceipt:
    """Block until `tx_hash` is mined. Raises TransactionReverted on status 0."""
    raw = await w3.eth.wait_for_transaction_receipt(
        tx_hash,
        timeout=config.receipt_timeout_s,
        poll_latency=config.poll_latency_s,
    )
    receipt = TransactionReceipt.from_web3(raw)
    if not receipt.succeeded:
        raise TransactionReverted(tx_hash)
    return receipt


# ─── Strategies ──────────────────────────────────────────────────


class SubmissionStrategy(ABC):
    """One way of getting a contract call mined."""

    name: str = ""

    @abstractmethod
    async def send(
        self,
        signer: str,
        target: str,
        function: str,
        args: tuple[Any, ...],
    ) -> TransactionOutcome:
        ...


class ContractCallStrategy(SubmissionStrategy):
    """Typed call through a web3 contract object bound to the target."""

    name = "contract"

    def __init__(self, w3: Any, config: LedgerConfig, wait: bool = True) -> None:
        self._w3 = w3
        self._config = config
        self._wait = wait

    async def send(
        self,
        signer: str,
        target: str,
        function: str,
        args: tuple[Any, ...],
    ) -> TransactionOutcome:
        contract_factory = getattr(self._w3.eth, "contract", None)
        if contract_factory is None:
            raise CapabilityUnavailable("Runtime exposes no typed contract abstraction")

        contract = contract_factory(address=target, abi=CONTRACT_ABI)
        bound = getattr(contract.functions, function)(*args)
        tx_hash = to_hex(await bound.transact({"from": signer}))

        receipt = None
        if self._wait:
            try:
                receipt = await wait_for_receipt(self._w3, tx_hash, self._config)
            except TransactionReverted:
                raise
            except Exception as e:
                raise TransactionPending(tx_hash, e) from e
        return TransactionOutcome(hash=tx_hash, receipt=receipt, path=self.name)


class RawTransactionStrategy(SubmissionStrategy):
    """Codec-encoded call data sent with eth_sendTransaction."""

    name = "raw"

    def __init__(self, w3: Any, config: LedgerConfig) -> None:
        self._w3 = w3
        self._config = config

    async def send(
        self,
        signer: str,
        target: str,
        function: str,
        args: tuple[Any, ...],
    ) -> TransactionOutcome:
        data = encode_call(function, args)
        tx_hash = to_hex(
            await rpc_request(
                self._w3,
                "eth_sendTransaction",
                [{"from": signer, "to": target, "data": to_hex(data)}],
            )
        )
        receipt = await wait_for_receipt(self._w3, tx_hash, self._config)
        return TransactionOutcome(hash=tx_hash, receipt=receipt, path=self.name)


# ─── Submitter ───────────────────────────────────────────────────


class TransactionSubmitter:
    """
    Single entry point for contract writes.

    Callers see one contract regardless of which strategy ran: a
    TransactionOutcome with a hash, and a receipt once confirmed.
    """

    def __init__(
        self,
        w3: Any,
        config: LedgerConfig,
        preferred: SubmissionStrategy | None = None,
        fallback: SubmissionStrategy | None = None,
    ) -> None:
        self._w3 = w3
        self._config = config
        if preferred is None and config.prefer_contract_calls:
            preferred = ContractCallStrategy(w3, config)
        self._preferred = preferred
        self._fallback = fallback or RawTransactionStrategy(w3, config)

    async def submit(
        self,
        signer: str,
        target: str,
        function: str,
        args: list[Any] | tuple[Any, ...] = (),
    ) -> TransactionOutcome:
        """
        Submit `function(*args)` to `target` from `signer`.

        Raises:
            ValueError: if the arguments do not fit the function signature.
            SubmissionFailure: if every strategy failed.
        """
        normalized = normalize_args(function, args)
        log = logger.bind(function=function, target=target, signer=signer)

        preferred_error: BaseException | None = None
        if self._preferred is not None:
            try:
                outcome = await self._preferred.send(signer, target, function, normalized)
                log.info("transaction_submitted", path=outcome.path, tx_hash=outcome.hash)
                return outcome
            except TransactionPending as e:
                # Already broadcast: resending would land the call twice
                log.warning(
                    "submission_unconfirmed",
                    path=self._preferred.name,
                    tx_hash=e.tx_hash,
                    error=str(e.cause),
                    error_type=type(e.cause).__name__,
                )
                return TransactionOutcome(hash=e.tx_hash, path=self._preferred.name)
            except Exception as e:
                preferred_error = e
                log.warning(
                    "submission_fallback",
                    path=self._preferred.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        try:
            outcome = await self._fallback.send(signer, target, function, normalized)
        except Exception as e:
            log.error(
                "submission_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise SubmissionFailure(function, preferred_error, e) from e

        log.info("transaction_submitted", path=outcome.path, tx_hash=outcome.hash)
        return outcome

    async def confirm(self, outcome: TransactionOutcome) -> TransactionOutcome:
        """Resolve a hash-only outcome to a confirmed one."""
        if outcome.receipt is not None:
            return outcome
        receipt = await wait_for_receipt(self._w3, outcome.hash, self._config)
        return outcome.model_copy(update={"receipt": receipt})
