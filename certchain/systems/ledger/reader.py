"""
certchain — Ledger Reads

Read-only views of the certificate contract. Like submission, each read
prefers the typed web3 `.call()` and falls back to a raw `eth_call`
decoded by the local codec; either way the caller gets the same shape.
"""

from __future__ import annotations

from typing import Any

import structlog

from certchain.clients.ledger import rpc_request
from certchain.primitives.certificate import OnChainRecord
from certchain.primitives.common import to_hex
from certchain.systems.ledger.abi import (
    CONTRACT_ABI,
    ISSUE_CERTIFICATE,
    TOTAL_CERTIFICATES,
    VERIFY_CERTIFICATE,
    decode_call,
    decode_result,
    encode_call,
    normalize_args,
    normalize_result,
    signature,
)

logger = structlog.get_logger("certchain.ledger.reader")


class LedgerReader:
    def __init__(self, w3: Any, prefer_contract_calls: bool = True) -> None:
        self._w3 = w3
        self._prefer_contract_calls = prefer_contract_calls

    async def call(
        self,
        contract: str,
        function: str,
        args: list[Any] | tuple[Any, ...] = (),
    ) -> tuple[Any, ...]:
        """
        Invoke a view function and return its decoded outputs.

        Raises:
            ValueError: if `function` is not a view or the arguments do not fit.
            MalformedResult: if the raw return data does not fit the signature.
            LedgerRpcError: if the node rejects the raw eth_call.
        """
        if not signature(function).is_view:
            raise ValueError(f"{function} changes state; submit it instead of calling it")
        normalized = normalize_args(function, args)

        if self._prefer_contract_calls:
            contract_factory = getattr(self._w3.eth, "contract", None)
            if contract_factory is not None:
                try:
                    bound = contract_factory(address=contract, abi=CONTRACT_ABI)
                    values = await getattr(bound.functions, function)(*normalized).call()
                    return normalize_result(function, values)
                except Exception as e:
                    logger.debug(
                        "typed_call_fallback",
                        function=function,
                        error=str(e),
                        error_type=type(e).__name__,
                    )

        data = encode_call(function, normalized)
        raw = await rpc_request(
            self._w3,
            "eth_call",
            [{"to": contract, "data": to_hex(data)}, "latest"],
        )
        return decode_result(function, raw or "0x")

    async def total_certificates(self, contract: str) -> int:
        (total,) = await self.call(contract, TOTAL_CERTIFICATES)
        return int(total)

    async def read_certificate(self, contract: str, record_id: int) -> OnChainRecord:
        values = await self.call(contract, VERIFY_CERTIFICATE, [record_id])
        return OnChainRecord.from_values(values)

    async def issued_arguments(self, tx_hash: str) -> dict[str, Any] | None:
        """
        Decode the arguments of a mined issueCertificate transaction.

        Returns None if the node does not know the transaction.
        """
        tx = await rpc_request(self._w3, "eth_getTransactionByHash", [tx_hash])
        if not tx:
            return None
        subject, content_hash, category = decode_call(ISSUE_CERTIFICATE, tx["input"])
        return {
            "from": tx.get("from"),
            "to": tx.get("to"),
            "subject": subject,
            "contentHash": to_hex(content_hash),
            "category": category,
        }
