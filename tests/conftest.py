"""
Shared fixtures: an in-process fake ledger node.

FakeLedger plays both sides of what certchain talks to: the JSON-RPC
provider (`w3.provider.make_request`) and web3's typed contract surface
(`w3.eth.contract(...).functions.<name>(...).transact/call`). The
certificate contract semantics are the minimum the pipeline relies on:
an append-only list of (issuer, subject, category, hash) and a count.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest
from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from certchain.config import CertChainConfig
from certchain.primitives.common import to_hex
from certchain.systems.ledger.abi import (
    AUTHORIZE_ISSUER,
    ISSUE_CERTIFICATE,
    SIGNATURES,
    TOTAL_CERTIFICATES,
    VERIFY_CERTIFICATE,
    decode_call,
    encode_call,
)

ACCOUNTS = [
    to_checksum_address("0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266"),
    to_checksum_address("0x70997970c51812dc3a010c7d01b50e0d17dc79c8"),
    to_checksum_address("0x3c44cdddb6a900fa2b585dd299e03d12fa4293bc"),
]
CONTRACT = to_checksum_address("0x5fbdb2315678afecb367f032d93f642f64180aa3")


class _BoundCall:
    def __init__(self, ledger: FakeLedger, function: str, args: tuple[Any, ...]) -> None:
        self._ledger = ledger
        self._function = function
        self._args = args

    async def transact(self, tx: dict[str, Any]) -> bytes:
        self._ledger.typed_calls.append(self._function)
        if self._ledger.typed_error is not None:
            raise self._ledger.typed_error
        data = to_hex(encode_call(self._function, self._args))
        tx_hash = self._ledger.execute(tx["from"], self._function, self._args, data=data)
        return bytes.fromhex(tx_hash[2:])

    async def call(self) -> Any:
        self._ledger.typed_calls.append(self._function)
        if self._ledger.typed_error is not None:
            raise self._ledger.typed_error
        values = self._ledger.view(self._function, self._args)
        return values[0] if len(values) == 1 else list(values)


class _Functions:
    def __init__(self, ledger: FakeLedger) -> None:
        self._ledger = ledger

    def __getattr__(self, name: str) -> Callable[..., _BoundCall]:
        if name not in SIGNATURES:
            raise AttributeError(name)
        return lambda *args: _BoundCall(self._ledger, name, args)


class _Contract:
    def __init__(self, ledger: FakeLedger, address: str) -> None:
        self.address = address
        self.functions = _Functions(ledger)


class _Eth:
    def __init__(self, ledger: FakeLedger) -> None:
        self._ledger = ledger
        if ledger.supports_contracts:
            self.contract = lambda address, abi: _Contract(ledger, address)

    async def wait_for_transaction_receipt(
        self, tx_hash: Any, timeout: float = 120, poll_latency: float = 0.1
    ) -> dict[str, Any]:
        if self._ledger.wait_error is not None:
            error, self._ledger.wait_error = self._ledger.wait_error, None
            raise error
        return self._ledger.receipts[to_hex(tx_hash)]


class _Provider:
    def __init__(self, ledger: FakeLedger) -> None:
        self._ledger = ledger

    async def make_request(self, method: str, params: list[Any]) -> dict[str, Any]:
        self._ledger.rpc_calls.append(method)
        try:
            result = self._ledger.handle_rpc(str(method), params)
        except RuntimeError as e:
            return {"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": str(e)}}
        return {"jsonrpc": "2.0", "id": 1, "result": result}


class FakeLedger:
    """Stands in for AsyncWeb3 bound to a dev node with the certificate contract."""

    def __init__(
        self,
        accounts: list[str] | None = None,
        supports_contracts: bool = True,
        require_authorization: bool = False,
    ) -> None:
        self.accounts = list(ACCOUNTS if accounts is None else accounts)
        self.supports_contracts = supports_contracts
        self.require_authorization = require_authorization
        self.contract_address = CONTRACT

        self.certificates: list[tuple[str, str, int, bytes]] = []
        self.authorized: set[str] = set()
        self.transactions: dict[str, dict[str, Any]] = {}
        self.receipts: dict[str, dict[str, Any]] = {}

        self.typed_error: Exception | None = None
        self.raw_send_error: str | None = None
        self.raw_return_override: str | None = None
        # Raised once by the next receipt wait
        self.wait_error: Exception | None = None
        # Runs once right before the next totalCertificates read
        self.before_count: Callable[[], None] | None = None

        self.typed_calls: list[str] = []
        self.rpc_calls: list[str] = []
        self._nonce = 0

        self.provider = _Provider(self)
        self.eth = _Eth(self)

    # ── contract semantics ──

    def execute(self, sender: str, function: str, args: tuple[Any, ...], data: str = "") -> str:
        status = 1
        if function == AUTHORIZE_ISSUER:
            self.authorized.add(to_checksum_address(args[0]))
        elif function == ISSUE_CERTIFICATE:
            subject, content_hash, category = args
            if self.require_authorization and to_checksum_address(sender) not in self.authorized:
                status = 0
            else:
                self.certificates.append(
                    (
                        to_checksum_address(sender),
                        to_checksum_address(subject),
                        int(category),
                        bytes(content_hash),
                    )
                )
        else:
            raise RuntimeError(f"{function} is not a transaction")
        return self._mine(sender, self.contract_address, data, status)

    def view(self, function: str, args: tuple[Any, ...]) -> tuple[Any, ...]:
        if function == TOTAL_CERTIFICATES:
            if self.before_count is not None:
                hook, self.before_count = self.before_count, None
                hook()
            return (len(self.certificates),)
        if function == VERIFY_CERTIFICATE:
            (record_id,) = args
            if record_id >= len(self.certificates):
                raise RuntimeError("execution reverted: certificate does not exist")
            return self.certificates[record_id]
        raise RuntimeError(f"{function} is not a view")

    def issue_directly(self, subject: str, content_hash: bytes, category: int = 1) -> None:
        """Another issuer landing a certificate, outside the code under test."""
        self.certificates.append((self.accounts[0], subject, category, content_hash))

    def _mine(
        self,
        sender: str,
        to: str | None,
        data: str,
        status: int,
        created: str | None = None,
    ) -> str:
        self._nonce += 1
        tx_hash = to_hex(keccak(text=f"tx-{self._nonce}"))
        self.transactions[tx_hash] = {"hash": tx_hash, "from": sender, "to": to, "input": data}
        self.receipts[tx_hash] = {
            "transactionHash": bytes.fromhex(tx_hash[2:]),
            "blockNumber": self._nonce,
            "status": status,
            "contractAddress": created,
            "gasUsed": 21000,
        }
        return tx_hash

    # ── JSON-RPC ──

    def handle_rpc(self, method: str, params: list[Any]) -> Any:
        if method == "eth_accounts":
            return [a.lower() for a in self.accounts]

        if method == "eth_sendTransaction":
            if self.raw_send_error is not None:
                raise RuntimeError(self.raw_send_error)
            tx = params[0]
            if "to" not in tx:
                created = to_checksum_address(keccak(text=f"deploy-{self._nonce}")[-20:])
                self.contract_address = created
                return self._mine(tx["from"], None, tx["data"], 1, created=created)
            function = self._function_for(tx["data"])
            args = decode_call(function, tx["data"])
            return self.execute(tx["from"], function, args, data=tx["data"])

        if method == "eth_call":
            if self.raw_return_override is not None:
                return self.raw_return_override
            call = params[0]
            function = self._function_for(call["data"])
            args = decode_call(function, call["data"])
            values = self.view(function, args)
            return to_hex(encode(list(SIGNATURES[function].outputs), list(values)))

        if method == "eth_getTransactionByHash":
            return self.transactions.get(to_hex(params[0]))

        raise RuntimeError(f"method {method} not supported")

    @staticmethod
    def _function_for(data: str) -> str:
        selector = bytes.fromhex(data[2:10])
        for sig in SIGNATURES.values():
            if sig.selector == selector:
                return sig.name
        raise RuntimeError("unknown selector")


class FakeUploader:
    """ContentUploader that hands out deterministic locators."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.uploads: list[dict[str, Any]] = []
        self.closed = False

    async def upload(self, record: dict[str, Any]) -> str:
        if self.error is not None:
            raise self.error
        self.uploads.append(record)
        return f"ipfs://QmFake{len(self.uploads)}"

    async def close(self) -> None:
        self.closed = True


# ─── Fixtures ─────────────────────────────────────────────────────


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def config(tmp_path) -> CertChainConfig:
    return CertChainConfig(
        ledger={
            "contract_address": CONTRACT,
            "deployment_record_path": str(tmp_path / "last_deploy.json"),
            "receipt_timeout_s": 1.0,
            "poll_latency_s": 0.01,
        },
        store={"metadata_path": str(tmp_path / "metadata.json")},
    )


@pytest.fixture
def legacy_payload() -> dict[str, Any]:
    return {
        "fullname": "A",
        "institution": "B",
        "program": "C",
        "activity": "D",
        "category": "E",
        "issuedAt": "2026-01-01",
    }
