"""
certchain — Certificate Contract Interface Codec

The fixed function table of the certificate contract, and the pure
encode/decode functions over it. No I/O, no state.

Contract ABI (Solidity):
  function verifyOrganization(address organization)
  function issueCertificate(address student, bytes32 metadataHash, uint8 category)
  function verifyCertificate(uint256 id) view
      returns (address issuer, address student, uint8 category, bytes32 metadataHash)
  function totalCertificates() view returns (uint256)

Every type in the table is static, so the encoded length of any argument
list or return value is exactly 32 bytes per slot. Decoding checks that
before handing the bytes to eth-abi.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import (
    function_signature_to_4byte_selector,
    is_address,
    to_bytes,
    to_checksum_address,
)

from certchain.systems.ledger.errors import MalformedResult

# ─── Function Names ──────────────────────────────────────────────

AUTHORIZE_ISSUER = "verifyOrganization"
ISSUE_CERTIFICATE = "issueCertificate"
VERIFY_CERTIFICATE = "verifyCertificate"
TOTAL_CERTIFICATES = "totalCertificates"

_WORD = 32


# ─── Signature Table ─────────────────────────────────────────────


@dataclass(frozen=True)
class FunctionSignature:
    """One contract function: name, ordered input types, ordered output types."""

    name: str
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()
    input_names: tuple[str, ...] = ()
    output_names: tuple[str, ...] = ()
    mutability: str = "nonpayable"

    @property
    def canonical(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return function_signature_to_4byte_selector(self.canonical)

    @property
    def is_view(self) -> bool:
        return self.mutability in ("view", "pure")

    def abi_entry(self) -> dict[str, Any]:
        """JSON ABI fragment, as consumed by web3 contract objects."""

        def params(types: tuple[str, ...], names: tuple[str, ...]) -> list[dict[str, str]]:
            return [
                {"name": names[i] if i < len(names) else "", "type": t}
                for i, t in enumerate(types)
            ]

        return {
            "type": "function",
            "name": self.name,
            "inputs": params(self.inputs, self.input_names),
            "outputs": params(self.outputs, self.output_names),
            "stateMutability": self.mutability,
        }


SIGNATURES: dict[str, FunctionSignature] = {
    sig.name: sig
    for sig in (
        FunctionSignature(
            name=AUTHORIZE_ISSUER,
            inputs=("address",),
            input_names=("organization",),
        ),
        FunctionSignature(
            name=ISSUE_CERTIFICATE,
            inputs=("address", "bytes32", "uint8"),
            input_names=("student", "metadataHash", "category"),
        ),
        FunctionSignature(
            name=VERIFY_CERTIFICATE,
            inputs=("uint256",),
            outputs=("address", "address", "uint8", "bytes32"),
            input_names=("id",),
            output_names=("issuer", "student", "category", "metadataHash"),
            mutability="view",
        ),
        FunctionSignature(
            name=TOTAL_CERTIFICATES,
            outputs=("uint256",),
            mutability="view",
        ),
    )
}

CONTRACT_ABI: list[dict[str, Any]] = [sig.abi_entry() for sig in SIGNATURES.values()]


def signature(name: str) -> FunctionSignature:
    try:
        return SIGNATURES[name]
    except KeyError:
        raise ValueError(f"Unknown contract function: {name}") from None


# ─── Value Normalization ─────────────────────────────────────────


def _normalize_input(abi_type: str, value: Any) -> Any:
    if abi_type == "address":
        if not isinstance(value, str) or not is_address(value):
            raise ValueError(f"Not an address: {value!r}")
        return to_checksum_address(value)

    if abi_type == "bytes32":
        raw = to_bytes(hexstr=value) if isinstance(value, str) else bytes(value)
        if len(raw) != _WORD:
            raise ValueError(f"bytes32 value must be 32 bytes, got {len(raw)}")
        return raw

    if abi_type.startswith("uint"):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{abi_type} value must be an int, got {value!r}")
        bits = int(abi_type[4:] or 256)
        if not 0 <= value < 2**bits:
            raise ValueError(f"{value} out of range for {abi_type}")
        return value

    raise ValueError(f"Unsupported ABI type: {abi_type}")


def _normalize_decoded(types: tuple[str, ...], values: Any) -> tuple[Any, ...]:
    out: list[Any] = []
    for abi_type, value in zip(types, values):
        if abi_type == "address":
            out.append(to_checksum_address(value))
        elif abi_type == "bytes32":
            out.append(bytes(value))
        else:
            out.append(int(value))
    return tuple(out)


def _as_bytes(data: bytes | bytearray | str) -> bytes:
    if isinstance(data, str):
        try:
            return to_bytes(hexstr=data)
        except ValueError as e:
            raise MalformedResult(f"Return data is not hex: {data[:20]!r}") from e
    return bytes(data)


def normalize_args(name: str, args: list[Any] | tuple[Any, ...]) -> tuple[Any, ...]:
    """
    Coerce call arguments into the canonical form for `name`.

    Addresses become checksum addresses; bytes32 values given as hex
    become raw bytes. Raises ValueError on wrong arity, type or width.
    """
    sig = signature(name)
    if len(args) != len(sig.inputs):
        raise ValueError(
            f"{sig.canonical} takes {len(sig.inputs)} arguments, got {len(args)}"
        )
    return tuple(_normalize_input(t, v) for t, v in zip(sig.inputs, args))


def normalize_result(name: str, values: Any) -> tuple[Any, ...]:
    """Shape a typed contract-call result exactly like a raw decode."""
    sig = signature(name)
    if len(sig.outputs) == 1 and not isinstance(values, (list, tuple)):
        values = (values,)
    if len(values) != len(sig.outputs):
        raise MalformedResult(
            f"{sig.name} returned {len(values)} values, expected {len(sig.outputs)}"
        )
    return _normalize_decoded(sig.outputs, values)


# ─── Encode / Decode ─────────────────────────────────────────────


def encode_call(name: str, args: list[Any] | tuple[Any, ...] = ()) -> bytes:
    """Selector followed by the ABI-encoded arguments."""
    sig = signature(name)
    normalized = normalize_args(name, args)
    return sig.selector + encode(list(sig.inputs), list(normalized))


def decode_result(name: str, data: bytes | bytearray | str) -> tuple[Any, ...]:
    """
    Decode raw return data for `name`.

    Raises:
        MalformedResult: if the length or contents do not fit the signature.
    """
    sig = signature(name)
    raw = _as_bytes(data)
    expected = _WORD * len(sig.outputs)
    if len(raw) != expected:
        raise MalformedResult(
            f"{sig.name} returned {len(raw)} bytes, expected {expected}"
        )
    if not sig.outputs:
        return ()
    try:
        values = decode(list(sig.outputs), raw)
    except DecodingError as e:
        raise MalformedResult(f"{sig.name} return data does not decode: {e}") from e
    return _normalize_decoded(sig.outputs, values)


def decode_call(name: str, calldata: bytes | bytearray | str) -> tuple[Any, ...]:
    """Recover the arguments of an encoded call to `name` (e.g. a mined tx input)."""
    sig = signature(name)
    raw = _as_bytes(calldata)
    if raw[:4] != sig.selector:
        raise MalformedResult(f"Call data is not a {sig.canonical} call")
    body = raw[4:]
    expected = _WORD * len(sig.inputs)
    if len(body) != expected:
        raise MalformedResult(
            f"{sig.canonical} call data has {len(body)} argument bytes, expected {expected}"
        )
    if not sig.inputs:
        return ()
    try:
        values = decode(list(sig.inputs), body)
    except DecodingError as e:
        raise MalformedResult(f"{sig.canonical} call data does not decode: {e}") from e
    return _normalize_decoded(sig.inputs, values)
