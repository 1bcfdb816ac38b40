"""
certchain — Certificate Metadata

Turns an issuance payload into the canonical metadata record, and
derives the values that go on-chain from it.

Two payload shapes are accepted:
  - structured: {"metadata": {"name": ..., "attributes": [...]}} — used as is
  - legacy flat fields: fullname, institution, program, activity,
    category, issuedAt — mapped onto a fixed attribute schema
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from eth_utils import is_address, keccak, to_checksum_address

from certchain.primitives.certificate import MetadataRecord
from certchain.primitives.common import to_hex
from certchain.systems.certificates.errors import ValidationError

if TYPE_CHECKING:
    from certchain.config import CertificateConfig

# Checked in this order; the first missing one is reported
REQUIRED_FIELDS: tuple[str, ...] = (
    "fullname",
    "institution",
    "program",
    "activity",
    "category",
    "issuedAt",
)

ATTRIBUTE_SCHEMA: tuple[tuple[str, str], ...] = (
    ("Full Name", "fullname"),
    ("Institution", "institution"),
    ("Program", "program"),
    ("Activity", "activity"),
    ("Category", "category"),
    ("Issued At", "issuedAt"),
)

CATEGORY_TRAIT = "Category"


def structured_metadata(payload: dict[str, Any]) -> MetadataRecord | None:
    metadata = payload.get("metadata")
    if (
        isinstance(metadata, dict)
        and metadata.get("name")
        and isinstance(metadata.get("attributes"), list)
    ):
        return metadata
    return None


def build_metadata_record(payload: dict[str, Any], config: CertificateConfig) -> MetadataRecord:
    """
    Canonical metadata record for an issuance payload.

    Raises:
        ValidationError: naming the first missing legacy field.
    """
    structured = structured_metadata(payload)
    if structured is not None:
        return structured

    for field in REQUIRED_FIELDS:
        if not payload.get(field):
            raise ValidationError(f"{field} is required", field=field)

    return {
        "name": payload.get("metadataName") or config.default_name,
        "description": payload.get("metadataDescription") or config.default_description,
        "attributes": [
            {"trait_type": trait, "value": payload[field]}
            for trait, field in ATTRIBUTE_SCHEMA
        ],
    }


def content_hash(locator: str) -> str:
    """keccak-256 of the locator string; the value anchored on-chain."""
    return to_hex(keccak(text=locator))


def attribute_value(record: MetadataRecord, trait_type: str) -> Any:
    wanted = trait_type.lower()
    for attribute in record.get("attributes") or []:
        if not isinstance(attribute, dict):
            continue
        if str(attribute.get("trait_type", "")).lower() == wanted:
            return attribute.get("value")
    return None


def _as_uint8(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and value.strip().isdecimal():
        try:
            number = int(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if 0 <= number <= 255 else None


def category_code(
    payload: dict[str, Any],
    record: MetadataRecord,
    config: CertificateConfig,
) -> int:
    """
    The on-chain uint8 category.

    Precedence: explicit `categoryCode` in the payload, a numeric Category
    attribute, the configured name table, then the configured default.
    """
    explicit = payload.get("categoryCode")
    if explicit is not None:
        code = _as_uint8(explicit)
        if code is None:
            raise ValidationError("categoryCode must be an integer 0-255", field="categoryCode")
        return code

    category = attribute_value(record, CATEGORY_TRAIT)
    if category is None:
        return config.default_category_code

    numeric = _as_uint8(category)
    if numeric is not None:
        return numeric

    codes = {name.lower(): code for name, code in config.category_codes.items()}
    return codes.get(str(category).strip().lower(), config.default_category_code)


def subject_address(payload: dict[str, Any]) -> str | None:
    """Optional explicit credential subject from the payload."""
    subject = payload.get("subject")
    if subject is None or subject == "":
        return None
    if not isinstance(subject, str) or not is_address(subject):
        raise ValidationError("subject must be a 0x address", field="subject")
    return to_checksum_address(subject)
