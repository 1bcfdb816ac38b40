"""
certchain — Contract Deployment Record

The deploy step writes `{address, network, timestamp}` once; every later
run reads it to find the certificate contract. A configured contract
address (CONTRACT_ADDRESS / CERTCHAIN_LEDGER__CONTRACT_ADDRESS) takes
precedence over the file.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from certchain.clients.ledger import rpc_request
from certchain.primitives.certificate import DeploymentRecord
from certchain.systems.ledger.errors import ContractAddressUnavailable, LedgerError
from certchain.systems.ledger.submitter import wait_for_receipt

if TYPE_CHECKING:
    from certchain.config import LedgerConfig

logger = structlog.get_logger("certchain.ledger.deployment")


def load_deployment_record(path: str | Path) -> DeploymentRecord | None:
    """Read the deployment record. Missing or malformed files yield None."""
    record_path = Path(path)
    if not record_path.exists():
        return None
    try:
        return DeploymentRecord.model_validate_json(record_path.read_text(encoding="utf-8"))
    except (OSError, PydanticValidationError) as e:
        logger.warning("deployment_record_unreadable", path=str(record_path), error=str(e))
        return None


def save_deployment_record(path: str | Path, record: DeploymentRecord) -> None:
    record_path = Path(path)
    record_path.parent.mkdir(parents=True, exist_ok=True)
    record_path.write_text(
        json.dumps(record.model_dump(mode="json"), indent=2),
        encoding="utf-8",
    )
    logger.info("deployment_record_saved", path=str(record_path), address=record.address)


def resolve_contract_address(config: LedgerConfig) -> str:
    """
    The certificate contract address for this run.

    Raises:
        ContractAddressUnavailable: if neither the config nor the record has one.
    """
    if config.contract_address:
        return config.contract_address

    record = load_deployment_record(config.deployment_record_path)
    if record is not None and record.address:
        logger.debug(
            "contract_address_from_record",
            path=config.deployment_record_path,
            address=record.address,
        )
        return record.address

    raise ContractAddressUnavailable(
        f"CONTRACT_ADDRESS not set and no {config.deployment_record_path} found"
    )


def load_artifact_bytecode(path: str | Path) -> str:
    """Creation bytecode from a compiled contract artifact (e.g. a Hardhat JSON)."""
    artifact: dict[str, Any] = json.loads(Path(path).read_text(encoding="utf-8"))
    bytecode = artifact.get("bytecode")
    if isinstance(bytecode, dict):
        bytecode = bytecode.get("object")
    if not bytecode or bytecode == "0x":
        raise ValueError(f"Artifact {path} has no bytecode")
    return bytecode if bytecode.startswith("0x") else "0x" + bytecode


async def deploy_contract(
    w3: Any,
    bytecode: str,
    deployer: str,
    config: LedgerConfig,
) -> DeploymentRecord:
    """
    Send a contract-creation transaction and persist where it landed.

    A failure to write the record is logged; the deployment itself stands.
    """
    tx_hash = await rpc_request(w3, "eth_sendTransaction", [{"from": deployer, "data": bytecode}])
    receipt = await wait_for_receipt(w3, tx_hash, config)
    if not receipt.contract_address:
        raise LedgerError(f"Deployment {tx_hash} produced no contract address")

    record = DeploymentRecord(address=receipt.contract_address, network=config.network)
    try:
        save_deployment_record(config.deployment_record_path, record)
    except OSError as e:
        logger.warning(
            "deployment_record_write_failed",
            path=config.deployment_record_path,
            error=str(e),
        )

    logger.info(
        "contract_deployed",
        address=record.address,
        network=record.network,
        tx_hash=receipt.transaction_hash,
    )
    return record
