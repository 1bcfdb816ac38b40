"""
certchain — Command Line

  certchain deploy --artifact artifacts/CertificateChain.json
  certchain authorize [--issuer 0x...]
  certchain issue --file payload.json [--subject 0x...]
  certchain verify [ID]
  certchain inspect-tx 0x<hash>
  certchain serve

Every command exits 1 on failure.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import structlog
from dotenv import load_dotenv

from certchain.config import CertChainConfig, load_config
from certchain.systems.certificates.pipeline import CertificatePipeline
from certchain.systems.ledger.deployment import deploy_contract, load_artifact_bytecode
from certchain.telemetry.logging import setup_logging

logger = structlog.get_logger("certchain.cli")


def _print(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


async def _deploy(config: CertChainConfig, args: argparse.Namespace) -> None:
    pipeline = CertificatePipeline.from_config(config)
    try:
        roles = await pipeline.resolve_roles()
        bytecode = load_artifact_bytecode(args.artifact)
        record = await deploy_contract(pipeline.w3, bytecode, roles.admin, config.ledger)
        _print(record.model_dump(mode="json"))
    finally:
        await pipeline.uploader.close()


async def _authorize(config: CertChainConfig, args: argparse.Namespace) -> None:
    pipeline = CertificatePipeline.from_config(config)
    try:
        outcome = await pipeline.authorize_issuer(issuer=args.issuer)
        _print(outcome.model_dump(mode="json"))
    finally:
        await pipeline.uploader.close()


async def _issue(config: CertChainConfig, args: argparse.Namespace) -> None:
    payload = json.loads(Path(args.file).read_text(encoding="utf-8"))
    pipeline = CertificatePipeline.from_config(config)
    try:
        result = await pipeline.issue(payload, subject=args.subject)
        _print(
            {
                "contractAddress": result.contract_address,
                "txHash": result.tx_hash,
                "certId": result.record_id,
                "contentLocator": result.content_locator,
                "contentHash": result.content_hash,
                "metadata": result.metadata,
            }
        )
    finally:
        await pipeline.uploader.close()


async def _verify(config: CertChainConfig, args: argparse.Namespace) -> None:
    pipeline = CertificatePipeline.from_config(config)
    try:
        result = await pipeline.verify(args.id)
        _print({"certId": result.record_id, "resolved": result.resolved, **result.display()})
    finally:
        await pipeline.uploader.close()


async def _inspect(config: CertChainConfig, args: argparse.Namespace) -> None:
    pipeline = CertificatePipeline.from_config(config)
    try:
        _print(await pipeline.inspect_issuance(args.tx_hash))
    finally:
        await pipeline.uploader.close()


def _serve(config: CertChainConfig) -> None:
    import uvicorn

    from certchain.main import create_app

    uvicorn.run(create_app(config), host=config.server.host, port=config.server.port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="certchain", description=__doc__.split("\n\n")[0])
    parser.add_argument("--config", default="config/default.yaml", help="YAML config path")
    sub = parser.add_subparsers(dest="command", required=True)

    deploy = sub.add_parser("deploy", help="Deploy the certificate contract")
    deploy.add_argument("--artifact", required=True, help="Compiled contract artifact JSON")

    authorize = sub.add_parser("authorize", help="Authorize an issuing organization")
    authorize.add_argument("--issuer", default=None, help="Address (default: issuer role)")

    issue = sub.add_parser("issue", help="Issue a certificate from a JSON payload")
    issue.add_argument("--file", required=True, help="Payload JSON file")
    issue.add_argument("--subject", default=None, help="Credential subject address")

    verify = sub.add_parser("verify", help="Resolve a certificate (default: latest)")
    verify.add_argument("id", nargs="?", type=int, default=None)

    inspect = sub.add_parser("inspect-tx", help="Decode an issueCertificate transaction")
    inspect.add_argument("tx_hash")

    sub.add_parser("serve", help="Run the HTTP API")
    return parser


_COMMANDS = {
    "deploy": _deploy,
    "authorize": _authorize,
    "issue": _issue,
    "verify": _verify,
    "inspect-tx": _inspect,
}


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
        setup_logging(config.logging)
        if args.command == "serve":
            _serve(config)
        else:
            asyncio.run(_COMMANDS[args.command](config, args))
    except Exception as e:
        logger.error(
            "command_failed",
            command=args.command,
            error=str(e),
            error_type=type(e).__name__,
        )
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
