"""
certchain — Certificate REST Router

Endpoints:
  POST /issue               — issue a certificate from a metadata payload
  GET  /verify              — resolve the most recently issued certificate
  GET  /verify/{record_id}  — resolve a certificate by id
  GET  /health              — liveness and the configured node endpoint
  any  /{path}              — liveness, for everything the routes above do not claim

Errors come back as {"error": message} with a non-2xx status.
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from certchain.clients.ipfs import UploadFailure
from certchain.primitives.common import new_id
from certchain.systems.certificates.errors import CertificateNotFound, ValidationError

logger = structlog.get_logger("certchain.api.certificates")

router = APIRouter()

LIVENESS_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]


def _error_status(error: Exception) -> int:
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, CertificateNotFound):
        return 404
    if isinstance(error, UploadFailure):
        return 502
    return 500


def _error_response(error: Exception, event: str) -> JSONResponse:
    status = _error_status(error)
    log = logger.warning if status < 500 else logger.error
    log(event, status=status, error=str(error), error_type=type(error).__name__)
    return JSONResponse(status_code=status, content={"error": str(error)})


@router.post("/issue")
async def issue_certificate(request: Request) -> Any:
    """Issue a certificate. Accepts wrapped `metadata` or legacy flat fields."""
    structlog.contextvars.bind_contextvars(request_id=new_id())
    try:
        body = await request.body()
        try:
            payload = json.loads(body or b"{}")
        except ValueError as e:
            raise ValidationError(f"Request body is not valid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")

        result = await request.app.state.pipeline.issue(payload)
    except Exception as e:
        return _error_response(e, "issue_request_failed")
    finally:
        structlog.contextvars.unbind_contextvars("request_id")

    return {
        "success": True,
        "contractAddress": result.contract_address,
        "txHash": result.tx_hash,
        "certId": result.record_id,
        "contentLocator": result.content_locator,
        "contentHash": result.content_hash,
        "metadata": result.metadata,
    }


@router.get("/verify")
@router.get("/verify/{record_id}")
async def verify_certificate(request: Request, record_id: int | None = None) -> Any:
    """Resolve a certificate back to its metadata (or its raw on-chain record)."""
    try:
        result = await request.app.state.pipeline.verify(record_id)
    except Exception as e:
        return _error_response(e, "verify_request_failed")

    return {
        "success": True,
        "certId": result.record_id,
        "resolved": result.resolved,
        "record": result.record.as_display(),
        "metadata": result.metadata,
    }


@router.get("/health")
@router.api_route("/{path:path}", methods=LIVENESS_METHODS)
async def status(request: Request) -> dict[str, Any]:
    """Liveness. Also answers any method or path no other route claims."""
    config = request.app.state.config
    return {"status": "ok", "rpc": config.ledger.rpc_url, "port": config.server.port}


async def request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed path or query parameters, e.g. a non-integer certificate id."""
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', '')}"
        for error in exc.errors()
    )
    return _error_response(ValidationError(details or "Invalid request"), "request_invalid")
