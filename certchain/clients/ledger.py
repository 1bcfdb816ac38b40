"""
certchain — Ledger Node Client

Thin helpers around web3's async provider. Everything that needs to talk
to the node protocol-level (account discovery, raw sends, raw calls)
goes through `rpc_request` so JSON-RPC errors surface as LedgerRpcError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.types import RPCEndpoint

from certchain.systems.ledger.errors import LedgerRpcError

if TYPE_CHECKING:
    from certchain.config import LedgerConfig

logger = structlog.get_logger("certchain.clients.ledger")


def create_web3(config: LedgerConfig) -> AsyncWeb3:
    """Build an async web3 client bound to the configured node."""
    w3 = AsyncWeb3(AsyncHTTPProvider(config.rpc_url))
    logger.debug("ledger_client_created", rpc_url=config.rpc_url)
    return w3


async def rpc_request(w3: Any, method: str, params: list[Any]) -> Any:
    """
    Issue a raw JSON-RPC request through the web3 provider.

    Returns the `result` member. Raises LedgerRpcError if the node
    answered with an `error` member.
    """
    response = await w3.provider.make_request(RPCEndpoint(method), params)
    if response.get("error") is not None:
        logger.debug("ledger_rpc_error", method=method, error=response["error"])
        raise LedgerRpcError(method, response["error"])
    return response.get("result")
