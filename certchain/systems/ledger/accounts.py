"""
certchain — Account & Role Resolution

Discovers the signing identities the connected node manages and assigns
roles by position:

  index 0 → admin (deployer, authorizes issuers)
  index 1 → issuer        (falls back to index 0)
  index 2 → subject       (falls back to index 0)

The fallbacks keep everything operable against a single-account dev node.
An explicitly supplied subject always wins over the positional one.
"""

from __future__ import annotations

from typing import Any

import structlog
from eth_utils import is_address, to_checksum_address

from certchain.clients.ledger import rpc_request
from certchain.primitives.certificate import Roles
from certchain.systems.ledger.errors import NoAccountsAvailable

logger = structlog.get_logger("certchain.ledger.accounts")


def assign_roles(accounts: list[str], subject: str | None = None) -> Roles:
    """Positional role assignment over an already-discovered account list."""
    if not accounts:
        raise NoAccountsAvailable("No unlocked accounts on RPC provider")

    def at(index: int) -> str:
        return accounts[index] if len(accounts) > index else accounts[0]

    return Roles(
        admin=accounts[0],
        issuer=at(1),
        subject=to_checksum_address(subject) if subject else at(2),
    )


class AccountResolver:
    """Reads `eth_accounts` from the node and produces a Roles value."""

    def __init__(self, w3: Any) -> None:
        self._w3 = w3

    async def resolve_accounts(self) -> list[str]:
        """
        Ordered list of node-managed addresses (checksummed).

        Raises:
            NoAccountsAvailable: if the node manages none.
        """
        raw = await rpc_request(self._w3, "eth_accounts", [])
        accounts = [to_checksum_address(a) for a in (raw or []) if is_address(a)]
        if not accounts:
            logger.error("no_accounts_available")
            raise NoAccountsAvailable("No unlocked accounts on RPC provider")
        logger.debug("accounts_resolved", count=len(accounts))
        return accounts

    async def resolve_roles(self, subject: str | None = None) -> Roles:
        roles = assign_roles(await self.resolve_accounts(), subject=subject)
        logger.debug(
            "roles_resolved",
            admin=roles.admin,
            issuer=roles.issuer,
            subject=roles.subject,
        )
        return roles
