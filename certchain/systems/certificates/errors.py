"""
certchain — Certificate Pipeline Errors
"""

from __future__ import annotations


class CertificateError(RuntimeError):
    """Base for certificate pipeline errors."""


class ValidationError(CertificateError):
    """Caller input is missing or invalid. Fixable by the caller."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class CertificateNotFound(CertificateError):
    """The requested certificate id does not exist on the ledger."""
