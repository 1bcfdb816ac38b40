"""
certchain — Configuration System

All configuration is Pydantic-validated and loaded from:
1. A YAML file (defaults for a deployment)
2. The legacy environment names of the original service
   (RPC_URL, CONTRACT_ADDRESS, PINATA_API_KEY, PINATA_SECRET, PORT)
3. CERTCHAIN_* environment variables (nested with "__")
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ─── Sub-configs ──────────────────────────────────────────────────


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class LedgerConfig(BaseModel):
    rpc_url: str = "http://127.0.0.1:8545"
    # Overrides the deployment record when set
    contract_address: str = ""
    deployment_record_path: str = "backend/last_deploy.json"
    network: str = "localhost"
    receipt_timeout_s: float = 120.0
    poll_latency_s: float = 0.5
    # Try the typed web3 contract call before the raw eth_sendTransaction path
    prefer_contract_calls: bool = True


class UploadConfig(BaseModel):
    endpoint: str = "https://api.pinata.cloud/pinning/pinJSONToIPFS"
    api_key: str = ""
    api_secret: str = ""
    timeout_s: float = 30.0

    @model_validator(mode="after")
    def _strip_credentials(self) -> UploadConfig:
        # Secret managers can inject trailing \r\n into env vars
        object.__setattr__(self, "api_key", self.api_key.strip())
        object.__setattr__(self, "api_secret", self.api_secret.strip())
        return self


class StoreConfig(BaseModel):
    metadata_path: str = "backend/metadata.json"


class CertificateConfig(BaseModel):
    default_name: str = "Blockchain Workshop Certificate"
    default_description: str = "Official academic certificate"
    # On-chain uint8 used when the category has no mapping
    default_category_code: int = Field(default=1, ge=0, le=255)
    category_codes: dict[str, int] = Field(
        default_factory=lambda: {
            "seminar": 1,
            "workshop": 2,
            "competition": 3,
            "course": 4,
        }
    )


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "console"  # "console" | "json"


# ─── Root Configuration ──────────────────────────────────────────


class CertChainConfig(BaseSettings):
    """
    Root configuration. Loads from YAML, overridable by env vars.
    """

    model_config = SettingsConfigDict(
        env_prefix="CERTCHAIN_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    certificates: CertificateConfig = Field(default_factory=CertificateConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: str | Path | None = None) -> CertChainConfig:
    """
    Load configuration from YAML file, then apply environment variable overrides.
    """
    raw: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                raw = yaml.safe_load(f) or {}

    legacy: dict[str, Any] = {}
    if rpc_url := os.environ.get("RPC_URL"):
        legacy.setdefault("ledger", {})["rpc_url"] = rpc_url
    if contract_address := os.environ.get("CONTRACT_ADDRESS"):
        legacy.setdefault("ledger", {})["contract_address"] = contract_address
    if pinata_key := os.environ.get("PINATA_API_KEY"):
        legacy.setdefault("upload", {})["api_key"] = pinata_key
    if pinata_secret := os.environ.get("PINATA_SECRET"):
        legacy.setdefault("upload", {})["api_secret"] = pinata_secret
    if port := os.environ.get("PORT"):
        legacy.setdefault("server", {})["port"] = int(port)
    raw = _deep_merge(raw, legacy)

    # Init kwargs outrank env in pydantic-settings, so CERTCHAIN_* values
    # are folded in explicitly to keep them on top.
    env_overrides = CertChainConfig().model_dump(exclude_unset=True)
    return CertChainConfig(**_deep_merge(raw, env_overrides))
