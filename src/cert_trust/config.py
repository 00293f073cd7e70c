"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables
  - Fall back to .env file
  - Validate types and constraints at startup

Only AppSettings is a BaseSettings instance. Sub-settings are plain BaseModel
classes populated via env_nested_delimiter="__", so VERIFICATION__CERTIFICATE
maps to verification.certificate, CACHE__DIRECTORY to cache.directory, etc.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cert_trust.domain.models import Purpose

# Resolve the .env file relative to the project root (two levels above this file).
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"


def _split_paths(value: object) -> object:
    """Accept "a:b", "a,b" or an already decoded list; leave anything else to pydantic."""
    if isinstance(value, str):
        parts = value.replace(",", os.pathsep).split(os.pathsep)
        return [Path(part.strip()) for part in parts if part.strip()]
    return value


class CacheSettings(BaseModel):
    """
    Where CRL copies and combined CRL artifacts live.

    `scope` is prefixed to each CRL URI before hashing, so two execution
    contexts (users, services) sharing a directory never share an entry.
    """

    directory: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()),
        description="Directory holding cached CRLs and combined artifacts",
    )
    scope: str = Field(
        default_factory=lambda: os.environ.get("HOME", ""),
        description="Execution-context discriminator mixed into cache keys",
    )


class FetchSettings(BaseModel):
    """CRL download behaviour. Only transient network errors are retried."""

    timeout_seconds: int = Field(default=60, ge=1)
    retry_attempts: int = Field(default=3, ge=1)


class OpenSslSettings(BaseModel):
    binary: str = Field(default="openssl", description="Path or name of the openssl executable")


class VerificationSettings(BaseModel):
    """
    What to verify and against which anchors.

    Path lists accept a JSON array or a separated string:
      VERIFICATION__TRUST_ANCHORS='["/etc/ssl/ca.pem", "/etc/ssl/certs"]'
      VERIFICATION__TRUST_ANCHORS=/etc/ssl/ca.pem:/etc/ssl/certs
      VERIFICATION__CHAIN=intermediate.pem,other.pem
    """

    certificate: Path = Field(description="Leaf certificate file (PEM or DER)")
    # `| str` lets plain, non-JSON env values reach the splitter below.
    chain: list[Path] | str = Field(default_factory=list, description="Extra certificate files to link")
    trust_anchors: list[Path] | str = Field(default_factory=list, description="Trusted files and directories")
    purpose: Purpose = Field(default=Purpose.ANY)
    check_crl: bool = Field(default=True)
    check_all: bool = Field(default=False)

    @field_validator("chain", "trust_anchors", mode="before")
    @classmethod
    def split_path_list(cls, value: object) -> object:
        return _split_paths(value)

    @property
    def chain_paths(self) -> list[Path]:
        return list(self.chain) if not isinstance(self.chain, str) else []

    @property
    def anchor_paths(self) -> list[Path]:
        return list(self.trust_anchors) if not isinstance(self.trust_anchors, str) else []


class AppSettings(BaseSettings):
    """
    Root application settings — aggregates all sub-settings.

    Load order (highest priority first):
      1. Environment variables
      2. .env file
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    verification: VerificationSettings
    cache: CacheSettings = Field(default_factory=lambda: CacheSettings())
    fetch: FetchSettings = Field(default_factory=lambda: FetchSettings())
    openssl: OpenSslSettings = Field(default_factory=lambda: OpenSslSettings())

    log_level: str = Field(default="INFO")
