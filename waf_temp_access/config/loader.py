"""Configuration loader.

Design goals:
- Environment variables are the source of truth (CI inputs are exported as env).
- Keep configuration explicit, typed, and self-documented.
- Retry budgets: 10 jittered attempts for IPSet lock conflicts, 5 plain attempts for
  security-group errors. The two paths are tuned independently.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from ..store.types import ALLOWED_SCOPES

load_dotenv(override=False)

ALLOWED_BACKENDS: set[str] = {"aws", "memory"}


class ConfigError(ValueError):
    pass


def _env_first(*names: str, default: str = "") -> str:
    """Return the first non-empty value among several env keys."""
    for n in names:
        v = os.getenv(n)
        if v is not None and str(v).strip() != "":
            return str(v).strip()
    return default



@dataclass(frozen=True)
class Settings:
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # AWS
    aws_region: str = _env_first("AWS_REGION", "AWS_DEFAULT_REGION", default="")
    aws_profile: str = os.getenv("AWS_PROFILE", "")
    # aws | memory (memory = in-process drill, nothing leaves the host)
    store_backend: str = os.getenv("STORE_BACKEND", "aws").strip().lower()

    # WAF IPSet (versioned allow-list). Empty id disables this path.
    ipset_id: str = os.getenv("IPSET_ID", "").strip()
    ipset_name: str = os.getenv("IPSET_NAME", "").strip()
    ipset_scope: str = os.getenv("IPSET_SCOPE", "REGIONAL").strip().upper()

    # Security group (unversioned rule). Empty id disables this path.
    security_group_id: str = os.getenv("SECURITY_GROUP_ID", "").strip()
    sg_description: str = os.getenv("SG_DESCRIPTION", "GitHub Actions runner")
    sg_port: int = int(os.getenv("SG_PORT", "443"))

    # Retry budgets
    versioned_max_attempts: int = int(os.getenv("VERSIONED_MAX_ATTEMPTS", "10"))
    unversioned_max_attempts: int = int(os.getenv("UNVERSIONED_MAX_ATTEMPTS", "5"))
    retry_base_delay_seconds: float = float(os.getenv("RETRY_BASE_DELAY_SECONDS", "1.0"))
    retry_jitter_seconds: float = float(os.getenv("RETRY_JITTER_SECONDS", "1.0"))

    # Public IP lookup
    ip_lookup_timeout_seconds: float = float(os.getenv("IP_LOOKUP_TIMEOUT_SECONDS", "10"))

    # Paired-run state (grant -> revoke) and CI outputs
    state_file: str = os.getenv("STATE_FILE", ".waf-temp-access/state.json")
    github_output: str = os.getenv("GITHUB_OUTPUT", "")

    # Observability
    metrics_textfile: str = os.getenv("METRICS_TEXTFILE", "")
    service_name: str = os.getenv("SERVICE_NAME", "waf-temp-access")


    def ipset_enabled(self) -> bool:
        return bool(self.ipset_id)

    def security_group_enabled(self) -> bool:
        return bool(self.security_group_id)


def validate_settings(s: Settings) -> Settings:
    if s.store_backend not in ALLOWED_BACKENDS:
        raise ConfigError(
            f"Invalid STORE_BACKEND={s.store_backend!r}. Allowed: {', '.join(sorted(ALLOWED_BACKENDS))}"
        )
    if not s.ipset_enabled() and not s.security_group_enabled():
        raise ConfigError("Nothing to grant: set IPSET_ID and/or SECURITY_GROUP_ID")
    if s.ipset_enabled():
        if not s.ipset_name:
            raise ConfigError("IPSET_NAME is required when IPSET_ID is set")
        if s.ipset_scope not in ALLOWED_SCOPES:
            raise ConfigError(f"Invalid scope: {s.ipset_scope}. Must be CLOUDFRONT or REGIONAL")
    if s.store_backend == "aws" and not s.aws_region:
        raise ConfigError("AWS_REGION is required")
    if s.versioned_max_attempts < 1 or s.unversioned_max_attempts < 1:
        raise ConfigError("max attempts must be >= 1")
    if not 0 < s.sg_port <= 65535:
        raise ConfigError(f"Invalid SG_PORT={s.sg_port}")
    return s


def load_settings() -> Settings:
    """Create Settings from the environment with basic validation."""
    return validate_settings(Settings())
