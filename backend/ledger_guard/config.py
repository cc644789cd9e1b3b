"""
Guard settings.

The engine takes a GuardSettings instance and never reads the environment
itself. settings_from_env() is for hosts (the FastAPI hook server) that
configure it through environment variables / a .env file.
"""

from typing import Mapping, Optional
import os

from pydantic import BaseModel, Field

from ledger_guard.policy_service import PolicyConfig

ENV_ALLOW_UNKNOWN_COLLECTIONS = "LEDGER_GUARD_ALLOW_UNKNOWN_COLLECTIONS"
ENV_PROHIBIT_SELF_APPROVAL = "LEDGER_GUARD_PROHIBIT_SELF_APPROVAL"

TRUTHY = {"1", "true", "yes", "on"}


class GuardSettings(BaseModel):
    # Unregistered collections are rejected unless this is set
    allow_unknown_collections: bool = False
    policy: PolicyConfig = Field(default_factory=PolicyConfig)


def _flag(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in TRUTHY


def settings_from_env(environ: Optional[Mapping[str, str]] = None) -> GuardSettings:
    environ = os.environ if environ is None else environ
    return GuardSettings(
        allow_unknown_collections=_flag(environ, ENV_ALLOW_UNKNOWN_COLLECTIONS, False),
        policy=PolicyConfig(
            prohibit_self_approval=_flag(environ, ENV_PROHIBIT_SELF_APPROVAL, False)
        ),
    )
