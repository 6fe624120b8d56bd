"""
Marketplace Policy - tunable parameters of the approval engine

The policy centralizes the numbers the business rules depend on
(quorum cap, allowed service types) and the operational knobs of the
core (conflict retries, deadlines). Defaults reproduce the reference
marketplace: quorum = min(3, responsible users).
"""

import os
from typing import Any

from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "TQ_"


class MarketplacePolicy(BaseModel):
    """
    Parameters for the tender/bid lifecycle and quorum engine

    Loaded from defaults, explicit keyword arguments, or the environment
    (see from_env).
    """

    policy_version: str = Field(
        default="1.0",
        description="Policy version for tracking changes over time",
    )

    quorum_cap: int = Field(
        default=3,
        ge=1,
        description="Upper bound on approvals required: quorum = min(cap, responsibles)",
    )

    allowed_service_types: list[str] = Field(
        default=["Construction", "IT", "Consulting"],
        min_length=1,
        description="Service types a tender may declare",
    )

    max_conflict_retries: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Attempts for an operation that keeps hitting version conflicts",
    )

    conflict_retry_min_wait_ms: int = Field(default=5, ge=0)
    conflict_retry_max_wait_ms: int = Field(default=200, ge=0)

    operation_timeout_seconds: int | None = Field(
        default=None,
        ge=1,
        description="Deadline for a single façade operation (None = no deadline)",
    )

    sqlite_busy_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long a connection waits on the SQLite write lock",
    )

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "description": "Parameters governing tender/bid lifecycle and approval quorum"
        },
    }

    @field_validator("allowed_service_types")
    @classmethod
    def validate_service_types(cls, v: list[str]) -> list[str]:
        cleaned = [s.strip() for s in v if s and s.strip()]
        if not cleaned:
            raise ValueError("At least one service type must be allowed")
        return cleaned

    def is_allowed_service_type(self, service_type: str) -> bool:
        return service_type in self.allowed_service_types

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "MarketplacePolicy":
        """
        Build a policy from TQ_* environment variables

        Recognized: TQ_QUORUM_CAP, TQ_ALLOWED_SERVICE_TYPES (comma separated),
        TQ_MAX_CONFLICT_RETRIES, TQ_OPERATION_TIMEOUT_SECONDS,
        TQ_SQLITE_BUSY_TIMEOUT_SECONDS. Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}

        if env.get(f"{ENV_PREFIX}QUORUM_CAP"):
            overrides["quorum_cap"] = int(env[f"{ENV_PREFIX}QUORUM_CAP"])
        if env.get(f"{ENV_PREFIX}ALLOWED_SERVICE_TYPES"):
            overrides["allowed_service_types"] = env[
                f"{ENV_PREFIX}ALLOWED_SERVICE_TYPES"
            ].split(",")
        if env.get(f"{ENV_PREFIX}MAX_CONFLICT_RETRIES"):
            overrides["max_conflict_retries"] = int(env[f"{ENV_PREFIX}MAX_CONFLICT_RETRIES"])
        if env.get(f"{ENV_PREFIX}OPERATION_TIMEOUT_SECONDS"):
            overrides["operation_timeout_seconds"] = int(
                env[f"{ENV_PREFIX}OPERATION_TIMEOUT_SECONDS"]
            )
        if env.get(f"{ENV_PREFIX}SQLITE_BUSY_TIMEOUT_SECONDS"):
            overrides["sqlite_busy_timeout_seconds"] = float(
                env[f"{ENV_PREFIX}SQLITE_BUSY_TIMEOUT_SECONDS"]
            )

        return cls(**overrides)


default_policy = MarketplacePolicy()
