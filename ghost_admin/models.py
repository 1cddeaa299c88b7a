"""Configuration models for ghost_admin.

All models use Pydantic v2.
"""

from __future__ import annotations

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ClientConfig(BaseModel):
    """Configuration for one Ghost Admin API target.

    The executor built from this config owns TLS and any authentication
    headers; the client itself only sees base_url and user_agent.
    """

    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(description="https root of the Admin API, without a path")
    user_agent: str | None = Field(
        default=None, description="Overrides the default User-Agent label if set"
    )
    timeout: float = Field(default=30.0, gt=0, description="Default request timeout in seconds")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Headers sent with every request (supports ${ENV_VAR} substitution)",
    )
    verify_ssl: bool = Field(default=True, description="Verify the server certificate")
    ca_bundle: str | None = Field(default=None, description="Path to a CA bundle for verification")
    cert: str | None = Field(default=None, description="Client certificate path (mTLS)")
    key: str | None = Field(default=None, description="Client private key path (mTLS)")

    @model_validator(mode="after")
    def check_cert_pair(self) -> Self:
        if (self.cert is None) != (self.key is None):
            raise ValueError("cert and key must be given together")
        return self
