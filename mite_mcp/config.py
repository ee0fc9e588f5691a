"""Configuration for the mite API client.

Credentials come from the environment (optionally seeded from a ``.env``
file by the CLI):

- MITE_ACCOUNT_NAME: account subdomain (required)
- MITE_API_KEY: API key (recommended)
- MITE_EMAIL / MITE_PASSWORD: basic auth fallback
"""

import os
import re
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigurationError


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class MiteConfig(BaseModel):
    """Validated mite credentials."""

    model_config = ConfigDict(frozen=True)

    account_name: str = Field(description="mite account name, used as <account>.mite.de")
    api_key: Optional[str] = Field(default=None, description="mite API key")
    email: Optional[str] = Field(default=None, description="Login email for basic auth")
    password: Optional[str] = Field(default=None, description="Login password for basic auth")

    @field_validator('account_name')
    def validate_account_name(cls, v):
        if not v.strip():
            raise ValueError("Account name is required")
        return v

    @field_validator('email')
    def validate_email(cls, v):
        if v is not None and not _EMAIL_RE.match(v):
            raise ValueError("Invalid email")
        return v

    @model_validator(mode='after')
    def validate_credentials(self):
        if not self.api_key and not (self.email and self.password):
            raise ValueError("Either API key or email/password combination is required")
        return self


def validate_config(data: Mapping[str, Optional[str]]) -> MiteConfig:
    """Build a MiteConfig, converting validation failures to ConfigurationError."""
    try:
        return MiteConfig(**data)
    except ValidationError as e:
        messages = [err["msg"].removeprefix("Value error, ") for err in e.errors()]
        raise ConfigurationError("; ".join(messages)) from e


def get_config_from_env(environ: Optional[Mapping[str, str]] = None) -> MiteConfig:
    """Read MITE_* variables from the environment."""
    env = os.environ if environ is None else environ
    return validate_config({
        "account_name": env.get("MITE_ACCOUNT_NAME", ""),
        "api_key": env.get("MITE_API_KEY") or None,
        "email": env.get("MITE_EMAIL") or None,
        "password": env.get("MITE_PASSWORD") or None,
    })
