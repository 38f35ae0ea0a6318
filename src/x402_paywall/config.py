"""
Runtime Settings

Settings of the command-line client and of applications embedding the paywall
client, read from the process environment after loading a ``.env`` file.

Environment Variables:
    - EVM_PRIVATE_KEY: Payer private key used by LocalAccountWallet
    - X402_ACCEPT_INDEX: Index of the accepted option to pay with (default 0)
    - X402_SHOW_BALANCES: Print balances on every accepted chain before paying (default false)
    - X402_REQUEST_TIMEOUT: HTTP and RPC timeout in seconds (default 30)
    - X402_BALANCE_RETRIES: Retries per balance read (default 2)
    - X402_LOG_LEVEL: Logging level (default INFO)
"""

import os
from pathlib import Path
from typing import Mapping, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from .engine.exceptions import ConfigurationError

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class PaywallSettings(BaseModel):
    """Validated client settings."""
    private_key: Optional[str] = Field(default=None, repr=False)
    accept_index: int = Field(default=0, ge=0)
    show_balances: bool = False
    request_timeout: float = Field(default=30.0, gt=0)
    balance_retries: int = Field(default=2, ge=0)
    log_level: str = "INFO"

    @field_validator("show_balances", mode="before")
    @classmethod
    def _parse_flag(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"Unknown log level {value!r}")
        return level


_ENV_FIELDS = {
    "private_key": "EVM_PRIVATE_KEY",
    "accept_index": "X402_ACCEPT_INDEX",
    "show_balances": "X402_SHOW_BALANCES",
    "request_timeout": "X402_REQUEST_TIMEOUT",
    "balance_retries": "X402_BALANCE_RETRIES",
    "log_level": "X402_LOG_LEVEL",
}


def load_settings(
    env_file: Optional[Union[str, Path]] = None,
    overrides: Optional[Mapping[str, object]] = None,
) -> PaywallSettings:
    """
    Build settings from the environment.

    Args:
        env_file: ``.env`` file to load first; the default lookup of
            ``python-dotenv`` applies when omitted. Existing variables win.
        overrides: Field values taking precedence over the environment.

    Returns:
        PaywallSettings: Validated settings.

    Raises:
        ConfigurationError: If ``env_file`` does not exist or a value is invalid.
    """
    if env_file is not None:
        path = Path(env_file)
        if not path.exists():
            raise ConfigurationError(f"Config path does not exist: {path}")
        load_dotenv(dotenv_path=path)
    else:
        load_dotenv()

    values = {}
    for field_name, env_name in _ENV_FIELDS.items():
        raw = os.getenv(env_name)
        if raw is not None and raw.strip() != "":
            values[field_name] = raw.strip()
    values.update({key: value for key, value in (overrides or {}).items() if value is not None})

    try:
        return PaywallSettings(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid settings: {exc}") from exc
