"""
Configuration for the fabproxy service.

Settings come from the ``[fabproxy]`` table of a TOML file, then from
``FABPROXY_*`` environment variables, which take precedence.
"""
import os
import logging
import urllib.parse
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import tomli
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "FABPROXY_"

# Environment variable -> config field
_ENV_FIELDS = {
    "CHANNEL_ID": "channel_id",
    "USER": "user",
    "EVM_CHAINCODE": "evm_chaincode",
    "SYSTEM_CHAINCODE": "system_chaincode",
    "GATEWAY_URL": "gateway_url",
    "HOST": "host",
    "PORT": "port",
    "CORS_ORIGINS": "cors_origins",
    "REQUEST_TIMEOUT": "request_timeout",
}


class ProxyConfig(BaseModel):
    """Process-wide, read-only settings shared by every request"""
    channel_id: str = "channel1"
    user: str = "User1"
    evm_chaincode: str = "evmscc"
    system_chaincode: str = "qscc"
    gateway_url: str = "http://localhost:7080"
    host: str = "127.0.0.1"
    port: int = Field(5000, ge=1, le=65535)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    request_timeout: Optional[float] = None

    class Config:
        frozen = True

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("gateway_url")
    @classmethod
    def _validate_gateway_url(cls, url: str) -> str:
        validate_gateway_url(url)
        return url.rstrip("/")


def validate_gateway_url(url: str) -> None:
    """
    Validate the ledger bridge URL is secure.

    Args:
        url: Ledger bridge URL to validate

    Raises:
        ValueError: If URL is invalid or uses insecure HTTP
    """
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValueError(f"Invalid gateway URL '{url}'")

    # Treat loopback IPv6 address as local as well
    is_local = parsed.hostname in ("localhost", "127.0.0.1", "::1")
    if parsed.scheme != "https" and not is_local:
        if os.environ.get(f"{ENV_PREFIX}INSECURE_GATEWAY") != "1":
            raise ValueError(
                f"Gateway URL must use HTTPS for security (got: {parsed.scheme}://). "
                f"Set {ENV_PREFIX}INSECURE_GATEWAY=1 to allow HTTP for development."
            )


def _read_toml(path: Path) -> Dict[str, Any]:
    with open(path, "rb") as f:
        data = tomli.load(f)
    section = data.get("fabproxy", data)
    if not isinstance(section, dict):
        raise ValueError(f"[fabproxy] in {path} must be a table")
    return section


def _env_overrides(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    overrides = {}
    for suffix, field in _ENV_FIELDS.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value is not None and value != "":
            overrides[field] = value
    return overrides


def load_config(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Dict[str, str]] = None,
    **overrides: Any
) -> ProxyConfig:
    """
    Build the proxy configuration.

    Args:
        path: Optional TOML file; ``FABPROXY_CONFIG`` is used when omitted
        environ: Environment mapping (defaults to ``os.environ``)
        **overrides: Explicit values (e.g. from the command line), applied last;
            ``None`` values are ignored

    Returns:
        Validated ProxyConfig

    Raises:
        FileNotFoundError: If the config file does not exist
        tomli.TOMLDecodeError: If the config file is not valid TOML
        pydantic.ValidationError: If a value is invalid
    """
    env = os.environ if environ is None else environ
    values: Dict[str, Any] = {}

    path = path or env.get(f"{ENV_PREFIX}CONFIG")
    if path:
        values.update(_read_toml(Path(path)))
        logger.debug(f"Loaded configuration from {path}")

    values.update(_env_overrides(env))
    values.update({k: v for k, v in overrides.items() if v is not None})
    return ProxyConfig.model_validate(values)
