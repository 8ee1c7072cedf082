# common/config.py
"""Run settings: defaults, overridden by PKI_* environment variables (.env honoured), then CLI flags."""
import os
from typing import Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from pkichain.common.errors import ConfigError

ENV_PREFIX = "PKI_"


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    out_dir: str = "certs"
    ca_validity_years: int = 10
    intermediate_validity_years: int = 5
    leaf_validity_years: int = 2
    key_bits_ca: int = 4096
    key_bits_leaf: int = 2048
    server_sans: Tuple[str, ...] = ("DNS:localhost", "IP:127.0.0.1")
    root_cn: str = "MyRootCA"
    intermediate_cn: str = "MyIntermediateCA"
    server_cn: str = "localhost"
    client_cn: str = "client"
    enforce_validity_nesting: bool = True
    log_level: str = "INFO"

    @field_validator("ca_validity_years", "intermediate_validity_years", "leaf_validity_years")
    @classmethod
    def _positive_years(cls, v):
        if v < 1:
            raise ValueError("validity must be at least one year")
        return v

    @field_validator("key_bits_ca", "key_bits_leaf")
    @classmethod
    def _key_bits(cls, v):
        if v < 2048:
            raise ValueError("RSA keys below 2048 bits are not issued")
        return v

    @field_validator("server_sans", mode="before")
    @classmethod
    def _split_sans(cls, v):
        if isinstance(v, str):
            return tuple(s.strip() for s in v.split(",") if s.strip())
        return v

    @field_validator("log_level")
    @classmethod
    def _level(cls, v):
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {v!r}")
        return v

    def with_overrides(self, **overrides) -> "Settings":
        """Return a copy with every non-None override applied and re-validated."""
        data = self.model_dump()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return _validate(data)


def _validate(data: dict) -> Settings:
    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(str(e)) from e


def load_settings(environ: Optional[dict] = None, dotenv: bool = True) -> Settings:
    if environ is None:
        if dotenv:
            load_dotenv()
        environ = os.environ
    data = {}
    for name in Settings.model_fields:
        raw = environ.get(ENV_PREFIX + name.upper())
        if raw is not None:
            data[name] = raw
    return _validate(data)
