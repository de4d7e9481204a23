"""Configuration for the sync engine and the Shopify connection."""

from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass, fields
from typing import Any, Mapping

import yaml

from catalog_sync.errors import ConfigError

DEFAULT_API_VERSION = "2024-10"
ENV_PREFIX = "SYNC_"

_BOOL_TRUE = {"1", "true", "yes", "on"}


@dataclass(slots=True, frozen=True)
class SyncConfig:
    batch_size: int = 250
    chunk_size: int = 100
    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000
    memory_threshold_bytes: int = 500 * 1024 * 1024
    persist_batch_size: int = 1000
    include_costs: bool = True
    # Re-check the bucket after a rate-limit wait instead of proceeding blindly.
    rate_limit_recheck: bool = False

    def __post_init__(self) -> None:
        for name in (
            "batch_size",
            "chunk_size",
            "max_retries",
            "base_delay_ms",
            "max_delay_ms",
            "memory_threshold_bytes",
            "persist_batch_size",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SyncConfig":
        known = {f.name: f for f in fields(cls)}
        unknown = set(data) - set(known)
        if unknown:
            raise ConfigError(f"Unknown sync option(s): {', '.join(sorted(unknown))}")
        values: dict[str, Any] = {}
        for name, value in data.items():
            if known[name].type in ("bool", bool):
                values[name] = _to_bool(value)
            else:
                values[name] = _to_int(name, value)
        return cls(**values)

    @classmethod
    def from_yaml(cls, path: str | os.PathLike[str]) -> "SyncConfig":
        return cls.from_mapping(_load_yaml(path))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "SyncConfig":
        """Build a config from ``SYNC_*`` variables, layered over ``SYNC_CONFIG_PATH``."""
        env = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        config_path = env.get("SYNC_CONFIG_PATH")
        if config_path:
            data.update(_load_yaml(config_path))
        for f in fields(cls):
            raw = env.get(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is not None and raw != "":
                data[f.name] = raw
        return cls.from_mapping(data)


@dataclass(slots=True, frozen=True)
class ShopifySettings:
    store_domain: str
    access_token: str
    api_version: str = DEFAULT_API_VERSION

    @property
    def graphql_url(self) -> str:
        return f"https://{normalize_store_domain(self.store_domain)}/admin/api/{self.api_version}/graphql.json"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ShopifySettings":
        env = os.environ if environ is None else environ
        try:
            domain = env["SHOPIFY_STORE_DOMAIN"]
            token = env["SHOPIFY_ACCESS_TOKEN"]
        except KeyError as exc:
            raise ConfigError(f"Missing environment variable: {exc.args[0]}") from exc
        return cls(
            store_domain=domain,
            access_token=token,
            api_version=env.get("SHOPIFY_API_VERSION") or DEFAULT_API_VERSION,
        )


def normalize_store_domain(domain: str) -> str:
    """Accept ``my-store``, ``my-store.myshopify.com`` or a full URL."""
    domain = domain.replace("https://", "").replace("http://", "").rstrip("/")
    if not domain.endswith(".myshopify.com"):
        domain = f"{domain}.myshopify.com"
    return domain


def _load_yaml(path: str | os.PathLike[str]) -> dict[str, Any]:
    data = yaml.safe_load(pathlib.Path(path).read_text()) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping of sync options")
    return data


def _to_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ConfigError(f"{name} must be a positive integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a positive integer, got {value!r}") from exc


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _BOOL_TRUE
    return bool(value)
