"""Config providers.

Layered config (defaults < file < .env < environment < CLI) is composed from
small providers so tests and callers can swap any layer:

  - Provider returns a plain nested dict.
  - ConfigManager merges providers in precedence order.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple, runtime_checkable

from dotenv import dotenv_values

# Unprefixed variables understood for compatibility with existing .env files.
ENV_ALIASES: Dict[str, Tuple[str, ...]] = {
    "NETWORK": ("ledger", "network"),
    "APTOS_API_KEY": ("ledger", "api_key"),
    "APTOS_NODE_URL": ("ledger", "node_url"),
    "APTOS_INDEXER_URL": ("ledger", "indexer_url"),
}


@runtime_checkable
class ConfigProvider(Protocol):
    name: str

    def load(self) -> Dict[str, Any]:
        """Return the provider config as a plain dict."""
        ...


def deep_merge(a: Dict[str, Any], b: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge mapping b into dict a (recursive for dict values)."""
    for k, v in b.items():
        if isinstance(v, Mapping) and isinstance(a.get(k), Mapping):
            a[k] = deep_merge(dict(a[k]), v)  # type: ignore[arg-type]
        else:
            a[k] = v
    return a


def _set_nested(d: Dict[str, Any], keys: Iterable[str], value: Any) -> None:
    keys = list(keys)
    cur = d
    for k in keys[:-1]:
        if k not in cur or not isinstance(cur[k], dict):
            cur[k] = {}
        cur = cur[k]
    cur[keys[-1]] = value


def coerce_value(s: str) -> Any:
    sl = s.strip().lower()
    if sl in {"true", "yes", "on"}:
        return True
    if sl in {"false", "no", "off"}:
        return False
    # keep hex addresses and zero-padded ids as strings
    if not (sl.startswith("0") and len(sl) > 1 and sl[1] != "."):
        try:
            if "." in sl:
                return float(sl)
            return int(sl)
        except ValueError:
            pass
    if (sl.startswith("{") and sl.endswith("}")) or (sl.startswith("[") and sl.endswith("]")):
        try:
            return json.loads(s)
        except json.JSONDecodeError:
            return s
    return s.strip()


def nest_variables(items: Mapping[str, Optional[str]], prefix: str, sep: str = "__") -> Dict[str, Any]:
    """Turn PREFIX_A__B=v style variables (plus known aliases) into {"a": {"b": v}}."""
    out: Dict[str, Any] = {}
    for k, v in items.items():
        if v is None:
            continue
        if k in ENV_ALIASES:
            _set_nested(out, ENV_ALIASES[k], coerce_value(v))
            continue
        if not k.startswith(prefix):
            continue
        parts = [p.strip().lower() for p in k[len(prefix):].split(sep) if p.strip()]
        if parts:
            _set_nested(out, parts, coerce_value(v))
    return out


@dataclass
class DictProvider:
    name: str = "dict"
    data: Dict[str, Any] = field(default_factory=dict)

    def load(self) -> Dict[str, Any]:
        return json.loads(json.dumps(self.data or {}))


@dataclass
class EnvProvider:
    """Reads NFTRECON_* variables and builds nested dict via '__' separator.

    Example:
      NFTRECON_FETCH__PAGE_SIZE=50
    becomes:
      {"fetch": {"page_size": 50}}
    """

    name: str = "env"
    prefix: str = "NFTRECON_"
    sep: str = "__"
    environ: Optional[Mapping[str, str]] = None

    def load(self) -> Dict[str, Any]:
        env = os.environ if self.environ is None else self.environ
        return nest_variables(env, self.prefix, self.sep)


@dataclass
class DotenvProvider:
    """Same key rules as EnvProvider, read from a .env file without touching os.environ."""

    name: str = "dotenv"
    path: str = ".env"
    prefix: str = "NFTRECON_"
    sep: str = "__"

    def load(self) -> Dict[str, Any]:
        if not self.path or not os.path.exists(self.path):
            return {}
        return nest_variables(dotenv_values(self.path), self.prefix, self.sep)


@dataclass
class FileProvider:
    """Reads a JSON or TOML config file."""

    name: str = "file"
    path: str = ""
    optional: bool = True

    def load(self) -> Dict[str, Any]:
        if not self.path:
            return {}
        if not os.path.exists(self.path):
            if self.optional:
                return {}
            raise FileNotFoundError(self.path)

        with open(self.path, "rb") as f:
            raw = f.read()

        p = self.path.lower()
        if p.endswith(".toml"):
            import tomllib

            return tomllib.loads(raw.decode("utf-8"))
        if p.endswith(".json"):
            return json.loads(raw.decode("utf-8"))
        raise ValueError(f"Unsupported config format: {self.path} (use .toml or .json)")


@dataclass
class ConfigManager:
    """Compose providers in precedence order (later overrides earlier)."""

    providers: List[ConfigProvider]

    def load(self) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for p in self.providers:
            payload = p.load()
            if payload:
                deep_merge(merged, payload)
        return merged
