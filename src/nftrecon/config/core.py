from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from nftrecon.errors import ConfigError
from nftrecon.ledger.types import BURN_ADDRESS, NETWORK_URLS, Network
from nftrecon.logging import LogConfig

from .loader import load_config


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, built once at startup and passed down explicitly."""

    network: str
    node_url: str
    indexer_url: str
    api_key: str = ""
    timeout_s: float = 20.0
    user_agent: str = "nftrecon/0.1"
    page_size: int = 100
    page_delay_s: float = 0.1
    max_records: int = 0
    max_concurrency: int = 10
    burn_address: str = BURN_ADDRESS
    output_dir: str = "."
    log: LogConfig = field(default_factory=LogConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        def section(name: str) -> Dict[str, Any]:
            v = data.get(name) or {}
            if not isinstance(v, dict):
                raise ConfigError(f"config section '{name}' must be a table")
            return v

        ledger, fetch, enrich = section("ledger"), section("fetch"), section("enrich")
        supply, output, log = section("supply"), section("output"), section("log")

        network = str(ledger.get("network") or "testnet").strip().lower()
        node_url = str(ledger.get("node_url") or "").strip()
        indexer_url = str(ledger.get("indexer_url") or "").strip()
        try:
            preset = NETWORK_URLS[Network(network)]
        except ValueError:
            preset = None
        if preset is None and not (node_url and indexer_url):
            raise ConfigError(
                f"unknown network '{network}' (use {', '.join(n.value for n in Network)} "
                "or set ledger.node_url and ledger.indexer_url)"
            )
        if preset is not None:
            node_url = node_url or preset["node"]
            indexer_url = indexer_url or preset["indexer"]

        try:
            s = cls(
                network=network,
                node_url=node_url.rstrip("/"),
                indexer_url=indexer_url,
                api_key=str(ledger.get("api_key") or ""),
                timeout_s=float(ledger.get("timeout_s", 20.0)),
                user_agent=str(ledger.get("user_agent") or "nftrecon/0.1"),
                page_size=int(fetch.get("page_size", 100)),
                page_delay_s=float(fetch.get("page_delay_s", 0.1)),
                max_records=int(fetch.get("max_records", 0) or 0),
                max_concurrency=int(enrich.get("max_concurrency", 10)),
                burn_address=str(supply.get("burn_address") or BURN_ADDRESS).lower(),
                output_dir=str(output.get("dir") or "."),
                log=LogConfig(
                    level=str(log.get("level") or "info"),
                    json=bool(log.get("json", False)),
                    to_file=(str(log["file"]) if log.get("file") else None),
                ),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid config value: {e}") from e
        s.validate()
        return s

    def validate(self) -> None:
        if self.page_size < 1:
            raise ConfigError("fetch.page_size must be >= 1")
        if self.page_delay_s < 0:
            raise ConfigError("fetch.page_delay_s must be >= 0")
        if self.max_records < 0:
            raise ConfigError("fetch.max_records must be >= 0")
        if self.max_concurrency < 1:
            raise ConfigError("enrich.max_concurrency must be >= 1")
        if self.timeout_s <= 0:
            raise ConfigError("ledger.timeout_s must be > 0")
        if not self.burn_address.startswith("0x"):
            raise ConfigError("supply.burn_address must be a 0x-prefixed address")


def load_settings(
    file_path: Optional[str] = None,
    *,
    overrides: Optional[Dict[str, Any]] = None,
    use_env: bool = True,
    dotenv_path: Optional[str] = ".env",
) -> Settings:
    try:
        data = load_config(file_path=file_path, use_env=use_env, dotenv_path=dotenv_path, overrides=overrides)
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot load config: {e}") from e
    return Settings.from_dict(data)
