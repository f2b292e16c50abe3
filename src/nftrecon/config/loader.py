from __future__ import annotations

from typing import Any, Dict, Optional

from nftrecon.ledger.types import BURN_ADDRESS

from .providers import ConfigManager, DictProvider, DotenvProvider, EnvProvider, FileProvider, deep_merge

DEFAULTS: Dict[str, Any] = {
    "ledger": {
        "network": "testnet",
        "node_url": "",
        "indexer_url": "",
        "api_key": "",
        "timeout_s": 20.0,
        "user_agent": "nftrecon/0.1",
    },
    "fetch": {
        "page_size": 100,
        "page_delay_s": 0.1,
        "max_records": 0,  # 0 => unbounded
    },
    "enrich": {
        "max_concurrency": 10,
    },
    "supply": {
        "burn_address": BURN_ADDRESS,
    },
    "output": {
        "dir": ".",
    },
    "log": {
        "level": "info",
        "json": False,
        "file": "",
    },
}


def load_config(
    defaults: Optional[Dict[str, Any]] = None,
    file_path: Optional[str] = None,
    *,
    use_env: bool = True,
    env_prefix: str = "NFTRECON_",
    dotenv_path: Optional[str] = ".env",
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Load layered config: defaults < file < .env < env < overrides."""
    providers = [DictProvider(data=dict(DEFAULTS if defaults is None else defaults))]
    if file_path:
        providers.append(FileProvider(path=file_path, optional=False))
    if use_env and dotenv_path:
        providers.append(DotenvProvider(path=dotenv_path, prefix=env_prefix))
    if use_env:
        providers.append(EnvProvider(prefix=env_prefix))
    merged = ConfigManager(providers).load()
    if overrides:
        deep_merge(merged, overrides)
    return merged
