"""Config module.

  - load_config(defaults, file_path) -> dict   (raw layered dict)
  - load_settings(file_path) -> Settings        (typed, validated)
"""

from __future__ import annotations

from .core import Settings, load_settings  # noqa: F401
from .loader import DEFAULTS, load_config  # noqa: F401
from .providers import (  # noqa: F401
    ConfigManager,
    ConfigProvider,
    DictProvider,
    DotenvProvider,
    EnvProvider,
    FileProvider,
)

__all__ = [
    "DEFAULTS",
    "Settings",
    "load_config",
    "load_settings",
    "ConfigProvider",
    "ConfigManager",
    "DictProvider",
    "DotenvProvider",
    "EnvProvider",
    "FileProvider",
]
