"""
Configuration subsystem for ranksync.

Static configuration (`Config`) is loaded from environment variables at
startup. Dynamic tunables (`ConfigManager`) are loaded from the YAML files
in `config/` and read with dot-notation keys.

Usage
-----
```python
from ranksync.core.config import Config, ConfigManager

Config.validate()
ConfigManager.initialize()

db_url = Config.DATABASE_URL
top_n = ConfigManager.get("leaderboard.window.top_n", 100)
```
"""

from ranksync.core.config.config import Config
from ranksync.core.config.manager import (
    ConfigInitializationError,
    ConfigManager,
    ConfigManagerError,
)

__all__ = [
    "Config",
    "ConfigManager",
    "ConfigManagerError",
    "ConfigInitializationError",
]
