"""
Configuration management subsystem for Statboard.

Architecture
------------
- **config.py**: Static configuration from environment variables (.env support)
- **manager.py**: Dynamic configuration from YAML defaults with dot-notation access
- **errors.py**: Configuration exception hierarchy

Static vs Dynamic Configuration
--------------------------------
**Static (Config):**
- Loaded from environment variables at import
- Includes: Redis URL and pool settings, logging, per-call deadlines

**Dynamic (ConfigManager):**
- Loaded from YAML files in `Config.CONFIG_DIR`
- Includes: resilience tunables, metric catalog, display settings

Usage Examples
--------------
```python
from statboard.core.config import Config, ConfigManager

url = Config.REDIS_URL
attempts = ConfigManager.get("core.redis.resilience.retry.max_attempts", 3)
catalog = ConfigManager.get("leaderboards", {})
```
"""

from statboard.core.config.config import Config, Environment
from statboard.core.config.errors import (
    ConfigError,
    ConfigInitializationError,
    ConfigValidationError,
)
from statboard.core.config.manager import ConfigManager

__all__ = [
    "Config",
    "Environment",
    "ConfigManager",
    "ConfigError",
    "ConfigInitializationError",
    "ConfigValidationError",
]
