"""Agent configuration."""

from .provider import (
    REQUIRED_CONFIG_KEYS,
    AgentConfig,
    ConfigProvider,
    EnvConfigProvider,
    YamlConfigProvider,
    load_config,
)

__all__ = [
    "AgentConfig",
    "ConfigProvider",
    "EnvConfigProvider",
    "YamlConfigProvider",
    "REQUIRED_CONFIG_KEYS",
    "load_config",
]
