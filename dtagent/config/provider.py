"""Configuration provider following Black Box Design principles."""
import os
import shlex
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import yaml


# Configuration Contract: keys the agent cannot start without
REQUIRED_CONFIG_KEYS = {
    "ctrl_addr": "Controller address the agent registers with",
    "instance_bin": "Launch target of the managed instance",
    "instance_dir": "Working directory of the managed instance",
}

ENV_PREFIX = "DTAGENT_"


@dataclass
class AgentConfig:
    """Agent configuration."""
    ctrl_addr: str
    instance_bin: Path
    instance_dir: Path
    ip: str = "127.0.0.1"
    port: int = 9527
    instance_args: List[str] = field(default_factory=list)
    instance_prepare: List[str] = field(default_factory=list)
    log_file: Optional[Path] = None
    backup_dir: Optional[Path] = None
    stop_timeout: float = 10.0
    command_timeout: Optional[float] = None
    register_attempts: int = 1
    register_interval: float = 0.05
    register_timeout: float = 5.0
    fault_provider: Optional[str] = None
    log_level: str = "INFO"
    agent_log_file: Optional[Path] = None

    @property
    def addr(self) -> str:
        """Listen address announced to the controller."""
        return f"{self.ip}:{self.port}"

    @property
    def instance_log(self) -> Path:
        """Log sink of the managed instance."""
        return self.log_file or self.instance_dir.parent / f"{self.instance_dir.name}.log"

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "AgentConfig":
        """
        Build a config from raw values, converting types.

        Raises:
            ValueError: If required keys are missing or a value has the wrong type
        """
        missing = [key for key in REQUIRED_CONFIG_KEYS if values.get(key) in (None, "")]
        if missing:
            raise ValueError(
                f"Missing required configuration keys: {', '.join(missing)}. "
                f"Set them in the config file, {ENV_PREFIX}* environment variables or CLI flags."
            )

        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        data = dict(values)
        for key in ("instance_bin", "instance_dir", "log_file", "backup_dir", "agent_log_file"):
            if data.get(key) in (None, ""):
                data.pop(key, None)
            else:
                data[key] = Path(data[key]).expanduser()
        if "port" in data:
            data["port"] = int(data["port"])
        for key in ("stop_timeout", "register_interval", "register_timeout"):
            if key in data:
                data[key] = float(data[key])
        if data.get("command_timeout") in (None, ""):
            data.pop("command_timeout", None)
        else:
            data["command_timeout"] = float(data["command_timeout"])
        if "register_attempts" in data:
            data["register_attempts"] = int(data["register_attempts"])
        for key in ("instance_args", "instance_prepare"):
            if isinstance(data.get(key), str):
                data[key] = shlex.split(data[key])
        if data.get("fault_provider") == "":
            data.pop("fault_provider")
        if "log_level" in data:
            data["log_level"] = str(data["log_level"]).upper()

        return cls(**data)


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def load(self) -> Dict[str, Any]:
        """Return the configuration values this source defines."""
        ...


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        self.environ = os.environ if environ is None else environ

    def load(self) -> Dict[str, Any]:
        """Get configuration from DTAGENT_* environment variables."""
        values: Dict[str, Any] = {}
        for f in fields(AgentConfig):
            raw = self.environ.get(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is not None:
                values[f.name] = raw
        if "log_level" not in values and self.environ.get("LOG_LEVEL"):
            values["log_level"] = self.environ["LOG_LEVEL"]
        return values


class YamlConfigProvider:
    """YAML file configuration provider."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Dict[str, Any]:
        """Get configuration from a YAML mapping."""
        with open(self.path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {self.path} must contain a mapping")
        return {key.replace("-", "_"): value for key, value in data.items()}


def load_config(
    config_file: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> AgentConfig:
    """
    Merge configuration sources into an AgentConfig.

    Precedence, lowest first: defaults, YAML file, environment, overrides.
    Overrides whose value is None are ignored.
    """
    values: Dict[str, Any] = {}
    providers: List[ConfigProvider] = []
    if config_file:
        providers.append(YamlConfigProvider(config_file))
    providers.append(EnvConfigProvider(environ))

    for provider in providers:
        values.update(provider.load())
    values.update({k: v for k, v in (overrides or {}).items() if v is not None})

    return AgentConfig.from_dict(values)
