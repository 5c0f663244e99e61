"""Network fault injection facade."""

import importlib
import logging
from typing import Any, Optional, Protocol

from dtagent.errors import FaultProviderUnavailable

logger = logging.getLogger("dtagent.faults")


class FaultProvider(Protocol):
    """Protocol for network fault providers."""

    def drop_port(self, port: str) -> Any:
        """Block traffic on a port."""
        ...

    def recover_port(self, port: str) -> Any:
        """Restore traffic on a port."""
        ...


class UnavailableFaultProvider:
    """Provider used when none is configured."""

    def drop_port(self, port: str) -> Any:
        raise FaultProviderUnavailable("No network fault provider configured")

    def recover_port(self, port: str) -> Any:
        raise FaultProviderUnavailable("No network fault provider configured")


def load_provider(path: Optional[str]) -> FaultProvider:
    """
    Instantiate a provider from a dotted path such as ``package.module:ClassName``.

    Args:
        path: Import path of a zero-argument provider factory, or None

    Returns:
        Provider instance, UnavailableFaultProvider when path is empty
    """
    if not path:
        return UnavailableFaultProvider()

    module_name, _, attr = path.partition(":")
    if not attr:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise ValueError(f"Invalid fault provider path: {path}")

    factory = getattr(importlib.import_module(module_name), attr)
    logger.info(f"Loaded fault provider {path}")
    return factory()


class FaultInjector:
    """Forwards single-port fault requests to a provider."""

    def __init__(self, provider: Optional[FaultProvider] = None):
        self.provider = provider or UnavailableFaultProvider()

    def drop_port(self, port: str) -> Any:
        logger.info(f"Dropping port {port}")
        return self.provider.drop_port(port)

    def recover_port(self, port: str) -> Any:
        logger.info(f"Recovering port {port}")
        return self.provider.recover_port(port)
