"""Agent registration with the controller."""

import logging
import time
from typing import Optional

import requests

logger = logging.getLogger("dtagent.registrar")

REGISTER_PATH = "api/agent/register"


class Registrar:
    """Registers the agent address with the controller over HTTP."""

    def __init__(
        self,
        ctrl_addr: str,
        agent_addr: str,
        attempts: int = 1,
        interval: float = 0.05,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize registrar.

        Args:
            ctrl_addr: Controller address, with or without scheme
            agent_addr: This agent's reachable ip:port
            attempts: Number of registration attempts (at least 1)
            interval: Seconds to sleep between failed attempts
            timeout: Per-request timeout in seconds
            session: Optional requests session (for connection reuse or tests)
        """
        if attempts < 1:
            raise ValueError("attempts must be at least 1")

        self.ctrl_addr = ctrl_addr
        self.agent_addr = agent_addr
        self.attempts = attempts
        self.interval = interval
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def url(self) -> str:
        """Full URL of the controller registration endpoint."""
        base = self.ctrl_addr.rstrip("/")
        if "://" not in base:
            base = f"http://{base}"
        return f"{base}/{REGISTER_PATH}"

    def register(self) -> bool:
        """
        Register with the controller.

        Returns:
            True if the controller accepted the registration, False otherwise
        """
        for attempt in range(1, self.attempts + 1):
            try:
                response = self.session.post(
                    self.url,
                    params={"addr": self.agent_addr},
                    timeout=self.timeout,
                )
                response.raise_for_status()
                logger.info(f"Registered {self.agent_addr} with controller {self.ctrl_addr}")
                return True
            except requests.exceptions.RequestException as e:
                logger.warning(
                    f"Register failed (attempt {attempt}/{self.attempts}): {e}"
                )
                if attempt < self.attempts:
                    time.sleep(self.interval)

        return False
