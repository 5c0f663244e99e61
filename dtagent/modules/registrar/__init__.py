"""
Registrar Module - Black Box Interface

Purpose: Announce this agent's address to the controller
Interface: Registrar.register() -> bool
Hidden: URL construction, retry policy, HTTP transport

Registration is best-effort: failure is logged and never stops the agent.
"""

from .registrar import REGISTER_PATH, Registrar

__all__ = ["Registrar", "REGISTER_PATH"]
