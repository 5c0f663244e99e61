"""
Agent Module - Black Box Interface

Purpose: Node-local control point composing all agent modules
Interface: Agent lifecycle and fault operations, register(), shutdown()
Hidden: Module wiring, log sink ownership

One Agent exists per process.
"""

from .agent import Agent

__all__ = ["Agent"]
