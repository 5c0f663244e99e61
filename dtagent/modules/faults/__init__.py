"""
Faults Module - Black Box Interface

Purpose: Simulate network partitions on a single port
Interface: FaultInjector.drop_port(port), recover_port(port)
Hidden: The provider that actually manipulates port reachability

Providers are pluggable; the agent only forwards the port and the result.
"""

from .injector import FaultInjector, FaultProvider, UnavailableFaultProvider, load_provider

__all__ = ["FaultInjector", "FaultProvider", "UnavailableFaultProvider", "load_provider"]
