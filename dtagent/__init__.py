"""
dtagent - Distributed Testing Node Agent

A per-host agent that supervises one managed process ("instance") on
behalf of a remote controller.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- executor: External command execution and process control
- lifecycle: Instance state machine (start/stop/pause/continue)
- registrar: Agent registration with the controller
- faults: Network fault injection facade
- agent: Composition root tying the modules together
- api: HTTP control endpoint
"""

__version__ = "1.0.0"
