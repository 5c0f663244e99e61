"""
Lifecycle Module - Black Box Interface

Purpose: Own the managed instance and its state machine
Interface: InstanceController.start(), stop(), restart(), pause(), resume(),
           backup(), cleanup(), shutdown(), status()
Hidden: Process handle tracking, signal sequencing, locking

All process actions are issued through the executor module.
"""

from .instance import TRANSITIONS, InstanceController, InstanceState, Operation

__all__ = ["InstanceController", "InstanceState", "Operation", "TRANSITIONS"]
