"""
Executor Module - Black Box Interface

Purpose: Run external commands and process-control actions for the agent
Interface: CommandExecutor.run(), spawn(), send_signal(), copy_tree(), remove_tree()
Hidden: subprocess handling, log sink writes, signal delivery details

Every managed action goes through this module so that its output and an
audit line land in the same log sink.
"""

from .command_executor import CommandExecutor

__all__ = ["CommandExecutor"]
