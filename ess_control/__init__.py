"""
ess_control - Control-plane client runtime for the ESS manager

Bounded Context: Interactive command-and-control
Responsibilities:
  - Status observation (StatusListener → StatusMirror)
  - Operator command parsing (Intent, parse_command)
  - Command dispatch over the bus (CommandDispatcher, CommandRegistry)

Architecture:
  - StatusListener: daemon thread draining the status subscription
  - StatusMirror: lock-protected cell, the only state shared between threads
  - CommandDispatcher: synchronous line-driven loop on the main thread
  - CommandRegistry: explicit Intent → handler registration

Design Philosophy:
  - Closed set of intents (exhaustive dispatch table)
  - Fire-and-forget (publish) and request/reply (request) kept distinct
  - Fixed identifiers (region, mrid, service) injected, never hard-coded
"""

from .commands import Intent, ParsedCommand, parse_command
from .dispatcher import CommandDispatcher
from .listener import StatusListener
from .mirror import StatusMirror
from .registry import CommandNotAvailableError, CommandRegistry

__all__ = [
    "Intent",
    "ParsedCommand",
    "parse_command",
    "CommandDispatcher",
    "StatusListener",
    "StatusMirror",
    "CommandNotAvailableError",
    "CommandRegistry",
]
