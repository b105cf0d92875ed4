"""
CommandRegistry - Explicit intent registration

Bounded Context: Dispatch table of the interactive client
Responsibilities:
  - Bind each operator Intent to exactly one handler
  - Reject execution of unbound intents
  - Provide usage text in registration order

Design Motivation:
  The set of intents is closed (see commands.Intent); binding them through
  explicit registration keeps the dispatch table exhaustive and testable
  without console I/O.

Threading: Thread-safe (uses lock for write operations)
"""

import threading
from typing import Callable, Dict, List, Set, Tuple

from .commands import Intent, ParsedCommand

# Handler returns False to end the dispatch loop
Handler = Callable[[ParsedCommand], bool]


class CommandNotAvailableError(Exception):
    """Raised when attempting to execute an unregistered intent"""
    pass


class CommandRegistry:
    """
    Registry of intent handlers with usage descriptions.

    Example:
        registry = CommandRegistry()
        registry.register(Intent.PRINT_STATUS, dispatcher.print_status, "p", "Print the status")

        keep_running = registry.execute(parse_command("p"))
    """

    def __init__(self):
        self._handlers: Dict[Intent, Handler] = {}
        self._usage: Dict[Intent, Tuple[str, str]] = {}
        self._lock = threading.Lock()

    def register(
        self,
        intent: Intent,
        handler: Handler,
        usage: str,
        description: str
    ) -> None:
        """
        Register a handler for an intent.

        Args:
            intent: Intent handled
            handler: Callable receiving the ParsedCommand
            usage: Input syntax shown in help (e.g. "get <key>")
            description: Human-readable description for help text

        Raises:
            ValueError: If intent already registered (double registration)
        """
        with self._lock:
            if intent in self._handlers:
                raise ValueError(f"Intent '{intent.value}' already registered")

            self._handlers[intent] = handler
            self._usage[intent] = (usage, description)

    def execute(self, command: ParsedCommand) -> bool:
        """
        Run the handler bound to the command's intent.

        Returns:
            Handler result (False ends the dispatch loop)

        Raises:
            CommandNotAvailableError: If intent not registered
        """
        handler = self._handlers.get(command.intent)
        if handler is None:
            raise CommandNotAvailableError(
                f"Intent '{command.intent.value}' not available. "
                f"Available: {', '.join(sorted(i.value for i in self.available_intents))}"
            )
        return handler(command)

    def is_available(self, intent: Intent) -> bool:
        return intent in self._handlers

    @property
    def available_intents(self) -> Set[Intent]:
        return set(self._handlers.keys())

    def get_help(self) -> List[Tuple[str, str]]:
        """(usage, description) pairs in registration order, hidden ones skipped."""
        return [entry for entry in self._usage.values() if entry[0]]

    def count(self) -> int:
        return len(self._handlers)
