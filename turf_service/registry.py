"""
CommandRegistry - explicit registration of control commands

Bounded Context: Which commands a tracking service accepts.
Responsibilities:
  - Register command name -> handler(payload) with a description
  - Reject unknown commands with the list of known ones
  - Introspection for the status / help output

Threading: registration under a lock; lookups read a dict that is only
ever replaced, never mutated in place.
"""

import threading
from typing import Any, Callable, Dict, Optional, Set

CommandHandler = Callable[[Dict[str, Any]], Any]


class CommandNotAvailableError(Exception):
    """Raised when a command has no registered handler."""


class CommandRegistry:
    """
    Registry of control commands.

    Example:
        registry = CommandRegistry()
        registry.register('pause', lambda payload: service.pause(), "Pause the session")
        registry.execute('pause', {'command': 'pause'})
    """

    def __init__(self):
        self._handlers: Dict[str, CommandHandler] = {}
        self._descriptions: Dict[str, str] = {}
        self._lock = threading.Lock()

    def register(self, command: str, handler: CommandHandler, description: str) -> None:
        """
        Register a handler.

        Raises:
            ValueError: If the command is already registered or the name is invalid
        """
        if not command or command != command.lower() or " " in command:
            raise ValueError(f"Invalid command name: {command!r}")

        with self._lock:
            if command in self._handlers:
                raise ValueError(f"Command '{command}' already registered")
            handlers = dict(self._handlers)
            handlers[command] = handler
            self._handlers = handlers
            self._descriptions[command] = description

    def execute(self, command: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        """
        Run the handler for command with the full payload.

        Returns:
            Whatever the handler returns

        Raises:
            CommandNotAvailableError: If command not registered
        """
        handler = self._handlers.get(command)
        if handler is None:
            raise CommandNotAvailableError(
                f"Command '{command}' not available. "
                f"Available commands: {', '.join(sorted(self.available_commands))}"
            )
        return handler(payload or {})

    def is_available(self, command: str) -> bool:
        return command in self._handlers

    @property
    def available_commands(self) -> Set[str]:
        return set(self._handlers)

    def get_help(self) -> Dict[str, str]:
        return dict(self._descriptions)
