"""
CommandDispatcher - Line-driven operator loop

Bounded Context: Interactive control of the ESS manager
Responsibilities:
  - Read one line at a time and parse it into an Intent
  - Execute the intent through the CommandRegistry
  - Build config/control messages and send them over the bus
  - Print a trace of every outgoing request and the result of config reads

Message Exchange:
  - soc_max / soc_min: ControlRequest, publish (fire-and-forget)
  - get <key>:         ConfigRequest(GET), request/reply, the only round trip
  - set <key> <value>: ConfigRequest(SET), publish (fire-and-forget)

Error Handling:
  Input, transport and decode errors are printed and the loop continues.
  Only `exit` (or end of input) ends the loop.

Threading:
  Runs on the caller's thread. Shares only the StatusMirror with the
  StatusListener thread.
"""

import json
import logging
import sys
from typing import Callable, Dict, Iterable, Optional, TextIO, Tuple

from ess_mqtt.codec import decode_config_response, encode
from ess_mqtt.exceptions import DecodeError, TransportError
from ess_mqtt.schemas import CommandType, ConfigRequest, ControlRequest
from ess_mqtt.subjects import DEFAULT_SERVICE, app_configs_subject, app_controls_subject

from .commands import Intent, ParsedCommand, parse_command, parse_soc_value
from .mirror import StatusMirror
from .registry import CommandNotAvailableError, CommandRegistry

logger = logging.getLogger(__name__)

PROMPT = "> "


class CommandDispatcher:
    """
    Synchronous dispatcher of operator commands.

    Example:
        dispatcher = CommandDispatcher(
            bus=bus,
            mirror=mirror,
            region="290347ae-a0a6-4036-8d0c-0b45bd052376",
            mrid="3bda2cb0-6e39-40ca-84de-d58b99e7e40e",
            listener=listener,
        )
        dispatcher.run()  # blocks until `exit`
    """

    def __init__(
        self,
        bus,  # MQTTBusClient or any object exposing publish() and request()
        mirror: StatusMirror,
        region: str,
        mrid: str,
        service: str = DEFAULT_SERVICE,
        listener=None,  # StatusListener, used to warn about stale status
        config_subject: Optional[str] = None,
        control_subject: Optional[str] = None,
        read_line: Callable[[str], str] = input,
        out: Optional[TextIO] = None,
    ):
        """
        Initialize dispatcher.

        Args:
            bus: Bus client used for publish/request
            mirror: Shared status mirror (read-only here)
            region: Region identifier scoping the subjects
            mrid: Identifier of the managed resource targeted by controls
            service: Target service name (config key namespace)
            listener: Optional StatusListener, checked when printing status
            config_subject: Override of the config subject
            control_subject: Override of the control subject
            read_line: Input function, called with a prompt (default: input)
            out: Output stream for operator messages (default: sys.stdout)
        """
        self.bus = bus
        self.mirror = mirror
        self.region = region
        self.mrid = mrid
        self.service = service
        self.listener = listener
        self.config_subject = config_subject or app_configs_subject(region, service)
        self.control_subject = control_subject or app_controls_subject(region, service)
        self._read_line = read_line
        self._out = out

        self._stats = {'publishes': 0, 'requests': 0, 'errors': 0}

        self.registry = CommandRegistry()
        self._register_commands()

    def _register_commands(self) -> None:
        register = self.registry.register
        register(Intent.PRINT_STATUS, self._print_status, "p", "Print the status")
        register(Intent.SET_MAX_SOC, self._set_max_soc, "soc_max", "Set SOC Max")
        register(Intent.SET_MIN_SOC, self._set_min_soc, "soc_min", "Set SOC Min")
        register(Intent.CONFIG_GET, self._config_get, "get <key>", "Request config")
        register(Intent.CONFIG_SET, self._config_set, "set <key> <value>", "Set config")
        register(Intent.QUIT, self._quit, "exit", "Quit")
        register(Intent.INVALID, self._invalid, "", "")
        register(Intent.UNKNOWN, self._unknown, "", "")

    # ===== Console helpers =====

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    def _print(self, *args) -> None:
        print(*args, file=self.out, flush=True)

    def print_usage(self) -> None:
        self._print("Enter:")
        for usage, description in self.registry.get_help():
            self._print(f"  {usage + ':':<20}{description}")

    # ===== Loop =====

    def run(self) -> None:
        """Read and dispatch lines until `exit` or end of input."""
        self.print_usage()
        while True:
            try:
                line = self._read_line(PROMPT)
            except EOFError:
                self._print("Quitting...")
                return

            if not self.handle_line(line):
                return

    def handle_line(self, line: str) -> bool:
        """
        Dispatch one line of input.

        Returns:
            False when the loop should end
        """
        command = parse_command(line)
        logger.debug(f"Dispatching intent {command.intent.value}: {command.raw!r}")
        try:
            return self.registry.execute(command)
        except CommandNotAvailableError as e:
            logger.warning(f"⚠️ {e}")
            return self._unknown(command)

    def get_stats(self) -> Dict[str, int]:
        return dict(self._stats)

    # ===== Intent handlers =====

    def _print_status(self, command: ParsedCommand) -> bool:
        status = self.mirror.snapshot()
        self._print(f"Status: {json.dumps(status.to_dict(), indent=2)}")
        if status.is_empty:
            self._print("(no status received yet)")

        if self.listener is not None and self.listener.failure:
            self._print(
                f"Warning: status listener stopped ({self.listener.failure}), "
                "status may be stale"
            )
        return True

    def _set_max_soc(self, command: ParsedCommand) -> bool:
        return self._prompt_soc(CommandType.SET_MAX_SOC, "Max")

    def _set_min_soc(self, command: ParsedCommand) -> bool:
        return self._prompt_soc(CommandType.SET_MIN_SOC, "Min")

    def _prompt_soc(self, command_type: CommandType, label: str) -> bool:
        self._print(f"Enter SOC {label} value:")
        try:
            text = self._read_line("")
        except EOFError:
            self._print("Quitting...")
            return False

        value = parse_soc_value(text)
        if value is None:
            self._print(f"Invalid value: {text.strip()}")
            return True

        self.publish_control([(command_type, value, self.mrid)])
        return True

    def _config_get(self, command: ParsedCommand) -> bool:
        self.request_config(command.key)
        return True

    def _config_set(self, command: ParsedCommand) -> bool:
        self.publish_config(command.key, command.value)
        return True

    def _quit(self, command: ParsedCommand) -> bool:
        self._print("Quitting...")
        return False

    def _invalid(self, command: ParsedCommand) -> bool:
        self._print(f"Error: {command.error}")
        self.print_usage()
        return True

    def _unknown(self, command: ParsedCommand) -> bool:
        self._print(f"Unknown command: {command.raw}")
        self.print_usage()
        return True

    # ===== Bus operations =====

    def publish_control(self, commands: Iterable[Tuple[CommandType, float, str]]) -> None:
        """Publish a ControlRequest to the control subject (no reply)."""
        request = ControlRequest.create(commands)
        self._print(f"Sending request: {request}")
        self._send(self.control_subject, encode(request))

    def publish_config(self, key: str, value: str) -> None:
        """Publish a config SET request (no reply)."""
        request = ConfigRequest.for_set(self.service, [(key, value)])
        self._print(f"Sending request: {request}")
        self._send(self.config_subject, encode(request))

    def request_config(self, key: str) -> None:
        """Send a config GET request and print the decoded reply."""
        request = ConfigRequest.for_get(self.service, [key])
        self._print(f"Sending request: {request}")

        self._stats['requests'] += 1
        try:
            reply = self.bus.request(self.config_subject, encode(request))
            response = decode_config_response(reply)
        except (TransportError, DecodeError) as e:
            self._stats['errors'] += 1
            logger.warning(f"⚠️ Config request for '{key}' failed: {e}")
            self._print(f"Error: {e}")
            return

        self._print(f"Response: {json.dumps(response.to_dict(), indent=2)}")
        if not response.ok:
            self._print(f"Remote error: {response.error}")

    def _send(self, subject: str, payload: bytes) -> None:
        try:
            self.bus.publish(subject, payload)
        except TransportError as e:
            self._stats['errors'] += 1
            logger.warning(f"⚠️ Publish on '{subject}' failed: {e}")
            self._print(f"Error: {e}")
            return

        self._stats['publishes'] += 1
