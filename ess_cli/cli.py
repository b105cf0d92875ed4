"""
ESS Control Client - Main entry point.

Interactive client for the ESS manager, which:
- Connects to the MQTT bus
- Mirrors the latest EssAppStatus report in the background
- Reads operator commands from the console and sends them to the ESS manager

Usage:
    ess-cli --config config/ess_client.yaml
    ess-cli --broker 10.0.0.5 --region <region-id> --mrid <resource-id>

Lifecycle:
    1. Load configuration (YAML + command-line overrides)
    2. Setup logging (console + file)
    3. Connect bus client
    4. Start status listener (background thread)
    5. Run command dispatcher (blocks until `exit`)
    6. Disconnect
"""

import argparse
import logging
import signal
import sys
import uuid
from pathlib import Path
from typing import List, Optional

from ess_control import CommandDispatcher, StatusListener, StatusMirror
from ess_mqtt import MQTTBusClient, create_logger

from .config import ClientConfig


# ─────────────────────────────────────────────────────────────────────────────
# Logging Setup
# ─────────────────────────────────────────────────────────────────────────────

def setup_logging(log_file: Optional[Path] = None, debug: bool = False) -> logging.Logger:
    """
    Setup logging for the control client.

    The console is shared with the interactive prompt, so only errors (or
    everything with --debug) are echoed there; the log file gets INFO.

    Args:
        log_file: Optional path to log file
        debug: Echo DEBUG and above on the console

    Returns:
        Logger instance for the client
    """
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if debug else logging.ERROR)
    handlers = [console]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if debug else logging.INFO)
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )

    return logging.getLogger("ess_cli")


# ─────────────────────────────────────────────────────────────────────────────
# Main Application
# ─────────────────────────────────────────────────────────────────────────────

class ClientApp:
    """
    Main application wrapper for the interactive control client.

    Handles:
    - Component initialization (bus, mirror, listener, dispatcher)
    - Signal handling (SIGTERM)
    - Shutdown
    """

    def __init__(
        self,
        config: ClientConfig,
        log_file: Optional[Path] = None,
        debug: bool = False
    ):
        self.config = config
        self.log_file = log_file
        self.debug = debug
        self.logger = setup_logging(log_file, debug)

        # Session log handler installed on the root logger, shared with the
        # structured loggers so the file is opened once
        self.file_handler: Optional[logging.FileHandler] = next(
            (h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)),
            None
        )

        # Components (initialized in setup())
        self.bus: Optional[MQTTBusClient] = None
        self.mirror: Optional[StatusMirror] = None
        self.listener: Optional[StatusListener] = None
        self.dispatcher: Optional[CommandDispatcher] = None

        self._shutdown_requested = False

    def _structured_handlers(self) -> List[logging.Handler]:
        # Errors (listener stopped, malformed payloads) always reach the console
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(logging.DEBUG if self.debug else logging.ERROR)
        handlers: List[logging.Handler] = [console]
        if self.file_handler is not None:
            handlers.append(self.file_handler)
        return handlers

    def setup(self) -> None:
        """
        Setup all components.

        Steps:
        1. Create and connect bus client
        2. Create status mirror and start the listener
        3. Create command dispatcher

        Raises:
            ConnectionError: If the broker cannot be reached
        """
        mqtt_config = self.config.mqtt_config
        level = logging.DEBUG if self.debug else logging.INFO
        handlers = self._structured_handlers()

        self.logger.info(f"🚀 ESS control client starting (region={self.config.region})")

        # 1. Bus client (client_id must be unique on the broker)
        client_id = f"{mqtt_config.client_id}-{uuid.uuid4().hex[:8]}"
        self.bus = MQTTBusClient(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            client_id=client_id,
            logger=create_logger("bus", level=level, handlers=handlers),
            username=mqtt_config.username,
            password=mqtt_config.password,
            qos=mqtt_config.qos,
            request_timeout=mqtt_config.request_timeout,
        )
        if not self.bus.connect(timeout=mqtt_config.connect_timeout):
            raise ConnectionError(
                f"Unable to connect to MQTT broker at {mqtt_config.broker}:{mqtt_config.port}"
            )
        self.logger.info(f"✅ Connected to {mqtt_config.broker}:{mqtt_config.port}")

        # 2. Status mirror + listener
        self.mirror = StatusMirror()
        self.listener = StatusListener(
            bus=self.bus,
            subject=self.config.status_subject,
            mirror=self.mirror,
            logger=create_logger("listener", level=level, handlers=handlers),
            fatal_decode_errors=self.config.fatal_decode_errors,
        )
        self.listener.start()
        self.logger.info(f"📥 Listening for status on {self.config.status_subject}")

        # 3. Dispatcher
        self.dispatcher = CommandDispatcher(
            bus=self.bus,
            mirror=self.mirror,
            region=self.config.region,
            mrid=self.config.mrid,
            service=self.config.service,
            listener=self.listener,
            config_subject=self.config.config_subject,
            control_subject=self.config.control_subject,
        )

    def run(self) -> None:
        """
        Run the interactive loop.

        Blocks until `exit`, end of input or Ctrl+C.
        """
        if not self.dispatcher:
            raise RuntimeError("Client not initialized. Call setup() first.")

        signal.signal(signal.SIGTERM, self._signal_handler)

        try:
            self.dispatcher.run()
        except KeyboardInterrupt:
            print("\nQuitting...")
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """
        Disconnect the bus.

        The listener thread is a daemon: disconnecting ends its subscription
        and it stops on its own.
        """
        if self._shutdown_requested:
            return
        self._shutdown_requested = True

        if self.bus:
            self.bus.disconnect()
        if self.dispatcher:
            self.logger.info(f"📊 Session stats: {self.dispatcher.get_stats()}")
        self.logger.info("✅ Shutdown complete")

    def _signal_handler(self, signum, frame):
        """Handle SIGTERM."""
        signal_name = signal.Signals(signum).name
        self.logger.info(f"⚠️  Received signal {signal_name} ({signum})")
        self.shutdown()
        sys.exit(0)


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def parse_args(argv=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="ESS Control Client - interactive control of the ESS manager over MQTT",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Interactive commands:
  p                  Print the status
  soc_max            Set SOC Max
  soc_min            Set SOC Min
  get <key>          Request config
  set <key> <value>  Set config
  exit               Quit

Examples:
  # Start with a config file
  ess-cli --config config/ess_client.yaml

  # Override the broker
  ess-cli --config config/ess_client.yaml --broker 10.0.0.5 --port 1884
"""
    )

    parser.add_argument(
        '--config',
        type=Path,
        default=None,
        help='Path to client configuration YAML (default: built-in defaults)'
    )
    parser.add_argument('--broker', default=None, help='MQTT broker host')
    parser.add_argument('--port', type=int, default=None, help='MQTT broker port')
    parser.add_argument('--region', default=None, help='Region identifier')
    parser.add_argument('--mrid', default=None, help='Managed resource identifier')
    parser.add_argument('--service', default=None, help='Target service name')
    parser.add_argument(
        '--request-timeout',
        type=float,
        default=None,
        help='Config request timeout in seconds'
    )
    parser.add_argument(
        '--log-file',
        type=Path,
        default=Path('logs/ess_client.log'),
        help='Path to log file (default: logs/ess_client.log)'
    )
    parser.add_argument(
        '--no-log-file',
        action='store_true',
        help='Disable file logging (errors on console only)'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Echo debug logs on the console'
    )

    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> ClientConfig:
    """Load the YAML config (if any) and apply command-line overrides."""
    if args.config is not None:
        if not args.config.exists():
            raise FileNotFoundError(f"Configuration file not found: {args.config}")
        config = ClientConfig.from_yaml(args.config)
    else:
        config = ClientConfig()

    return config.with_overrides(
        broker=args.broker,
        port=args.port,
        region=args.region,
        mrid=args.mrid,
        service=args.service,
        request_timeout=args.request_timeout,
    )


def main(argv=None):
    """
    Main entry point.

    Workflow:
    1. Parse CLI arguments and load configuration
    2. Create ClientApp
    3. Setup components
    4. Run interactive loop (blocks until exit)
    """
    args = parse_args(argv)

    try:
        config = load_config(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)

    log_file = None if args.no_log_file else args.log_file
    app = ClientApp(config=config, log_file=log_file, debug=args.debug)

    try:
        app.setup()
    except Exception as e:
        print(f"❌ Fatal error: {e}", file=sys.stderr)
        app.shutdown()
        sys.exit(1)

    app.run()


if __name__ == '__main__':
    main()
