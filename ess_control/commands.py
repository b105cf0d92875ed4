"""
Operator command parsing.

One line of input maps to exactly one Intent. Parsing is pure: no I/O, no
bus access, so the dispatch table can be tested in isolation.

    p                   → PRINT_STATUS
    soc_max             → SET_MAX_SOC
    soc_min             → SET_MIN_SOC
    get <key>           → CONFIG_GET
    set <key> <value>   → CONFIG_SET   (value = rest of the line)
    exit                → QUIT
    get / set malformed → INVALID      (usage error)
    anything else       → UNKNOWN
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Intent(str, Enum):
    """Closed set of operator intents."""
    PRINT_STATUS = "p"
    SET_MAX_SOC = "soc_max"
    SET_MIN_SOC = "soc_min"
    CONFIG_GET = "get"
    CONFIG_SET = "set"
    QUIT = "exit"
    INVALID = "invalid"
    UNKNOWN = "unknown"


# Intents that take no argument and match the whole (stripped) line
_BARE_INTENTS = {
    Intent.PRINT_STATUS.value: Intent.PRINT_STATUS,
    Intent.SET_MAX_SOC.value: Intent.SET_MAX_SOC,
    Intent.SET_MIN_SOC.value: Intent.SET_MIN_SOC,
    Intent.QUIT.value: Intent.QUIT,
}

GET_USAGE = "get <key>"
SET_USAGE = "set <key> <value>"


@dataclass(frozen=True)
class ParsedCommand:
    """
    Result of parsing one input line.

    Attributes:
        intent: What the operator asked for
        raw: The stripped input line
        key: Config key (CONFIG_GET / CONFIG_SET), not yet namespaced
        value: Config value (CONFIG_SET)
        error: Usage error message (INVALID)
    """
    intent: Intent
    raw: str = ""
    key: Optional[str] = None
    value: Optional[str] = None
    error: Optional[str] = None


def parse_command(line: str) -> ParsedCommand:
    """Parse one line of operator input into a ParsedCommand."""
    raw = line.strip()

    intent = _BARE_INTENTS.get(raw)
    if intent is not None:
        return ParsedCommand(intent=intent, raw=raw)

    parts = raw.split(maxsplit=2)
    if not parts:
        return ParsedCommand(intent=Intent.UNKNOWN, raw=raw)

    verb = parts[0]
    if verb == Intent.CONFIG_GET.value:
        if len(parts) != 2:
            return ParsedCommand(
                intent=Intent.INVALID,
                raw=raw,
                error=f"Usage: {GET_USAGE}"
            )
        return ParsedCommand(intent=Intent.CONFIG_GET, raw=raw, key=parts[1])

    if verb == Intent.CONFIG_SET.value:
        if len(parts) != 3:
            return ParsedCommand(
                intent=Intent.INVALID,
                raw=raw,
                error=f"Usage: {SET_USAGE}"
            )
        return ParsedCommand(
            intent=Intent.CONFIG_SET,
            raw=raw,
            key=parts[1],
            value=parts[2]
        )

    return ParsedCommand(intent=Intent.UNKNOWN, raw=raw)


def parse_soc_value(text: str) -> Optional[float]:
    """Parse a SOC value; None if not a finite float."""
    try:
        value = float(text.strip())
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value
