"""Command-line parsing for the device management tool."""

from __future__ import annotations

import os
import re
import sys
from dataclasses import dataclass

COMMANDS = (
    "query",
    "validate",
    "report_utilization",
    "list",
    "program",
    "partial_program",
    "inspect",
    "reload",
    "reset",
)

_LONG_OPTIONS = {"device": "d", "image": "i", "partition": "p", "help": "h"}
_WITH_ARGUMENT = frozenset("dip")
_BDF_PREFIX = re.compile(r"0000:(.*)")
_INTEGER = re.compile(r"\s*([+-]?\d+)")


class UsageError(Exception):
    """Raised when parsing stops: on bad usage, or with status 0 when help was asked for."""

    def __init__(self, message: str, *, show_help: bool = True, status: int = 1) -> None:
        super().__init__(message)
        self.message = message
        self.show_help = show_help
        self.status = status


@dataclass
class ParsedArgs:
    """The command and options given on the command line."""

    command: str
    device: str = ""
    image: str = ""
    partition: int = -1

    def is_command(self, command: str) -> bool:
        return self.command == command


def convert_bdf(bdf: str) -> str:
    """Drop a leading "0000:" domain, or else keep only the text before the first colon."""
    match = _BDF_PREFIX.fullmatch(bdf)
    if match:
        return match.group(1)
    return bdf.split(":", 1)[0]


def help_text() -> str:
    """Return the usage message."""
    return (
        "Usage: v80-smi <command> [options]\n"
        "Commands:\n"
        "  query                Query the device\n"
        "  validate             Validate the device\n"
        "  report_utilization   Report device utilization for the current programmed shell\n"
        "  list                 List V80s installed\n"
        "  program              Program the device's flash memory\n"
        "  partial_program      Program the device with a segmented PDI image\n"
        "  inspect              Inspect a vrtbin before programming\n"
        "  reload               Reloads the PCIe handler for device\n"
        "  reset                Resets the device to a clean state\n"
        "Options:\n"
        "  -d, --device <device>  Specify the device (e.g., 21:00.0)\n"
        "  -i, --image <image>    Specify the image file to program. Only relevant for "
        "program/partial_program commands\n"
        "  -p, --partition <num>  Specify the partition to program. Only relevant for program "
        "command\n"
        "  -h, --help             Show this help message\n"
    )


def _match_long(name: str) -> str:
    if name in _LONG_OPTIONS:
        return _LONG_OPTIONS[name]
    candidates = [option for option in _LONG_OPTIONS if option.startswith(name)]
    if not candidates:
        raise UsageError(f"unrecognized option '--{name}'")
    if len(candidates) > 1:
        raise UsageError(f"option '--{name}' is ambiguous")
    return _LONG_OPTIONS[candidates[0]]


def _parse_partition(text: str) -> int:
    match = _INTEGER.match(text)
    if not match:
        raise UsageError(f"Invalid partition: {text}", show_help=False)
    return int(match.group(1))


def _apply(parsed: ParsedArgs, flag: str, value: str) -> None:
    if flag == "h":
        raise UsageError("", status=0)
    if flag == "d":
        parsed.device = convert_bdf(value)
    elif flag == "i":
        parsed.image = value
    elif flag == "p":
        parsed.partition = _parse_partition(value)


def _scan(argv: list[str], parsed: ParsedArgs) -> list[str]:
    operands: list[str] = []
    args = iter(argv)
    for token in args:
        if token == "--":
            operands.extend(args)
            break
        if token.startswith("--"):
            name, has_value, value = token[2:].partition("=")
            flag = _match_long(name)
            if flag in _WITH_ARGUMENT:
                if not has_value:
                    value = next(args, None)
                    if value is None:
                        raise UsageError(f"option '--{name}' requires an argument")
            elif has_value:
                raise UsageError(f"option '--{name}' doesn't allow an argument")
            _apply(parsed, flag, value)
        elif token.startswith("-") and token != "-":
            rest = token[1:]
            while rest:
                flag, rest = rest[0], rest[1:]
                if flag in _WITH_ARGUMENT:
                    value = rest or next(args, None)
                    if value is None:
                        raise UsageError(f"option requires an argument -- '{flag}'")
                    _apply(parsed, flag, value)
                    break
                if flag != "h":
                    raise UsageError(f"invalid option -- '{flag}'")
                _apply(parsed, flag, "")
        else:
            operands.append(token)
    return operands


def _check_image_exists(image: str) -> None:
    if not os.path.exists(image):
        raise UsageError("Image file does not exist", show_help=False)


def parse_args(argv=None) -> ParsedArgs:
    """Parse the arguments (without the program name); raise UsageError on bad usage."""
    argv = list(sys.argv[1:] if argv is None else argv)
    parsed = ParsedArgs(command="")
    operands = _scan(argv, parsed)

    if not operands:
        raise UsageError("Error: No command specified")
    command = operands[0]
    if command not in COMMANDS:
        raise UsageError(f"Error: Unknown command {command}")
    parsed.command = command

    if "program" in argv:
        if not parsed.device or not parsed.image or parsed.partition == -1:
            raise UsageError("Error: Missing required options for 'program' command.")
        if parsed.partition > 1:
            raise UsageError("Partition must be 0 or 1", show_help=False)
        if not parsed.image.endswith(".vrtbin"):
            raise UsageError("Image must be a .vrtbin file", show_help=False)
        _check_image_exists(parsed.image)

    if "partial_program" in argv:
        if not parsed.device or not parsed.image or parsed.partition == -1:
            raise UsageError("Error: Missing required options for 'partial_program' command.")
        if not parsed.image.endswith((".vrtbin", ".pdi")):
            raise UsageError("Image must be a .vrtbin or pdi file", show_help=False)
        _check_image_exists(parsed.image)

    if "inspect" in argv:
        if not parsed.image:
            raise UsageError("Error: Missing required options for 'inspect' command.")
        if not parsed.image.endswith(".vrtbin"):
            raise UsageError("Image must be a .vrtbin file", show_help=False)
        _check_image_exists(parsed.image)

    return parsed