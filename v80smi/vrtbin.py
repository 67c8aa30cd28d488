"""Handling of .vrtbin design archives and the metadata they carry."""

from __future__ import annotations

import re
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

SEPARATOR = "--------------------------------------------------------------------"
DEFAULT_VERSION_PATH = "/tmp/version.json"

_UUID_KEY = '"logic_uuid":'
_FIELDS = ("name", "release", "logic_uuid", "application")
_FIELD_PATTERNS = {key: re.compile(rf'\s*"{key}":\s*"([^"]+)') for key in _FIELDS}


@dataclass(frozen=True)
class DesignInfo:
    """Design metadata read from a version.json file."""

    name: str = ""
    release: str = ""
    logic_uuid: str = ""
    application: str = ""


def extract(source, destination) -> str:
    """Unpack the archive ``source`` into ``destination`` with tar; return tar's output."""
    command = ["tar", "-xvf", str(source), "-C", str(destination)]
    try:
        completed = subprocess.run(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise RuntimeError("could not start tar") from exc
    return completed.stdout


def copy(source, destination) -> None:
    """Copy the file ``source`` to ``destination`` byte for byte."""
    try:
        src = open(source, "rb")
    except OSError as exc:
        raise RuntimeError(f"Error opening source file: {source}") from exc
    with src:
        try:
            dest = open(destination, "wb")
        except OSError as exc:
            raise RuntimeError(f"Error opening destination file: {destination}") from exc
        with dest:
            try:
                shutil.copyfileobj(src, dest)
            except OSError as exc:
                raise RuntimeError(f"Error copying {source} to {destination}") from exc


def _read_lines(path) -> list[str]:
    return Path(path).read_text(errors="replace").split("\n")


def extract_uuid(path=DEFAULT_VERSION_PATH) -> str:
    """Return the logic UUID named in a version file, or "" if there is none."""
    try:
        lines = _read_lines(path)
    except OSError:
        return ""
    for line in lines:
        pos = line.find(_UUID_KEY)
        if pos == -1:
            continue
        start = line.find('"', pos + len(_UUID_KEY)) + 1
        end = line.find('"', start)
        return line[start:] if end == -1 else line[start:end]
    return ""


def parse_design_info(path) -> DesignInfo:
    """Read the design fields from a version file; raises OSError if it cannot be read."""
    values = dict.fromkeys(_FIELDS, "")
    for line in _read_lines(path):
        for key in _FIELDS:
            if f'"{key}":' in line:
                match = _FIELD_PATTERNS[key].match(line)
                if match:
                    values[key] = match.group(1)
                break
    return DesignInfo(**values)


def format_design_info(info: DesignInfo) -> str:
    """Render design information as the block shown by the tool."""
    return (
        f"{SEPARATOR}\n"
        "Design Information\n"
        f"{SEPARATOR}\n"
        f"Design Name                 | {info.name}\n"
        f"Release                     | {info.release}\n"
        f"Logic UUID                  | {info.logic_uuid}\n"
        f"Application                 | {info.application}\n\n"
    )


def print_design_info(path) -> None:
    """Print the design information held in ``path``, or an error if it cannot be read."""
    try:
        info = parse_design_info(path)
    except OSError:
        print(f"Error: could not open file {path}", file=sys.stderr)
        return
    print(format_design_info(info), end="")


def progress_bar(
    cur,
    maximum,
    width=100,
    left="[",
    right="]",
    fill="#",
    empty=".",
    state="",
) -> tuple[str, str]:
    """Build one progress-bar line; return the text and the next spinner state."""
    if maximum == 0:
        maximum = 1
    progress = min((cur * width) // maximum, width)
    percent = (cur / maximum) * 100
    spinner = "-" if state == "-" else "|"
    new_state = "|" if state == "-" else "-"
    text = (
        "\r"
        + left
        + fill * progress
        + empty * (width - progress)
        + right
        + " %.0f%% " % percent
        + spinner
        + " "
    )
    return text, new_state