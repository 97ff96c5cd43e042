""" Texture Assembler utilities: console logging, diagnostics, filename conventions and input path resolution. """

import glob
import os
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union
from functools import lru_cache
import importlib.util

from settings import SHOW_DETAILS

from backend.texture_classes import Diagnostic, Outcome, StatusCode


LOG_TYPES: list[str] = ["info", "warn", "error", "skip", "complete"]
# Defines log types; the backend handles printing for the CLI.

def log(message: str, message_kind: LOG_TYPES = "info") -> None:
# Maps different log types.

    if message == "":
        print("")
        return

    if message_kind not in LOG_TYPES:
        message_kind = "info"

    if message_kind == "info":
        print(f"   {message}")
    elif message_kind == "warn":
        print(f"⚠️ {message}")
    elif message_kind == "error":
        print(f"⛔ {message}")
    elif message_kind == "skip":
        print(f"❌ {message}")
    elif message_kind == "complete":
        print(f"✅ {message}")
    else:
        print(message)  # fallback

    # Print styles:
    # info: 3 whitespaces + message
    # warn: ⚠️ + message
    # error: ⛔ + message
    # skip: ❌ + message
    # complete: ✅ + message




#                                           === Details and diagnostics ===

_show_details: bool = SHOW_DETAILS


def set_show_details(enabled: bool) -> None:
# Switches verbose logging for the rest of the run, e.g. from the -v flag.
    global _show_details
    _show_details = bool(enabled)


def details_enabled() -> bool:
    return _show_details


def log_verbose(message: str) -> None:
# Info message printed only when details are enabled.
    if _show_details:
        log(message, "info")


def log_details(attributes: Optional[Dict[str, Any]]) -> None:
# Prints structured attributes as indented "Key: value" lines when details are enabled.

    if not _show_details or not attributes:
        return
    for key, value in attributes.items():
        log(f"    {key}: {value}", "info")


def report(outcome: Outcome, message: str, message_kind: str = "warn", status: StatusCode = StatusCode.WARNING,
           details: Optional[Dict[str, Any]] = None) -> None:
# Logs a diagnostic and records it on the run outcome, raising its status.

    log(message, message_kind)
    log_details(details)
    outcome.record(Diagnostic(message_kind, status, message, dict(details or {})))


def format_dim(dim: Sequence[int]) -> str:
    return "x".join(str(axis) for axis in dim)




#                                           === Filename conventions ===

AXIS_NAMES: tuple[str, ...] = ("layer", "face", "level")

_AXIS_PATTERNS: Dict[str, "re.Pattern[str]"] = {
    "layer": re.compile(r"-(?:l|layer)(\d+)", re.IGNORECASE),
    "face": re.compile(r"-(?:f|face)(\d+)", re.IGNORECASE),
    "level": re.compile(r"-(?:m|level)(\d+)", re.IGNORECASE),
}
_ALL_AXES_PATTERN = re.compile(r"-(?:[lfm]|layer|face|level)\d+", re.IGNORECASE)


def parse_filename_index(path: str, axis: str) -> Optional[int]:
# Reads an axis index from a filename, e.g. "sky-face3.png" -> 3 for "face". Returns None if absent.

    matched: Optional[re.Match[str]] = _AXIS_PATTERNS[axis].search(os.path.basename(path))
    if matched:
        return int(matched.group(1))
    return None


def strip_index_suffixes(path: str) -> str:
# Removes every "-l<N>", "-face<N>", ... fragment from the filename part of a path.

    directory, filename = os.path.split(path)
    return os.path.join(directory, _ALL_AXES_PATTERN.sub("", filename))


def inject_filename_suffix(path: str, suffix: str) -> str:
# Inserts a suffix right before the extension, e.g. ("sky.png", "-layer2") -> "sky-layer2.png".

    root, extension = os.path.splitext(path)
    return f"{root}{suffix}{extension}"




#                                           === Input paths ===

def split_search_paths(raw_paths: Union[str, Iterable[str], None]) -> List[str]:
# Accepts a list of folders or a single string separated by ';' or the platform path separator.

    if not raw_paths:
        return []
    if isinstance(raw_paths, str):
        raw_paths = [raw_paths]

    search_paths: List[str] = []
    for raw_path in raw_paths:
        for path in re.split(r"[;" + re.escape(os.pathsep) + r"]", str(raw_path)):
            path = path.strip()
            if path and path not in search_paths:
                search_paths.append(path)
    return search_paths


def resolve_input_paths(pattern: str, search_paths: Sequence[str]) -> List[str]:
# Expands a file pattern against every search path, in order. Returns absolute file paths, sorted per folder, without duplicates.
# Absolute patterns ignore the search paths.

    if os.path.isabs(pattern):
        candidates: List[str] = [pattern]
    else:
        candidates = [os.path.join(search_path, pattern) for search_path in (search_paths or ["."])]

    resolved_paths: List[str] = []
    for candidate in candidates:
        if glob.has_magic(candidate):
            matches = sorted(glob.glob(candidate))
        else:
            matches = [candidate]
        for match in matches:
            absolute_path = os.path.abspath(match)
            if os.path.isfile(absolute_path) and absolute_path not in resolved_paths:
                resolved_paths.append(absolute_path)
    return resolved_paths




#                                           === Optional libraries ===

@lru_cache(maxsize=1)
def check_exr_libraries() -> bool:
# Checks if OpenEXR and Imath are installed for processing the .exr files.

    try:
        has_openexr = (importlib.util.find_spec("OpenEXR") is not None)
        has_imath   = (importlib.util.find_spec("Imath") is not None)
        return bool(has_openexr and has_imath)
    except (ImportError, ValueError):
        return False
