"""Utilities to normalize window titles and pull file extensions out of them."""

from __future__ import annotations

import re
from typing import Optional

_EDITOR_SUFFIXES: dict[str, tuple[str, ...]] = {
    "code.exe": (" - Visual Studio Code", " - Visual Studio Code - Insiders"),
    "code": (" - Visual Studio Code",),
    "cursor.exe": (" - Cursor",),
    "devenv.exe": (" - Microsoft Visual Studio",),
    "sublime_text.exe": (" - Sublime Text", " (UNREGISTERED)"),
    "notepad++.exe": (" - Notepad++",),
    "idea64.exe": (" - IntelliJ IDEA",),
    "pycharm64.exe": (" - PyCharm",),
}

_DIRTY_MARKERS = ("● ", "* ")

_EXTENSION_PATTERN = re.compile(r"\.([A-Za-z0-9+#]{1,10})$")


def normalize_window_title(exec_name: Optional[str], window_title: Optional[str]) -> Optional[str]:
    """Remove editor suffixes and unsaved-file markers to surface the file name."""
    if not window_title:
        return None
    normalized = window_title.strip()
    for marker in _DIRTY_MARKERS:
        if normalized.startswith(marker):
            normalized = normalized[len(marker):]
    if not exec_name:
        return normalized or None

    suffixes = _EDITOR_SUFFIXES.get(exec_name.lower())
    if suffixes:
        for suffix in suffixes:
            if normalized.endswith(suffix):
                normalized = normalized[: -len(suffix)].rstrip(" -")
                break

    normalized = re.sub(r"\s{2,}", " ", normalized).strip()
    return normalized or None


def extract_extension(title: Optional[str]) -> Optional[str]:
    """Return the first file extension found in the leading part of a title."""
    if not title:
        return None
    head = title.split(" - ", 1)[0]
    for token in head.split():
        token = token.strip("()[]{}\"',;:")
        if "." not in token.strip("."):
            continue
        match = _EXTENSION_PATTERN.search(token)
        if match:
            return "." + match.group(1).lower()
    return None
