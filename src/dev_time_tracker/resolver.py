"""Identify the foreground application and the language being edited in it."""

from __future__ import annotations

import ctypes
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence

import psutil

from .errors import ResolverError
from .models import WindowIdentity
from .normalization import extract_extension, normalize_window_title

logger = logging.getLogger(__name__)

KNOWN_EDITORS_PATH = Path(__file__).parent / "assets" / "known_editors.json"

_EXTENSION_LANGUAGES: dict[str, str] = {
    ".py": "Python",
    ".pyi": "Python",
    ".ipynb": "Jupyter Notebook",
    ".js": "JavaScript",
    ".mjs": "JavaScript",
    ".cjs": "JavaScript",
    ".jsx": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TSX",
    ".go": "Go",
    ".rs": "Rust",
    ".java": "Java",
    ".kt": "Kotlin",
    ".kts": "Kotlin",
    ".scala": "Scala",
    ".c": "C",
    ".h": "C",
    ".cpp": "C++",
    ".cc": "C++",
    ".hpp": "C++",
    ".cs": "C#",
    ".fs": "F#",
    ".rb": "Ruby",
    ".php": "PHP",
    ".swift": "Swift",
    ".m": "Objective-C",
    ".dart": "Dart",
    ".lua": "Lua",
    ".r": "R",
    ".jl": "Julia",
    ".ex": "Elixir",
    ".exs": "Elixir",
    ".erl": "Erlang",
    ".hs": "Haskell",
    ".clj": "Clojure",
    ".sh": "Shell",
    ".bash": "Shell",
    ".ps1": "PowerShell",
    ".sql": "SQL",
    ".html": "HTML",
    ".htm": "HTML",
    ".css": "CSS",
    ".scss": "SCSS",
    ".vue": "Vue",
    ".svelte": "Svelte",
    ".json": "JSON",
    ".yaml": "YAML",
    ".yml": "YAML",
    ".toml": "TOML",
    ".xml": "XML",
    ".md": "Markdown",
    ".txt": "Text",
}


class WindowProbe(Protocol):
    def get_active_window(self) -> Optional[WindowIdentity]: ...


class WindowsActiveWindowProbe:
    """Retrieves the foreground window title and process name."""

    def __init__(self) -> None:
        from ctypes import wintypes

        self._wintypes = wintypes
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]

    def get_active_window(self) -> Optional[WindowIdentity]:
        hwnd = self._user32.GetForegroundWindow()
        if not hwnd:
            return None

        length = self._user32.GetWindowTextLengthW(hwnd)
        buffer = ctypes.create_unicode_buffer(length + 1)
        self._user32.GetWindowTextW(hwnd, buffer, length + 1)
        window_title = buffer.value.strip()

        pid = self._wintypes.DWORD()
        self._user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
        if not pid.value:
            return None
        try:
            exec_name = psutil.Process(pid.value).name()
        except (psutil.Error, ProcessLookupError) as exc:
            raise ResolverError(f"Could not inspect process {pid.value}") from exc

        return WindowIdentity(exec_name=exec_name, title=window_title)


@dataclass(slots=True, frozen=True)
class KnownApplication:
    name: str
    exec_names: tuple[str, ...]

    def matches(self, exec_name: str) -> bool:
        lowered = exec_name.lower()
        return any(name in lowered for name in self.exec_names)


class ApplicationRegistry:
    """The applications whose windows count as tracked work."""

    def __init__(self, applications: Sequence[KnownApplication]) -> None:
        self._applications = tuple(applications)

    @classmethod
    def load(cls, path: Path = KNOWN_EDITORS_PATH) -> "ApplicationRegistry":
        try:
            with Path(path).open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, ValueError):
            logger.exception("Failed to load known applications from %s", path)
            return cls([])
        return cls(
            [
                KnownApplication(
                    name=entry["name"],
                    exec_names=tuple(name.lower() for name in entry.get("execNames", [])),
                )
                for entry in raw
                if entry.get("name")
            ]
        )

    def match(self, exec_name: Optional[str]) -> Optional[KnownApplication]:
        if not exec_name:
            return None
        for application in self._applications:
            if application.matches(exec_name):
                return application
        return None

    def __len__(self) -> int:
        return len(self._applications)


def language_for_extension(
    extension: Optional[str], overrides: Optional[Mapping[str, str]] = None
) -> Optional[str]:
    if not extension:
        return None
    extension = extension.lower()
    if overrides and extension in overrides:
        return overrides[extension]
    return _EXTENSION_LANGUAGES.get(extension)


@dataclass(slots=True, frozen=True)
class ResolvedWindow:
    app: str
    title: str
    language: Optional[str]
    extension: Optional[str]
    icon: Optional[bytes]


class WindowIdentityResolver:
    """Combine a platform probe with the registry and language table."""

    def __init__(
        self,
        probe: WindowProbe,
        registry: Optional[ApplicationRegistry] = None,
        language_overrides: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._probe = probe
        self._registry = registry if registry is not None else ApplicationRegistry.load()
        self._overrides = dict(language_overrides or {})

    def resolve(self) -> Optional[ResolvedWindow]:
        """Return the foreground window if it belongs to a known application."""
        try:
            identity = self._probe.get_active_window()
        except ResolverError:
            raise
        except Exception as exc:
            raise ResolverError(f"Window probe failed: {exc}") from exc
        if identity is None:
            return None

        application = self._registry.match(identity.exec_name)
        if application is None:
            return None

        title = normalize_window_title(identity.exec_name, identity.title) or identity.title
        extension = extract_extension(title)
        return ResolvedWindow(
            app=application.name,
            title=title,
            language=language_for_extension(extension, self._overrides),
            extension=extension,
            icon=identity.icon,
        )
