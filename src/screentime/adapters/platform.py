"""Operating-system primitives used by the enforcement agent."""

import ctypes
import logging
import subprocess
import sys
from dataclasses import dataclass
from typing import Protocol

_logger = logging.getLogger(__name__)

_CGSESSION = (
    "/System/Library/CoreServices/Menu Extras/User.menu/Contents/Resources/CGSession"
)
_MAC_LOCK_SCRIPT = (
    'tell application "System Events" to key code 12 using {control down, command down}'
)


class PlatformError(Exception):
    """A platform primitive failed."""


class Platform(Protocol):
    """Local lock and notification primitives."""

    def lock(self) -> None:
        """Lock the workstation; raise PlatformError on failure."""

    def show_warning(self, title: str, message: str) -> None:
        """Show a notification to the current user (best effort)."""


@dataclass
class LoggingPlatform(Platform):
    """Records intents in the log without touching the workstation."""

    def lock(self) -> None:
        _logger.warning("LOCK_WORKSTATION (no-op platform)")

    def show_warning(self, title: str, message: str) -> None:
        _logger.warning("WARNING_NOTIFICATION title=%s message=%s", title, message)


@dataclass
class WindowsPlatform(Platform):
    """Locks through user32.LockWorkStation."""

    def lock(self) -> None:
        user32 = ctypes.WinDLL("user32")  # type: ignore[attr-defined]
        if user32.LockWorkStation() == 0:
            raise PlatformError("LockWorkStation failed")
        _logger.info("Workstation locked")

    def show_warning(self, title: str, message: str) -> None:
        _logger.warning("Screen time warning: title=%s message=%s", title, message)
        user32 = ctypes.WinDLL("user32")  # type: ignore[attr-defined]
        user32.MessageBeep(0xFFFFFFFF)


@dataclass
class MacPlatform(Platform):
    """Locks via an osascript keystroke, falling back to CGSession."""

    def lock(self) -> None:
        try:
            _run(["/usr/bin/osascript", "-e", _MAC_LOCK_SCRIPT])
            return
        except (OSError, subprocess.SubprocessError) as exc:
            _logger.warning("osascript lock failed (%s); trying CGSession", exc)
        try:
            _run([_CGSESSION, "-suspend"])
        except (OSError, subprocess.SubprocessError) as exc:
            raise PlatformError(f"failed to lock screen: {exc}") from exc

    def show_warning(self, title: str, message: str) -> None:
        script = f'display notification "{message}" with title "{title}"'
        try:
            _run(["/usr/bin/osascript", "-e", script])
        except (OSError, subprocess.SubprocessError) as exc:
            raise PlatformError(f"failed to show notification: {exc}") from exc


def select_platform() -> Platform:
    """Return the platform implementation for the running OS."""
    if sys.platform == "win32":
        return WindowsPlatform()
    if sys.platform == "darwin":
        return MacPlatform()
    _logger.warning("No lock primitive for %s; using logging platform", sys.platform)
    return LoggingPlatform()


def _run(command: list[str]) -> None:
    subprocess.run(
        command,
        check=True,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        timeout=10,
    )
