#!/usr/bin/env python3
"""
icons.py - Centralized icon definitions and console logging for Marvin

Usage:
    from marvin.icons import SUCCESS, WARNING, ERROR
    print(f"{SUCCESS} Done!")

    from marvin.icons import setup_logging
    setup_logging(verbosity=1)

All unicode characters are defined here once. Never edit unicode
characters in other files - import from this module instead.
"""

import logging
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Icons:
    """
    Centralized icon definitions.

    Categories:
    - Status: SUCCESS, ERROR, WARNING, INFO, SKIP
    - Actions: CREATE, EDIT, DELETE, RESTORE
    - Content: ACCOUNT, QUIZ, MEDIA, DATA
    """

    # =========================================================================
    # Status Icons
    # =========================================================================
    SUCCESS: str = "✅"
    ERROR: str = "❌"
    WARNING: str = "⚠️"
    INFO: str = "ℹ️"
    SKIP: str = "⏭️"
    DEBUG: str = "🔍"
    CRITICAL: str = "💥"

    # =========================================================================
    # Action Icons
    # =========================================================================
    CREATE: str = "➕"
    EDIT: str = "✏️"
    DELETE: str = "🗑️"
    RESTORE: str = "↩️"

    # =========================================================================
    # Content Type Icons
    # =========================================================================
    ACCOUNT: str = "🏛️"
    QUIZ: str = "❓"
    MEDIA: str = "🎬"
    DATA: str = "🗄️"
    LIST: str = "📋"


class AsciiIcons:
    """ASCII-only fallback icons for limited terminals."""

    SUCCESS = "[OK]"
    ERROR = "[X]"
    WARNING = "[!]"
    INFO = "[i]"
    SKIP = "[ ]"
    DEBUG = "[?]"
    CRITICAL = "[!!]"
    CREATE = "[+]"
    EDIT = "[*]"
    DELETE = "[-]"
    RESTORE = "[<]"
    ACCOUNT = "[A]"
    QUIZ = "[Q]"
    MEDIA = "[M]"
    DATA = "[D]"
    LIST = "[=]"


# Global singleton instance
icons = Icons()

SUCCESS = icons.SUCCESS
ERROR = icons.ERROR
WARNING = icons.WARNING
INFO = icons.INFO
SKIP = icons.SKIP
CREATE = icons.CREATE
EDIT = icons.EDIT
DELETE = icons.DELETE
RESTORE = icons.RESTORE
ACCOUNT = icons.ACCOUNT
QUIZ = icons.QUIZ
MEDIA = icons.MEDIA
DATA = icons.DATA
LIST = icons.LIST


def use_ascii_icons():
    """
    Switch to ASCII-only icons globally.

    Modules that did `from marvin.icons import SUCCESS` keep the value they
    imported; read `icons.SUCCESS` for output that must follow the switch.
    """
    global icons, SUCCESS, ERROR, WARNING, INFO, SKIP
    global CREATE, EDIT, DELETE, RESTORE, ACCOUNT, QUIZ, MEDIA, DATA, LIST

    icons = AsciiIcons()
    SUCCESS = icons.SUCCESS
    ERROR = icons.ERROR
    WARNING = icons.WARNING
    INFO = icons.INFO
    SKIP = icons.SKIP
    CREATE = icons.CREATE
    EDIT = icons.EDIT
    DELETE = icons.DELETE
    RESTORE = icons.RESTORE
    ACCOUNT = icons.ACCOUNT
    QUIZ = icons.QUIZ
    MEDIA = icons.MEDIA
    DATA = icons.DATA
    LIST = icons.LIST


def status_icon(success: bool) -> str:
    """Return SUCCESS or ERROR icon based on boolean."""
    return icons.SUCCESS if success else icons.ERROR


# =========================================================================
# Logging with icons
# =========================================================================

# Message-only; no per-line timestamps
LOG_FORMAT = "%(message)s"


class IconLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        level_icons = {
            logging.DEBUG: icons.DEBUG,
            logging.INFO: icons.SUCCESS,
            logging.WARNING: icons.WARNING,
            logging.ERROR: icons.ERROR,
            logging.CRITICAL: icons.CRITICAL,
        }
        icon = level_icons.get(record.levelno, icons.INFO)
        base = super().format(record)
        return f"{icon} {base}"


def setup_logging(verbosity: int = 1) -> None:
    """Route library log records to stderr with icon prefixes."""
    level = logging.INFO
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity <= 0:
        level = logging.WARNING

    handler = logging.StreamHandler()
    handler.setFormatter(IconLogFormatter(LOG_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(handler)


DOT_LINE = "." * 80


def fence(label: str) -> str:
    """
    Build a visual fence with a timestamped label, used to bracket the
    output of one command phase.
    """
    ts = datetime.now().strftime("%H:%M:%S")
    return f"{DOT_LINE}\n[{ts}] {label}\n"
