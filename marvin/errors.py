# errors.py
"""
# Marvin
# Copyright (c) 2026 Dale Chapman
# Licensed under the MIT License. See LICENSE in the project root.

Custom exception classes with readable error messages for Marvin

All exceptions include:
- Clear error description
- Actionable suggestions
- Relevant context
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional


logger = logging.getLogger(__name__)


class MarvinError(Exception):
    """Base exception for all Marvin errors"""

    def __init__(
        self,
        message: str,
        suggestion: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.message = message
        self.suggestion = suggestion
        self.context = context or {}
        self.cause = cause
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error with all details"""
        lines = [
            "",
            "=" * 70,
            f"❌ {self.__class__.__name__}",
            "=" * 70,
            "",
            self.message,
        ]

        if self.context:
            lines.append("")
            lines.append("Context:")
            for key, value in self.context.items():
                lines.append(f"  {key}: {value}")

        if self.suggestion:
            lines.append("")
            lines.append("💡 Suggestion:")
            lines.append(f"  {self.suggestion}")

        if self.cause:
            lines.append("")
            lines.append(f"Caused by: {type(self.cause).__name__}: {self.cause}")

        lines.append("")
        lines.append("=" * 70)
        lines.append("")

        return "\n".join(lines)


class ConfigurationError(MarvinError):
    """Configuration is missing or invalid"""
    pass


class RecordNotFound(MarvinError):
    """A looked-up record does not exist"""
    pass


class SISImportError(MarvinError):
    """A single SIS import row could not be applied"""
    pass


class QTIParseError(MarvinError):
    """QTI document could not be parsed"""
    pass


class Unauthorized(MarvinError):
    """The current user may not perform the action"""
    pass


class SoapFault(MarvinError):
    """SOAP request could not be dispatched"""

    def __init__(self, message: str, fault_code: str = "soap:Client", **kwargs):
        self.fault_code = fault_code
        super().__init__(message, **kwargs)


class RecordInvalid(MarvinError):
    """
    A record failed validation.

    `errors` maps an attribute name to its messages. Messages on the
    special attribute "base" are shown as-is, all others are prefixed
    with the humanized attribute name ("poll_choice" -> "Poll choice").
    """

    def __init__(self, errors: Dict[str, List[str]], record: Any = None):
        self.errors = {k: list(v) for k, v in errors.items() if v}
        self.record = record
        super().__init__(
            message=f"Validation failed: {', '.join(self.full_messages)}",
            context={"record": type(record).__name__} if record is not None else None,
        )

    @property
    def full_messages(self) -> List[str]:
        messages = []
        for attribute, attr_messages in self.errors.items():
            for msg in attr_messages:
                if attribute == "base":
                    messages.append(msg)
                else:
                    messages.append(f"{humanize(attribute)} {msg}")
        return messages


def humanize(attribute: str) -> str:
    """Turn an attribute name into a label: 'poll_choice_id' -> 'Poll choice'"""
    name = attribute[:-3] if attribute.endswith("_id") else attribute
    name = name.replace("_", " ").strip()
    return name[:1].upper() + name[1:]


def capture_exception(category: str, exc: BaseException) -> str:
    """
    Log an exception that is handled locally and return an error report id.

    Callers keep going after capturing; the id lets a user-facing warning
    point back at the logged traceback.
    """
    report_id = uuid.uuid4().hex[:12]
    logger.error(
        "[%s] error report %s: %s", category, report_id, exc,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return report_id


# Specific error factory functions

def missing_record_error(record_type: str, identifier: Any) -> RecordNotFound:
    """Create error when a record lookup comes back empty"""
    return RecordNotFound(
        message=f"{record_type} not found",
        context={
            "record_type": record_type,
            "identifier": identifier,
        }
    )


def invalid_number_setting_error(key: str, value: Any, source: str) -> ConfigurationError:
    """Create error for a numeric setting that does not parse"""
    return ConfigurationError(
        message=f"Setting '{key}' must be a whole number, got {value!r}",
        suggestion=(
            f"Fix the value in {source}, for example:\n"
            f"  {key}: 500"
        ),
        context={
            "setting": key,
            "source": source,
        }
    )


def missing_columns_error(filename: str, missing: List[str]) -> SISImportError:
    """Create error for an SIS CSV file without its required headers"""
    return SISImportError(
        message=f"Missing required column(s): {', '.join(missing)}",
        suggestion=(
            "The first row of the file must name every required column:\n"
            "  account_id,parent_account_id,name,status"
        ),
        context={
            "file": filename,
            "missing_columns": missing,
        }
    )
