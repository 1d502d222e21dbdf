"""
Input Validation Layer for RhymeRumble

Purpose
-------
Single source of low-level input rules for service entry points: type
conversion, bounds, string lengths, choices and user ids. Every failure
raises `ValidationError` with a message fit to show the caller.

Non-Responsibilities
--------------------
- Business rules such as "only the recipient may respond" (domain models)
- Existence checks against the database (services)

Observability
-------------
Each failure is logged at debug level with field_name, raw_value (repr) and
reason.
"""

from __future__ import annotations

import re
import uuid
from typing import Any, NoReturn, Optional, Sequence

from src.core.logging.logger import get_logger
from src.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)

USER_ID_MAX_LENGTH = 36


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Stateless validators. Each returns the normalized value or raises
    `ValidationError`.
    """

    # =========================================================================
    # INTEGER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
        allow_zero: bool = True,
    ) -> int:
        """
        Convert ``value`` to int and check bounds (inclusive).

        Booleans are rejected even though ``int(True)`` succeeds.
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if isinstance(value, bool):
            _raise_validation_error(field_name, value, "Must be a whole number")

        try:
            int_value = int(value)
        except (ValueError, TypeError):
            _raise_validation_error(
                field_name, value, f"Must be a whole number, got '{value}'"
            )

        if not allow_zero and int_value == 0:
            _raise_validation_error(field_name, int_value, "Cannot be zero")

        if min_value is not None and int_value < min_value:
            _raise_validation_error(
                field_name, int_value, f"Must be at least {min_value}, got {int_value}"
            )

        if max_value is not None and int_value > max_value:
            _raise_validation_error(
                field_name, int_value, f"Cannot exceed {max_value}, got {int_value}"
            )

        return int_value

    @staticmethod
    def validate_positive_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
    ) -> int:
        return InputValidator.validate_integer(
            value, field_name, min_value=1, max_value=max_value, allow_zero=False
        )

    @staticmethod
    def validate_non_negative_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
    ) -> int:
        return InputValidator.validate_integer(
            value, field_name, min_value=0, max_value=max_value
        )

    # =========================================================================
    # STRING VALIDATION
    # =========================================================================

    @staticmethod
    def validate_string(
        value: Any,
        field_name: str,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        allowed_chars: Optional[str] = None,
    ) -> str:
        """
        Strip and length-check a string.

        Args:
            value: Any object; converted with ``str()``
            field_name: Name of field for error messages
            min_length: Minimum length after stripping
            max_length: Maximum length after stripping
            allowed_chars: Regex character class, e.g. ``'a-zA-Z0-9_'``

        Raises:
            ValidationError: If validation fails
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        str_value = str(value).strip()

        if min_length is not None and len(str_value) < min_length:
            _raise_validation_error(
                field_name, str_value, f"Must be at least {min_length} characters"
            )

        if max_length is not None and len(str_value) > max_length:
            _raise_validation_error(
                field_name, str_value, f"Cannot exceed {max_length} characters"
            )

        if allowed_chars is not None and not re.fullmatch(f"[{allowed_chars}]+", str_value):
            _raise_validation_error(field_name, str_value, "Contains invalid characters")

        return str_value

    @staticmethod
    def validate_optional_string(
        value: Any,
        field_name: str,
        max_length: Optional[int] = None,
    ) -> Optional[str]:
        """Like `validate_string` but ``None`` and blank input become ``None``."""
        if value is None or not str(value).strip():
            return None
        return InputValidator.validate_string(value, field_name, max_length=max_length)

    # =========================================================================
    # CHOICE VALIDATION
    # =========================================================================

    @staticmethod
    def validate_choice(
        value: Any,
        field_name: str,
        valid_choices: Sequence[str],
    ) -> str:
        """Case-insensitive membership check; returns the lowercased value."""
        str_value = str(value).lower().strip()
        normalized_choices = {choice.lower() for choice in valid_choices}

        if str_value not in normalized_choices:
            choices_str = ", ".join(sorted(valid_choices))
            _raise_validation_error(
                field_name,
                value,
                f"Invalid choice '{value}'. Must be one of: {choices_str}",
            )

        return str_value

    # =========================================================================
    # ID VALIDATION
    # =========================================================================

    @staticmethod
    def validate_user_id(value: Any, field_name: str = "user_id") -> str:
        """
        Validate a profile id.

        Ids are UUID strings (the auth provider's user id). Well-formed UUIDs
        are normalized to lowercase canonical form; other non-empty strings
        up to 36 characters are accepted unchanged so fixtures and seed data
        can use readable ids.
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if isinstance(value, uuid.UUID):
            return str(value)

        if not isinstance(value, str):
            _raise_validation_error(field_name, value, "Must be a string id")

        str_value = value.strip()
        if not str_value:
            _raise_validation_error(field_name, value, "Cannot be empty")

        if len(str_value) > USER_ID_MAX_LENGTH:
            _raise_validation_error(
                field_name, value, f"Cannot exceed {USER_ID_MAX_LENGTH} characters"
            )

        try:
            return str(uuid.UUID(str_value))
        except ValueError:
            return str_value

    @staticmethod
    def validate_distinct_ids(
        first: str, second: str, field_name: str = "other_id"
    ) -> None:
        if first == second:
            _raise_validation_error(field_name, second, "Must differ from your own id")
