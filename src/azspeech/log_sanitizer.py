"""Log sanitization module for preventing secret leakage.

This module redacts sensitive data from logs, error messages and outcome
events. It covers:
- Speech resource keys (env assignments, key1/key2 fields, bare hex keys)
- Client secrets and passwords
- Access tokens, JWTs and Authorization headers

Design Philosophy:
- Security first: err on side of over-redaction
- Pattern-based: not brittle keyword matching
- Fail-safe: if in doubt, mask it
"""

import re
from re import Pattern
from typing import Any


class LogSanitizer:
    """Sanitize sensitive data from logs and error messages.

    All methods are class methods and can be called without instantiation.
    """

    REDACTED = "[REDACTED]"

    # Order matters: more specific patterns come first
    SECRET_PATTERNS: dict[str, Pattern] = {
        "resource_key_assignment": re.compile(
            r'((?:SPEECH_RESOURCE_KEY|SubscriptionKey|subscription[_-]?key|api[_-]?key|key[12])'
            r'["\']?\s*[:=]\s*["\']?)([^\s"\'&,\)]+)',
            re.IGNORECASE,
        ),
        "client_secret_assignment": re.compile(
            r'(client[_-]?secret["\']?\s*[:=]\s*["\']?)([^\s"\'&,\)]+)',
            re.IGNORECASE,
        ),
        "password": re.compile(r'(password["\']?\s*[:=]\s*["\']?)([^\s"\'&,\)]+)', re.IGNORECASE),
        "authorization_bearer": re.compile(r"(Bearer\s+)([^\s\"']+)", re.IGNORECASE),
        "access_token": re.compile(
            r'(access[_-]?token["\']?\s*[:=]\s*["\']?)([^\s"\'&,\)]+)',
            re.IGNORECASE,
        ),
        "token_assignment": re.compile(
            r'([^a-zA-Z]token["\']?\s*[:=]\s*["\']?)([^\s"\'&,\)]+)', re.IGNORECASE
        ),
    }

    # Values that are secrets on their own, wherever they appear
    BARE_SECRET_PATTERNS: dict[str, Pattern] = {
        "jwt": re.compile(r"\beyJ[\w-]+\.[\w-]+\.[\w-]+"),
        "hex_key": re.compile(r"\b[0-9a-fA-F]{32}\b"),
    }

    SENSITIVE_KEYS = (
        "key",
        "secret",
        "password",
        "token",
        "credential",
        "authorization",
    )

    @classmethod
    def sanitize(cls, message: Any) -> str:
        """Sanitize message by redacting sensitive patterns.

        Args:
            message: The message to sanitize (converted to str)

        Returns:
            Sanitized message with secrets replaced by [REDACTED]

        Examples:
            >>> LogSanitizer.sanitize("SPEECH_RESOURCE_KEY=abc123")
            'SPEECH_RESOURCE_KEY=[REDACTED]'
            >>> LogSanitizer.sanitize("Authorization: Bearer abc.def")
            'Authorization: Bearer [REDACTED]'
        """
        result = message if isinstance(message, str) else str(message)

        for pattern in cls.SECRET_PATTERNS.values():
            result = pattern.sub(r"\1" + cls.REDACTED, result)

        for pattern in cls.BARE_SECRET_PATTERNS.values():
            result = pattern.sub(cls.REDACTED, result)

        return result

    @classmethod
    def sanitize_exception(cls, exc: BaseException) -> str:
        """Sanitize exception message.

        Examples:
            >>> LogSanitizer.sanitize_exception(ValueError("client_secret=abc123"))
            'client_secret=[REDACTED]'
        """
        return cls.sanitize(str(exc))

    @classmethod
    def create_safe_error_message(cls, error: BaseException, context: str = "") -> str:
        """Create error message with secrets sanitized.

        Args:
            error: The exception to sanitize
            context: Optional context string to prepend

        Examples:
            >>> err = ValueError("listKeys returned key1=abc123")
            >>> LogSanitizer.create_safe_error_message(err, "Fetching keys")
            'Fetching keys: listKeys returned key1=[REDACTED]'
        """
        sanitized_msg = cls.sanitize_exception(error)
        if context:
            return f"{context}: {sanitized_msg}"
        return sanitized_msg

    @classmethod
    def sanitize_dict(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of ``data`` with sensitive values redacted.

        Keys containing a sensitive word are redacted outright; nested dicts
        are sanitized recursively and string values are pattern-sanitized.

        Examples:
            >>> LogSanitizer.sanitize_dict({"SPEECH_RESOURCE_KEY": "abc", "region": "eastus"})
            {'SPEECH_RESOURCE_KEY': '[REDACTED]', 'region': 'eastus'}
        """
        result: dict[str, Any] = {}
        for key, value in data.items():
            key_lower = str(key).lower()
            if any(word in key_lower for word in cls.SENSITIVE_KEYS):
                result[key] = cls.REDACTED
            elif isinstance(value, dict):
                result[key] = cls.sanitize_dict(value)
            elif isinstance(value, str):
                result[key] = cls.sanitize(value)
            else:
                result[key] = value
        return result


__all__ = ["LogSanitizer"]
