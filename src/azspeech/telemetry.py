"""Outcome events of top-level operations.

Every top-level operation (sign-in, create, configure, ...) ends in exactly
one outcome: success, cancelled or failure. TelemetryReporter records it as
a structured log record on the ``azspeech.telemetry`` logger; nothing is
sent over the network.

Example:
    >>> reporter = TelemetryReporter()
    >>> reporter.send_success(TelemetryEvent.AZURE_LOGIN)
    >>> reporter.send_error(TelemetryEvent.CONFIGURE_RESOURCE, error)
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from azspeech.errors import SpeechToolkitError, UserCancelledError
from azspeech.log_sanitizer import LogSanitizer

logger = logging.getLogger("azspeech.telemetry")


class TelemetryEvent(StrEnum):
    AZURE_LOGIN = "azure-login"
    AZURE_LOGOUT = "azure-logout"
    LIST_SUBSCRIPTIONS = "list-subscriptions"
    LIST_RESOURCES = "list-resources"
    CREATE_AZURE_AI_SERVICE = "create-azure-ai-service"
    CONFIGURE_RESOURCE = "configure-resource"
    VIEW_SPEECH_RESOURCE_PROPERTIES = "view-speech-resource-properties"
    OPEN_AZURE_PORTAL = "open-azure-portal"


class TelemetryProperty(StrEnum):
    SUCCESS = "success"
    ERROR_MESSAGE = "error_message"
    ERROR_CODE = "error_code"
    ERROR_TYPE = "error_type"
    AZURE_SUBSCRIPTION_ID = "azure_subscription_id"
    RESOURCE_GROUP = "resource_group"
    SERVICE_REGION = "service_region"
    SPEECH_RESOURCE_SKU = "speech_resource_sku"
    SPEECH_RESOURCE_NAME = "speech_resource_name"


class Outcome(StrEnum):
    SUCCESS = "success"
    CANCELLED = "cancelled"
    FAILURE = "failure"


@dataclass
class OutcomeRecord:
    """One recorded outcome."""

    event: TelemetryEvent
    outcome: Outcome
    properties: dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class TelemetryReporter:
    """Record operation outcomes.

    Records are kept in ``records`` for the lifetime of the reporter and
    written to the ``azspeech.telemetry`` logger at DEBUG level.
    """

    def __init__(self) -> None:
        self.records: list[OutcomeRecord] = []

    def send_success(
        self, event: TelemetryEvent, properties: dict[str, Any] | None = None
    ) -> OutcomeRecord:
        props = self._clean(properties)
        props[TelemetryProperty.SUCCESS] = "yes"
        return self._record(event, Outcome.SUCCESS, props)

    def send_cancelled(
        self, event: TelemetryEvent, properties: dict[str, Any] | None = None
    ) -> OutcomeRecord:
        props = self._clean(properties)
        props[TelemetryProperty.SUCCESS] = "no"
        props[TelemetryProperty.ERROR_TYPE] = "user"
        props[TelemetryProperty.ERROR_CODE] = UserCancelledError().error_code
        return self._record(event, Outcome.CANCELLED, props)

    def send_error(
        self,
        event: TelemetryEvent,
        error: BaseException,
        properties: dict[str, Any] | None = None,
    ) -> OutcomeRecord:
        """Record a failure; cancellations are recorded as their own outcome."""
        if isinstance(error, UserCancelledError):
            return self.send_cancelled(event, properties)

        props = self._clean(properties)
        props[TelemetryProperty.SUCCESS] = "no"
        if isinstance(error, SpeechToolkitError):
            props[TelemetryProperty.ERROR_CODE] = error.error_code
            props[TelemetryProperty.ERROR_TYPE] = error.error_type
        else:
            props[TelemetryProperty.ERROR_CODE] = f"azspeech.{type(error).__name__}"
            props[TelemetryProperty.ERROR_TYPE] = "system"
        props[TelemetryProperty.ERROR_MESSAGE] = LogSanitizer.sanitize_exception(error)
        return self._record(event, Outcome.FAILURE, props)

    def _record(
        self, event: TelemetryEvent, outcome: Outcome, properties: dict[str, str]
    ) -> OutcomeRecord:
        record = OutcomeRecord(event=event, outcome=outcome, properties=properties)
        self.records.append(record)
        logger.debug(
            f"{event} {outcome}",
            extra={"event": str(event), "outcome": str(outcome), "properties": properties},
        )
        return record

    @staticmethod
    def _clean(properties: dict[str, Any] | None) -> dict[str, str]:
        """Stringify and sanitize property values."""
        return {
            str(key): LogSanitizer.sanitize(str(value))
            for key, value in (properties or {}).items()
            if value is not None
        }


__all__ = [
    "Outcome",
    "OutcomeRecord",
    "TelemetryEvent",
    "TelemetryProperty",
    "TelemetryReporter",
]
