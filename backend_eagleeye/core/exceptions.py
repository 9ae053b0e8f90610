"""
Application-level exceptions.

Each exception carries a stable ``code`` used in logs and API error payloads.
Write-side errors (ingest, emission) are contained and logged; read-side
StoreUnavailable degrades to fallback mode; invalid caller input surfaces as
a structured error response.
"""

from __future__ import annotations


class EagleEyeError(Exception):
    """Base class for EagleEye errors."""

    code = "eagleeye_error"


class MalformedObservation(EagleEyeError):
    """Observation intake could not parse the error count (or key)."""

    code = "malformed_observation"


class MalformedThresholdRecord(EagleEyeError):
    """Configuration update value is not ``digest:threshold:breachCount``."""

    code = "malformed_threshold_record"


class StoreUnavailable(EagleEyeError):
    """Persistent threshold table cannot serve reads or accept writes."""

    code = "store_unavailable"


class PublishTimeout(EagleEyeError):
    """Alert publish was not acknowledged within the bound."""

    code = "publish_timeout"


class PublishFailure(EagleEyeError):
    """Alert publish failed before acknowledgment."""

    code = "publish_failure"


class MalformedAlertRecord(EagleEyeError):
    """Outbound alert record has fewer than 8 fields or bad numeric fields."""

    code = "malformed_alert_record"
