"""
Alert path: breach classification, asynchronous emission, downstream listener.

The classifier decides; the emitter publishes breaches to the alert topic
without blocking the caller; the listener parses published alert records.
"""

from backend_eagleeye.alerts.classifier import (
    BelowThreshold,
    BreachClassifier,
    Classification,
    NoThreshold,
    ThresholdBreached,
)
from backend_eagleeye.alerts.emitter import AlertEmitter, AlertEvent
from backend_eagleeye.alerts.listener import AlertListener, AlertRecord, parse_alert_record
from backend_eagleeye.alerts.observation import Observation, parse_observation

__all__ = [
    "AlertEmitter",
    "AlertEvent",
    "AlertListener",
    "AlertRecord",
    "BelowThreshold",
    "BreachClassifier",
    "Classification",
    "NoThreshold",
    "Observation",
    "ThresholdBreached",
    "parse_alert_record",
    "parse_observation",
]
