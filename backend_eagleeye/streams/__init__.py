"""
Event log transport and the config ingest loop.

The log is modelled at its interface (ordered, replayable, per-topic offsets,
acknowledged async send); SQLiteEventLog is the local implementation.
"""

from backend_eagleeye.streams.ingest import ConfigIngestLoop, run_config_ingest
from backend_eagleeye.streams.log import EventLog, LogRecord, SQLiteEventLog

__all__ = [
    "ConfigIngestLoop",
    "EventLog",
    "LogRecord",
    "SQLiteEventLog",
    "run_config_ingest",
]
