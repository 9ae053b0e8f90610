"""
Application settings and environment configuration.

Responsibilities:
- Load configuration from environment variables and .env files.
- Provide defaults for every setting.
- Expose typed settings (DB paths, topics, filter sizing, alert timeouts,
  API port, ...) to the engine composition root and the API server.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from backend_eagleeye.config.env import (
    env_bool,
    env_float,
    env_int,
    env_str,
    load_eagleeye_env,
)

DEFAULT_CONFIG_TOPIC = "eagle-eye.config"
DEFAULT_ALERT_TOPIC = "eagle-eye.alerts"
DEFAULT_BLOOM_CAPACITY = 60_000
DEFAULT_BLOOM_FP_RATE = 0.01
DEFAULT_PUBLISH_TIMEOUT_SEC = 5.0
DEFAULT_FALLBACK_SEED_COUNT = 100
DEFAULT_FALLBACK_THRESHOLD_MIN = 40
DEFAULT_FALLBACK_THRESHOLD_MAX = 90


@dataclass(frozen=True)
class Settings:
    """Typed service settings; construct directly in tests, via get_settings() in production."""

    db_path: Path = Path("eagleeye.db")
    """SQLite file holding the threshold table changelog and checkpoint."""
    log_path: Path = Path("eagleeye_log.db")
    """SQLite file backing the local event log (config + alert topics)."""
    config_topic: str = DEFAULT_CONFIG_TOPIC
    alert_topic: str = DEFAULT_ALERT_TOPIC
    bloom_capacity: int = DEFAULT_BLOOM_CAPACITY
    bloom_fp_rate: float = DEFAULT_BLOOM_FP_RATE
    publish_timeout_sec: float = DEFAULT_PUBLISH_TIMEOUT_SEC
    alert_workers: int = 4
    alert_max_pending: int = 1024
    ingest_poll_interval_sec: float = 0.5
    ingest_batch_size: int = 500
    checkpoint_every: int = 10_000
    fallback_seed_count: int = DEFAULT_FALLBACK_SEED_COUNT
    fallback_threshold_min: int = DEFAULT_FALLBACK_THRESHOLD_MIN
    fallback_threshold_max: int = DEFAULT_FALLBACK_THRESHOLD_MAX
    listener_enabled: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "info"


def get_settings() -> Settings:
    """Return settings read from the environment (after loading .env)."""
    load_eagleeye_env()
    return Settings(
        db_path=Path(env_str("EAGLEEYE_DB_PATH", "eagleeye.db")),
        log_path=Path(env_str("EAGLEEYE_LOG_PATH", "eagleeye_log.db")),
        config_topic=env_str("EAGLEEYE_CONFIG_TOPIC", DEFAULT_CONFIG_TOPIC),
        alert_topic=env_str("EAGLEEYE_ALERT_TOPIC", DEFAULT_ALERT_TOPIC),
        bloom_capacity=env_int("EAGLEEYE_BLOOM_CAPACITY", DEFAULT_BLOOM_CAPACITY),
        bloom_fp_rate=env_float("EAGLEEYE_BLOOM_FP_RATE", DEFAULT_BLOOM_FP_RATE),
        publish_timeout_sec=env_float("EAGLEEYE_PUBLISH_TIMEOUT_SEC", DEFAULT_PUBLISH_TIMEOUT_SEC),
        alert_workers=env_int("EAGLEEYE_ALERT_WORKERS", 4),
        alert_max_pending=env_int("EAGLEEYE_ALERT_MAX_PENDING", 1024),
        ingest_poll_interval_sec=env_float("EAGLEEYE_INGEST_POLL_SEC", 0.5),
        ingest_batch_size=env_int("EAGLEEYE_INGEST_BATCH", 500),
        checkpoint_every=env_int("EAGLEEYE_CHECKPOINT_EVERY", 10_000),
        fallback_seed_count=env_int("EAGLEEYE_FALLBACK_SEED_COUNT", DEFAULT_FALLBACK_SEED_COUNT),
        fallback_threshold_min=env_int("EAGLEEYE_FALLBACK_THRESHOLD_MIN", DEFAULT_FALLBACK_THRESHOLD_MIN),
        fallback_threshold_max=env_int("EAGLEEYE_FALLBACK_THRESHOLD_MAX", DEFAULT_FALLBACK_THRESHOLD_MAX),
        listener_enabled=env_bool("EAGLEEYE_LISTENER_ENABLED", True),
        api_host=env_str("API_HOST", "0.0.0.0"),
        api_port=env_int("API_PORT", 8000),
        log_level=env_str("LOG_LEVEL", "info").lower(),
    )
