"""
Main entrypoint: alerting engine (ingest + listener threads) + FastAPI server.

The engine is built from environment settings and started by the app lifespan:
threshold table recovery completes before the server accepts requests. On
SIGINT/SIGTERM uvicorn shuts down and the lifespan stops the engine.

Env: EAGLEEYE_DB_PATH, EAGLEEYE_LOG_PATH, EAGLEEYE_*_TOPIC, API_HOST, API_PORT, LOG_LEVEL, ...

API only: uvicorn backend_eagleeye.api_server.app:app --host 0.0.0.0 --port 8000
"""

# Configure structured JSON logging before other imports that may log
from backend_eagleeye.eagleeye_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Build the engine from settings and serve the API in the main thread."""
    import uvicorn

    from backend_eagleeye.api_server.server import create_app
    from backend_eagleeye.config import get_settings
    from backend_eagleeye.engine import build_engine

    settings = get_settings()
    engine = build_engine(settings)
    app = create_app(engine)

    logger.info(
        "main_server_starting",
        host=settings.api_host,
        port=settings.api_port,
        db_path=str(settings.db_path),
        log_path=str(settings.log_path),
        config_topic=settings.config_topic,
        alert_topic=settings.alert_topic,
    )
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level)


if __name__ == "__main__":
    main()
