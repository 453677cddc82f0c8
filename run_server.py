import uvicorn
import logging
import os
from dotenv import dotenv_values

# Suppress uvicorn's default logging; govlens logs requests itself
uvicorn_loggers = [
    logging.getLogger("uvicorn"),
    logging.getLogger("uvicorn.error"),
    logging.getLogger("uvicorn.access"),
    logging.getLogger("uvicorn.asgi"),
]

for uvicorn_logger in uvicorn_loggers:
    # Only show ERROR and CRITICAL
    uvicorn_logger.setLevel(logging.ERROR)
    # Remove handlers to prevent duplicate output
    uvicorn_logger.handlers = []

config = dotenv_values(".env")

# Environment variables take priority over .env
GOVLENS_SERVICE_HOST = os.getenv("GOVLENS_SERVICE_HOST", config.get("GOVLENS_SERVICE_HOST", "127.0.0.1"))
GOVLENS_SERVICE_PORT = int(os.getenv("GOVLENS_SERVICE_PORT", config.get("GOVLENS_SERVICE_PORT", "3010")))

if __name__ == "__main__":
    uvicorn.run(
        "govlens.api.main:app",
        host=GOVLENS_SERVICE_HOST,
        port=GOVLENS_SERVICE_PORT,
        reload=False,
        access_log=False,
        log_config=None
    )
