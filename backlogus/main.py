"""Main entry point for Backlogus."""

import logging
import sys
from datetime import datetime
from pathlib import Path

import uvicorn

from backlogus.config import ConfigLoader, ConfigLoadError, SystemConfig


def setup_logging(debug: bool = False):
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]

    log_file = None
    if debug:
        log_dir = Path("data/logs")
        log_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_dir / f"server_{timestamp}.log"

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    # Root stays at INFO so third-party libraries don't flood debug output
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )

    logging.getLogger('backlogus').setLevel(level)

    # Silence noisy third-party loggers
    logging.getLogger('httpcore').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)

    if log_file:
        logging.getLogger(__name__).info(f"[STARTUP] Server log file: {log_file}")

    return log_file


def main():
    """Run the FastAPI server."""
    try:
        system_config = ConfigLoader().load_system_config()
    except ConfigLoadError as e:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        logging.getLogger(__name__).warning(f"[STARTUP WARNING] Could not load system config: {e}, using defaults")
        system_config = SystemConfig()

    setup_logging(debug=system_config.debug)

    logger = logging.getLogger(__name__)
    logger.info(f"Starting Backlogus server on {system_config.api_host}:{system_config.api_port} "
                f"(debug mode: {system_config.debug})")

    uvicorn.run(
        "backlogus.api.app:app",
        host=system_config.api_host,
        port=system_config.api_port,
        reload=False,
        log_level="info",
        log_config=None,  # Keep our basicConfig
    )


if __name__ == "__main__":
    main()
