import os
import logging
import sys

DEBUG = os.getenv("ROOMTRACE_DEBUG", "false").lower() == "true"

# Settings collection consulted by the CLI when --settings is not given
SETTINGS_PATH = os.getenv("ROOMTRACE_SETTINGS_PATH", "settings/extraction_settings.json")


# Logging configuration
def setup_logging(debug: bool = DEBUG):
    """Configure application logging"""
    log_level = logging.DEBUG if debug else logging.INFO

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )

    logger = logging.getLogger('roomtrace')
    logger.setLevel(log_level)

    # Suppress noisy third-party loggers
    logging.getLogger('pdfminer').setLevel(logging.WARNING)
    logging.getLogger('PIL').setLevel(logging.WARNING)

    return logger
