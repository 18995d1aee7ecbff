import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

_is_logging_configured = False


def setup_logging(level: int = logging.INFO, log_dir: Optional[str] = "logs"):
    """Configure logging for all modules"""
    global _is_logging_configured

    # If logging is already configured, return the existing logger
    if _is_logging_configured:
        return logging.getLogger()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_dir is not None:
        path = Path(log_dir)
        path.mkdir(exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = path / f"kafka_emitter_{timestamp}.log"

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Set higher log level for noisy third-party libraries
    logging.getLogger("aiokafka").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("web3").setLevel(logging.INFO)
    logging.getLogger("asyncio").setLevel(logging.INFO)

    _is_logging_configured = True
    return root_logger