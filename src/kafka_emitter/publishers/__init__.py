from . import console, kafka
from .base import (
    BLOCKS_TOPIC,
    LOGS_TOPIC,
    TRANSACTIONS_TOPIC,
    RecordPublisher,
    log_key,
    transaction_key,
)
from .publisher import create_publisher

__all__ = [
    "console",
    "kafka",
    "BLOCKS_TOPIC",
    "LOGS_TOPIC",
    "TRANSACTIONS_TOPIC",
    "RecordPublisher",
    "log_key",
    "transaction_key",
    "create_publisher",
]
