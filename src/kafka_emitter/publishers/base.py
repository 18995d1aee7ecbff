from abc import ABC, abstractmethod
import logging

from ..transform import EmitterBlock, EmitterLog, EmitterTransaction, to_payload

logger = logging.getLogger(__name__)

BLOCKS_TOPIC = "blocks"
TRANSACTIONS_TOPIC = "transactions"
LOGS_TOPIC = "logs"


def transaction_key(record: EmitterTransaction) -> str:
    return f"{record.block_number}-{record.transaction_index}"


def log_key(record: EmitterLog) -> str:
    return f"{record.block_number}-{record.transaction_index}-{record.log_index}"


class RecordPublisher(ABC):
    """Base class for record publishers"""

    def __init__(self, topic_prefix: str):
        self.topic_prefix = topic_prefix

    def topic(self, topic_suffix: str) -> str:
        return f"{self.topic_prefix}-{topic_suffix}"

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    @abstractmethod
    async def publish(self, topic_suffix: str, key: str, payload: bytes) -> None:
        """Enqueue one record, best effort. Must not raise on delivery failure"""
        pass

    async def send_block(self, record: EmitterBlock) -> None:
        # blocks don't need partition affinity
        await self.publish(BLOCKS_TOPIC, "", to_payload(record))

    async def send_transaction(self, record: EmitterTransaction) -> None:
        await self.publish(TRANSACTIONS_TOPIC, transaction_key(record), to_payload(record))

    async def send_log(self, record: EmitterLog) -> None:
        await self.publish(LOGS_TOPIC, log_key(record), to_payload(record))
