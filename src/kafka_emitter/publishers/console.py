import logging

from ..config import ConsolePublisherConfig
from .base import RecordPublisher

logger = logging.getLogger(__name__)


class Publisher(RecordPublisher):
    """Logs every payload instead of sending it"""

    def __init__(self, config: ConsolePublisherConfig, topic_prefix: str):
        super().__init__(topic_prefix)
        self.level = config.level

    async def publish(self, topic_suffix: str, key: str, payload: bytes) -> None:
        logger.log(
            self.level,
            f"{self.topic(topic_suffix)} key={key!r} payload={payload.decode('utf-8')}",
        )
