import logging

from ..config import (
    ConsolePublisherConfig,
    KafkaPublisherConfig,
    PublisherConfig,
    PublisherKind,
)
from . import console, kafka
from .base import RecordPublisher

logger = logging.getLogger(__name__)


def create_publisher(publisher: PublisherConfig, topic_prefix: str) -> RecordPublisher:
    match publisher.kind:
        case PublisherKind.KAFKA:
            assert isinstance(publisher.config, KafkaPublisherConfig)
            return kafka.Publisher(publisher.config, topic_prefix)
        case PublisherKind.CONSOLE:
            assert isinstance(publisher.config, ConsolePublisherConfig)
            return console.Publisher(publisher.config, topic_prefix)
        case _:
            raise ValueError(f"Invalid publisher kind: {publisher.kind}")
