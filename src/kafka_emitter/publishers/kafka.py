import asyncio
import logging
from functools import partial
from typing import Any, Dict, Optional

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError
from aiokafka.helpers import create_ssl_context

from ..config import KafkaPublisherConfig
from ..credentials import MSKTokenProvider
from ..errors import EmitterError
from .base import RecordPublisher

logger = logging.getLogger(__name__)

SASL_PROTOCOLS = ("SASL_SSL", "SASL_PLAINTEXT")
SSL_PROTOCOLS = ("SSL", "SASL_SSL")


class Publisher(RecordPublisher):
    """
    Fire-and-forget Kafka publisher.

    `publish` returns once the record is in the producer's local batch
    accumulator. It only waits if the accumulator is full, and never for the
    broker ack. Enqueue and delivery failures are not retried and never
    reach the caller: they are counted in `failed`, logged at debug and
    passed to `on_delivery_error` when one is configured. Records can be lost;
    watch broker-side metrics to notice.
    """

    def __init__(
        self,
        config: KafkaPublisherConfig,
        topic_prefix: str,
        producer: Optional[AIOKafkaProducer] = None,
    ):
        super().__init__(topic_prefix)
        self.config = config
        self.producer = producer
        self.token_provider: Optional[MSKTokenProvider] = None
        self.sent = 0
        self.failed = 0

    def _create_producer(self) -> AIOKafkaProducer:
        logger.info(
            f"Creating producer broker={self.config.bootstrap_servers} region={self.config.region}"
        )

        kwargs: Dict[str, Any] = dict(
            bootstrap_servers=self.config.bootstrap_servers,
            client_id=self.config.client_id,
            linger_ms=self.config.linger_ms,
            max_batch_size=self.config.max_batch_size,
            request_timeout_ms=self.config.request_timeout_ms,
            security_protocol=self.config.security_protocol,
        )

        if self.config.security_protocol in SASL_PROTOCOLS:
            self.token_provider = MSKTokenProvider(
                self.config.region, timeout_s=self.config.token_timeout_s
            )
            kwargs["sasl_mechanism"] = "OAUTHBEARER"
            kwargs["sasl_oauth_token_provider"] = self.token_provider

        if self.config.security_protocol in SSL_PROTOCOLS:
            kwargs["ssl_context"] = create_ssl_context()

        return AIOKafkaProducer(**kwargs)

    async def start(self) -> None:
        if self.producer is None:
            self.producer = self._create_producer()

        await self.producer.start()

        logger.info("Created producer")

        if self.config.fetch_metadata:
            cluster = await self.producer.client.fetch_all_metadata()
            for topic in sorted(cluster.topics()):
                logger.info(f"Topic: {topic}")

    async def stop(self) -> None:
        if self.producer is not None:
            # flushes pending batches
            await self.producer.stop()

        logger.info(f"Stopped producer sent={self.sent} failed={self.failed}")

    def _delivery_failed(self, topic: str, key: str, error: BaseException) -> None:
        self.failed += 1
        logger.debug(f"Failed to publish to {topic} key={key!r}: {error!r}")

        if self.config.on_delivery_error is not None:
            self.config.on_delivery_error(topic, key, error)

    def _on_delivery(self, topic: str, key: str, fut: asyncio.Future) -> None:
        if fut.cancelled():
            self._delivery_failed(topic, key, asyncio.CancelledError())
        elif fut.exception() is not None:
            self._delivery_failed(topic, key, fut.exception())
        else:
            self.sent += 1

    async def publish(self, topic_suffix: str, key: str, payload: bytes) -> None:
        if self.producer is None:
            raise EmitterError("kafka publisher is not started")

        topic = self.topic(topic_suffix)

        try:
            fut = await self.producer.send(
                topic, value=payload, key=key.encode("utf-8")
            )
        except (KafkaError, ValueError) as e:
            self._delivery_failed(topic, key, e)
            return

        fut.add_done_callback(partial(self._on_delivery, topic, key))
