import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

import dacite
import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_AWS_REGION = "us-east-1"
DEFAULT_KAFKA_BROKER = "localhost:9092"

# yaml gives ints for whole-number floats
DACITE_CONFIG = dacite.Config(cast=[Enum], type_hooks={float: float}, strict=True)


class PublisherKind(str, Enum):
    KAFKA = "kafka"
    CONSOLE = "console"


@dataclass
class KafkaPublisherConfig:
    bootstrap_servers: str = DEFAULT_KAFKA_BROKER
    region: str = DEFAULT_AWS_REGION
    # PLAINTEXT skips IAM auth, for local brokers
    security_protocol: str = "SASL_SSL"
    client_id: str = "kafka-emitter"
    linger_ms: int = 0
    max_batch_size: int = 16384
    request_timeout_ms: int = 40000
    token_timeout_s: float = 10.0
    fetch_metadata: bool = True
    on_delivery_error: Optional[Callable[[str, str, BaseException], None]] = None


@dataclass
class ConsolePublisherConfig:
    level: int = logging.INFO


@dataclass
class PublisherConfig:
    kind: PublisherKind
    config: KafkaPublisherConfig | ConsolePublisherConfig


@dataclass
class RpcSourceConfig:
    url: str = "http://localhost:8545"
    poll_interval_s: float = 2.0
    max_segment_blocks: int = 100
    reorg_depth: int = 64
    checkpoint_path: str = "emitter_checkpoint.json"


@dataclass
class EmitterConfig:
    publisher: PublisherConfig = field(
        default_factory=lambda: PublisherConfig(
            kind=PublisherKind.KAFKA, config=KafkaPublisherConfig()
        )
    )
    source: RpcSourceConfig = field(default_factory=RpcSourceConfig)
    topic_prefix: Optional[str] = None
    start_block: Optional[int] = None


def parse_publisher(raw: Dict[str, Any]) -> PublisherConfig:
    kind = PublisherKind(raw.get("kind", PublisherKind.KAFKA.value))
    raw_config = raw.get("config") or {}

    match kind:
        case PublisherKind.KAFKA:
            config = dacite.from_dict(
                data_class=KafkaPublisherConfig, data=raw_config, config=DACITE_CONFIG
            )
        case PublisherKind.CONSOLE:
            config = dacite.from_dict(
                data_class=ConsolePublisherConfig, data=raw_config, config=DACITE_CONFIG
            )
        case _:
            raise ValueError(f"Invalid publisher kind: {kind}")

    return PublisherConfig(kind=kind, config=config)


def parse_config(raw: Dict[str, Any]) -> EmitterConfig:
    raw = dict(raw)
    raw_publisher = raw.pop("publisher", None)

    config = dacite.from_dict(
        data_class=EmitterConfig,
        data=raw,
        config=DACITE_CONFIG,
    )

    if raw_publisher is not None:
        config.publisher = parse_publisher(raw_publisher)

    return config


def apply_env(config: EmitterConfig) -> EmitterConfig:
    """Override broker, region and RPC url from the environment (.env included)"""
    load_dotenv()

    if isinstance(config.publisher.config, KafkaPublisherConfig):
        kafka_config = config.publisher.config
        kafka_config.region = os.environ.get("AWS_REGION", kafka_config.region)
        kafka_config.bootstrap_servers = os.environ.get(
            "KAFKA_BROKER", kafka_config.bootstrap_servers
        )
        logger.info(
            f"MSK env vars: aws_region={kafka_config.region} kafka_broker={kafka_config.bootstrap_servers}"
        )

    config.source.url = os.environ.get("RPC_URL", config.source.url)

    return config


def read_config(config_path: Optional[str] = None) -> EmitterConfig:
    """Parse configuration from an optional YAML file"""

    if config_path is None:
        return EmitterConfig()

    try:
        with open(config_path, "r") as f:
            raw_config = yaml.safe_load(f) or {}

        config = parse_config(raw_config)
    except Exception as e:
        logger.error(f"Error parsing config file {config_path}: {e}")
        raise

    logger.debug(f"Parsed config: {config}")

    return config


def load_config(config_path: Optional[str] = None) -> EmitterConfig:
    """Load configuration from an optional YAML file plus environment overrides"""
    return apply_env(read_config(config_path))


__all__ = [
    "PublisherKind",
    "KafkaPublisherConfig",
    "ConsolePublisherConfig",
    "PublisherConfig",
    "RpcSourceConfig",
    "EmitterConfig",
    "parse_config",
    "apply_env",
    "read_config",
    "load_config",
]
