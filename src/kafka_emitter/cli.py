import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import (
    ConsolePublisherConfig,
    EmitterConfig,
    KafkaPublisherConfig,
    PublisherConfig,
    PublisherKind,
    apply_env,
    read_config,
)
from .emitter import Emitter, resolve_topic_prefix
from .publishers import create_publisher
from .sources import rpc
from .utils.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="kafka-emitter",
        description="Publish canonical blocks, transactions and logs of an EVM chain to Kafka",
    )
    parser.add_argument("--config", help="path to a YAML config file")
    parser.add_argument(
        "--topic-prefix",
        help="prefix of the emitted topics, defaults to <chain id>-<chain name>",
    )
    parser.add_argument(
        "--start-block",
        type=int,
        help="first block to emit, 0 restarts from genesis; unset continues from the last finished height",
    )
    parser.add_argument(
        "--publisher",
        choices=[kind.value for kind in PublisherKind],
        help="where records go, console logs them instead of sending",
    )
    parser.add_argument("--rpc-url", help="JSON-RPC endpoint of the node")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument(
        "--no-log-file", action="store_true", help="only log to the console"
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> EmitterConfig:
    config = read_config(args.config)

    if args.publisher is not None:
        kind = PublisherKind(args.publisher)
        if kind != config.publisher.kind:
            publisher_config = (
                KafkaPublisherConfig()
                if kind == PublisherKind.KAFKA
                else ConsolePublisherConfig()
            )
            config.publisher = PublisherConfig(kind=kind, config=publisher_config)

    config = apply_env(config)

    if args.rpc_url is not None:
        config.source.url = args.rpc_url
    if args.topic_prefix is not None:
        config.topic_prefix = args.topic_prefix
    if args.start_block is not None:
        config.start_block = args.start_block

    return config


async def run(config: EmitterConfig) -> None:
    ctx = await rpc.connect(config.source)

    topic_prefix = resolve_topic_prefix(config.topic_prefix, ctx.chain)
    publisher = create_publisher(config.publisher, topic_prefix)

    emitter = Emitter(ctx, publisher)
    await emitter.start(config.start_block)

    await publisher.start()
    try:
        await emitter.run()
    finally:
        await publisher.stop()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    setup_logging(
        level=logging.getLevelName(args.log_level.upper()),
        log_dir=None if args.no_log_file else "logs",
    )

    try:
        config = build_config(args)
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
