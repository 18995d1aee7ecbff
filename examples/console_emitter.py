import argparse
import asyncio
import logging
import os

from dotenv import load_dotenv

from kafka_emitter.config import ConsolePublisherConfig, RpcSourceConfig
from kafka_emitter.emitter import Emitter, resolve_topic_prefix
from kafka_emitter.publishers import console
from kafka_emitter.sources import rpc

load_dotenv()

logging.basicConfig(level=os.environ.get("LOGLEVEL", "INFO").upper())
logger = logging.getLogger("examples.console_emitter")


async def main(rpc_url: str, start_block: int):
    ctx = await rpc.connect(
        RpcSourceConfig(url=rpc_url, checkpoint_path="./data/console_checkpoint.json")
    )

    publisher = console.Publisher(
        ConsolePublisherConfig(), resolve_topic_prefix(None, ctx.chain)
    )

    emitter = Emitter(ctx, publisher)
    await emitter.start(start_block)
    await emitter.run()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="print emitter records of a chain")
    parser.add_argument("--rpc-url", default=os.environ.get("RPC_URL", "http://localhost:8545"))
    parser.add_argument("--from-block", type=int, required=True)
    args = parser.parse_args()

    os.makedirs("data", exist_ok=True)

    asyncio.run(main(args.rpc_url, args.from_block))
