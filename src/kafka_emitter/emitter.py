import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, assert_never

from .errors import ResumptionError
from .publishers.base import RecordPublisher
from .sources.base import BlockHashReader, NodeContext
from .transform import transform
from .types import (
    BlockNumHash,
    ChainSpec,
    Committed,
    Reorged,
    Reverted,
    Segment,
    committed_chain,
)

logger = logging.getLogger(__name__)


class EmitterState(str, Enum):
    IDLE = "idle"
    AWAITING_NOTIFICATION = "awaiting_notification"
    PROCESSING = "processing"
    CLOSED = "closed"


@dataclass
class SegmentStats:
    processed_blocks: int
    transactions: int
    elapsed_s: float

    @property
    def blocks_per_second(self) -> float:
        return self.processed_blocks / self.elapsed_s

    @property
    def tx_per_second(self) -> float:
        return self.transactions / self.elapsed_s


async def resolve_start_head(
    start_block: Optional[int], chain: ChainSpec, provider: BlockHashReader
) -> Optional[BlockNumHash]:
    """
    Resolve the start block directive to the head notifications resume after.

    None keeps the head the node already has. 0 resets to genesis, so the
    first emitted block is 1. N > 0 makes N the first emitted block, i.e. the
    head becomes N - 1.
    """
    if start_block is None:
        return None

    if start_block < 0:
        raise ResumptionError(f"start block must not be negative: {start_block}")

    if start_block == 0:
        return BlockNumHash(number=0, hash=chain.genesis_hash)

    number = start_block - 1
    block_hash = await provider.block_hash(number)
    if block_hash is None:
        raise ResumptionError(f"hash of block {number} is not available")

    return BlockNumHash(number=number, hash=block_hash)


def resolve_topic_prefix(topic_prefix: Optional[str], chain: ChainSpec) -> str:
    if topic_prefix is not None:
        return topic_prefix

    chain_name = chain.name if chain.name is not None else str(chain.chain_id)
    return f"{chain.chain_id}-{chain_name}"


def log_segment_processed(
    segment: Segment, start_time: float, number_of_transactions: int
) -> SegmentStats:
    stats = SegmentStats(
        processed_blocks=segment.tip().number - segment.first().number + 1,
        transactions=number_of_transactions,
        # avoid dividing by zero on coarse clocks
        elapsed_s=max(time.perf_counter() - start_time, 1e-9),
    )

    logger.info(
        f"Processed segment blocks={segment.range_str()} processed_blocks={stats.processed_blocks} "
        f"blocks_per_second={stats.blocks_per_second:.2f} transactions={stats.transactions} "
        f"tx_per_second={stats.tx_per_second:.2f}"
    )

    return stats


async def process_committed_chain(
    segment: Segment, publisher: RecordPublisher, chain_id: int
) -> SegmentStats:
    """Transform and enqueue every non-empty block of the segment, in order"""
    start_time = time.perf_counter()

    number_of_transactions = sum(block.transaction_count for block in segment.blocks)

    for block, receipts in segment.blocks_and_receipts():
        if block.transaction_count == 0:
            continue

        emitter_block, emitter_transactions = transform(block, receipts, chain_id)

        await publisher.send_block(emitter_block)

        for emitter_transaction, emitter_logs in emitter_transactions:
            await publisher.send_transaction(emitter_transaction)

            for emitter_log in emitter_logs:
                await publisher.send_log(emitter_log)

    return log_segment_processed(segment, start_time, number_of_transactions)


class Emitter:
    """
    Drives the node's notification stream into the publisher.

    Segments are handled one at a time in the order the source yields them.
    A committed segment is fully enqueued before its tip is acknowledged; the
    acknowledgment does not wait for broker delivery. Reorgs and reverts are
    only logged, records already published for the old chain are not retracted.
    Source and transform errors propagate and end the run.
    """

    def __init__(self, ctx: NodeContext, publisher: RecordPublisher):
        self.ctx = ctx
        self.publisher = publisher
        self.state = EmitterState.IDLE

    async def start(self, start_block: Optional[int]) -> None:
        head = await resolve_start_head(start_block, self.ctx.chain, self.ctx.provider)

        if head is None:
            logger.info("Emitter starting where it left off")
        else:
            self.ctx.notifications.set_head(head)
            logger.info(f"Reset emitter to start after {head}")

        logger.info(f"Using topic prefix {self.publisher.topic_prefix}")

    async def run(self) -> None:
        chain_id = self.ctx.chain.chain_id

        try:
            while True:
                self.state = EmitterState.AWAITING_NOTIFICATION
                event = await self.ctx.notifications.next()
                if event is None:
                    logger.info("Notification stream ended")
                    break

                self.state = EmitterState.PROCESSING

                match event:
                    case Committed(new=new):
                        logger.info(f"Received segment blocks={new.range_str()}")
                        await process_committed_chain(new, self.publisher, chain_id)
                    case Reorged(old=old, new=new):
                        logger.info(
                            f"Received reorg from_chain={old.range_str()} to_chain={new.range_str()}"
                        )
                    case Reverted(old=old):
                        logger.info(f"Received revert reverted_chain={old.range_str()}")
                    case _:
                        assert_never(event)

                segment = committed_chain(event)
                if segment is not None:
                    self.ctx.notifications.finished_height(segment.tip().num_hash())
        finally:
            self.state = EmitterState.CLOSED


__all__ = [
    "Emitter",
    "EmitterState",
    "SegmentStats",
    "resolve_start_head",
    "resolve_topic_prefix",
    "process_committed_chain",
    "log_segment_processed",
]
