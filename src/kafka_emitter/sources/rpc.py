import asyncio
import json
import logging
import os
from collections import deque
from pathlib import Path
from typing import Any, Deque, List, Optional, Tuple

from hexbytes import HexBytes
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import BlockNotFound

from ..config import RpcSourceConfig
from ..errors import SourceError
from ..types import (
    Block,
    BlockNumHash,
    ChainSpec,
    Committed,
    Header,
    Log,
    Receipt,
    Reorged,
    Reverted,
    Segment,
    SegmentEvent,
    Transaction,
)
from .base import NodeContext

logger = logging.getLogger(__name__)

BlockWithReceipts = Tuple[Block, Tuple[Receipt, ...]]


def _bytes(value: Any) -> bytes:
    return bytes(HexBytes(value))


def _opt_bytes(value: Any) -> Optional[bytes]:
    if value is None:
        return None
    return _bytes(value)


def _int(value: Any) -> int:
    if isinstance(value, str):
        return int(value, 16)
    return int(value)


def _opt_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return _int(value)


def header_from_rpc(block: Any) -> Header:
    return Header(
        hash=_bytes(block["hash"]),
        parent_hash=_bytes(block["parentHash"]),
        beneficiary=_bytes(block["miner"]),
        state_root=_bytes(block["stateRoot"]),
        transactions_root=_bytes(block["transactionsRoot"]),
        receipts_root=_bytes(block["receiptsRoot"]),
        number=_int(block["number"]),
        gas_used=_int(block["gasUsed"]),
        gas_limit=_int(block["gasLimit"]),
        extra_data=_bytes(block["extraData"]),
        logs_bloom=_bytes(block["logsBloom"]),
        timestamp=_int(block["timestamp"]),
        difficulty=_int(block.get("difficulty", 0)),
        nonce=_bytes(block.get("nonce", bytes(8))),
        mix_hash=_opt_bytes(block.get("mixHash")),
        base_fee_per_gas=_opt_int(block.get("baseFeePerGas")),
        withdrawals_root=_opt_bytes(block.get("withdrawalsRoot")),
    )


def transaction_from_rpc(tx: Any) -> Transaction:
    gas_price = _opt_int(tx.get("gasPrice"))
    max_fee_per_gas = _opt_int(tx.get("maxFeePerGas"))

    return Transaction(
        hash=_bytes(tx["hash"]),
        sender=_bytes(tx["from"]),
        nonce=_int(tx["nonce"]),
        to=_opt_bytes(tx.get("to")),
        value=_int(tx["value"]),
        input=_bytes(tx["input"]),
        gas_limit=_int(tx["gas"]),
        # legacy transactions pay gas_price as their fee cap
        max_fee_per_gas=max_fee_per_gas if max_fee_per_gas is not None else gas_price or 0,
        tx_type=_int(tx.get("type", 0)),
        # for fee-market transactions nodes report the effective price here, drop it
        gas_price=gas_price if max_fee_per_gas is None else None,
        max_priority_fee_per_gas=_opt_int(tx.get("maxPriorityFeePerGas")),
    )


def receipt_from_rpc(receipt: Any) -> Receipt:
    return Receipt(
        success=_int(receipt.get("status", 1)) == 1,
        cumulative_gas_used=_int(receipt["cumulativeGasUsed"]),
        logs=tuple(
            Log(
                address=_bytes(log["address"]),
                topics=tuple(_bytes(topic) for topic in log["topics"]),
                data=_bytes(log["data"]),
            )
            for log in receipt["logs"]
        ),
    )


def to_segment(items: List[BlockWithReceipts]) -> Segment:
    return Segment(
        blocks=tuple(block for block, _ in items),
        receipts=tuple(receipts for _, receipts in items),
    )


class RpcNotificationSource:
    """
    Notification source backed by polling an Ethereum JSON-RPC endpoint.

    Emits committed segments of at most `max_segment_blocks` blocks. The last
    `reorg_depth` emitted blocks are retained so a parent hash mismatch can be
    walked back to the fork point and reported as a reorg (or a revert when
    the new chain is not longer than the fork point yet). Acknowledged heights
    are persisted to `checkpoint_path` and become the head on the next start.
    """

    def __init__(self, w3: AsyncWeb3, config: RpcSourceConfig):
        self.w3 = w3
        self.config = config
        self.checkpoint_path = Path(config.checkpoint_path)
        self._head: Optional[BlockNumHash] = None
        self._recent: Deque[BlockWithReceipts] = deque(maxlen=config.reorg_depth)
        self._closed = False

    @property
    def head(self) -> Optional[BlockNumHash]:
        return self._head

    async def block_hash(self, number: int) -> Optional[bytes]:
        try:
            block = await self.w3.eth.get_block(number)
        except BlockNotFound:
            return None
        return _bytes(block["hash"])

    async def chain_spec(self) -> ChainSpec:
        chain_id = await self.w3.eth.chain_id
        genesis_hash = await self.block_hash(0)
        if genesis_hash is None:
            raise SourceError("node did not return a genesis block")
        return ChainSpec(chain_id=chain_id, genesis_hash=genesis_hash)

    def set_head(self, head: BlockNumHash) -> None:
        self._head = head
        self._recent.clear()

    def load_checkpoint(self) -> Optional[BlockNumHash]:
        if not self.checkpoint_path.exists():
            return None

        with open(self.checkpoint_path, "r") as f:
            raw = json.load(f)

        return BlockNumHash(number=raw["number"], hash=_bytes(raw["hash"]))

    def finished_height(self, height: BlockNumHash) -> None:
        tmp_path = self.checkpoint_path.with_suffix(".tmp")
        with open(tmp_path, "w") as f:
            json.dump({"number": height.number, "hash": "0x" + height.hash.hex()}, f)
        os.replace(tmp_path, self.checkpoint_path)

        logger.debug(f"Finished height {height}")

    def close(self) -> None:
        self._closed = True

    async def _initial_head(self) -> BlockNumHash:
        checkpoint = self.load_checkpoint()
        if checkpoint is not None:
            logger.info(f"Continuing after checkpoint {checkpoint}")
            return checkpoint

        latest = await self.w3.eth.get_block("latest")
        head = BlockNumHash(number=_int(latest["number"]), hash=_bytes(latest["hash"]))
        logger.info(f"No checkpoint found, following chain from tip {head}")
        return head

    async def _fetch_block(self, number: int) -> BlockWithReceipts:
        raw_block = await self.w3.eth.get_block(number, full_transactions=True)
        raw_receipts = await self.w3.eth.get_block_receipts(number)

        block = Block(
            header=header_from_rpc(raw_block),
            transactions=tuple(transaction_from_rpc(tx) for tx in raw_block["transactions"]),
            size=_int(raw_block.get("size", 0)),
        )
        receipts = tuple(
            receipt_from_rpc(r)
            for r in sorted(raw_receipts, key=lambda r: _int(r["transactionIndex"]))
        )

        return block, receipts

    async def _fetch_range(self, start: int, end: int) -> List[BlockWithReceipts]:
        out: List[BlockWithReceipts] = []

        for number in range(start, end + 1):
            try:
                block, receipts = await self._fetch_block(number)
            except BlockNotFound:
                break

            # chain moved while fetching, the rest is picked up by the next poll
            if out and block.header.parent_hash != out[-1][0].hash:
                break

            out.append((block, receipts))

        return out

    def _segment_end(self, start: int, latest: int) -> int:
        return min(latest, start + self.config.max_segment_blocks - 1)

    async def _reorg(self, latest: int) -> Optional[SegmentEvent]:
        recent = list(self._recent)
        old: List[BlockWithReceipts] = []

        while recent:
            block, _ = recent[-1]
            if await self.block_hash(block.number) == block.hash:
                break
            old.insert(0, recent.pop())

        if not recent:
            raise SourceError(
                f"head {self._head} is no longer canonical and the fork point is not within the last {len(self._recent)} retained blocks"
            )

        if not old:
            # head is canonical again, retry on the next poll
            return None

        fork = recent[-1][0].num_hash()
        new = await self._fetch_range(
            fork.number + 1, self._segment_end(fork.number + 1, latest)
        )

        if new and new[0][0].header.parent_hash != fork.hash:
            # chain moved again, retry on the next poll
            return None

        self._recent = deque(recent, maxlen=self.config.reorg_depth)

        if not new:
            self._head = fork
            return Reverted(old=to_segment(old))

        self._recent.extend(new)
        self._head = new[-1][0].num_hash()
        return Reorged(old=to_segment(old), new=to_segment(new))

    async def next(self) -> Optional[SegmentEvent]:
        if self._head is None:
            self._head = await self._initial_head()

        while not self._closed:
            latest = await self.w3.eth.block_number

            if latest <= self._head.number:
                # the chain shrank below the head or replaced it
                if await self.block_hash(self._head.number) != self._head.hash:
                    event = await self._reorg(latest)
                    if event is not None:
                        return event

                await asyncio.sleep(self.config.poll_interval_s)
                continue

            start = self._head.number + 1
            fetched = await self._fetch_range(start, self._segment_end(start, latest))
            if not fetched:
                await asyncio.sleep(self.config.poll_interval_s)
                continue

            if fetched[0][0].header.parent_hash != self._head.hash:
                event = await self._reorg(latest)
                if event is None:
                    await asyncio.sleep(self.config.poll_interval_s)
                    continue
                return event

            self._recent.extend(fetched)
            self._head = fetched[-1][0].num_hash()
            return Committed(new=to_segment(fetched))

        return None


async def connect(config: RpcSourceConfig) -> NodeContext:
    w3 = AsyncWeb3(AsyncHTTPProvider(config.url))
    source = RpcNotificationSource(w3, config)
    chain = await source.chain_spec()

    logger.info(f"Connected to {config.url} chain_id={chain.chain_id}")

    return NodeContext(chain=chain, provider=source, notifications=source)


__all__ = [
    "RpcNotificationSource",
    "connect",
    "header_from_rpc",
    "transaction_from_rpc",
    "receipt_from_rpc",
]
