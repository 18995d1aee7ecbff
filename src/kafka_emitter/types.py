from dataclasses import dataclass
from typing import Iterator, Optional, Tuple, Union, assert_never

from .chains import named_chain


@dataclass(frozen=True)
class BlockNumHash:
    number: int
    hash: bytes

    def __str__(self) -> str:
        return f"{self.number} (0x{self.hash.hex()})"


@dataclass(frozen=True)
class ChainSpec:
    chain_id: int
    genesis_hash: bytes

    @property
    def name(self) -> Optional[str]:
        return named_chain(self.chain_id)


@dataclass(frozen=True)
class Header:
    hash: bytes
    parent_hash: bytes
    beneficiary: bytes
    state_root: bytes
    transactions_root: bytes
    receipts_root: bytes
    number: int
    gas_used: int
    gas_limit: int
    extra_data: bytes
    logs_bloom: bytes
    timestamp: int
    difficulty: int
    nonce: bytes
    # post-merge nodes report prev_randao here; None means the chain doesn't supply one
    mix_hash: Optional[bytes] = None
    base_fee_per_gas: Optional[int] = None
    withdrawals_root: Optional[bytes] = None


@dataclass(frozen=True)
class Transaction:
    hash: bytes
    sender: bytes
    nonce: int
    to: Optional[bytes]
    value: int
    input: bytes
    gas_limit: int
    max_fee_per_gas: int
    tx_type: int = 0
    gas_price: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None


@dataclass(frozen=True)
class Log:
    address: bytes
    topics: Tuple[bytes, ...]
    data: bytes


@dataclass(frozen=True)
class Receipt:
    success: bool
    cumulative_gas_used: int
    logs: Tuple[Log, ...] = ()


@dataclass(frozen=True)
class Block:
    header: Header
    transactions: Tuple[Transaction, ...] = ()
    size: int = 0

    @property
    def hash(self) -> bytes:
        return self.header.hash

    @property
    def number(self) -> int:
        return self.header.number

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)

    def num_hash(self) -> BlockNumHash:
        return BlockNumHash(number=self.header.number, hash=self.header.hash)


@dataclass(frozen=True)
class Segment:
    """Contiguous run of finalized blocks with the receipts of each block"""

    blocks: Tuple[Block, ...]
    receipts: Tuple[Tuple[Receipt, ...], ...]

    def __post_init__(self):
        if len(self.blocks) == 0:
            raise ValueError("segment must contain at least one block")

        if len(self.receipts) != len(self.blocks):
            raise ValueError(
                f"segment has {len(self.blocks)} blocks but {len(self.receipts)} receipt lists"
            )

        for prev, block in zip(self.blocks, self.blocks[1:]):
            if block.number != prev.number + 1:
                raise ValueError(
                    f"segment blocks are not contiguous: {prev.number} -> {block.number}"
                )

    def first(self) -> Block:
        return self.blocks[0]

    def tip(self) -> Block:
        return self.blocks[-1]

    def range(self) -> range:
        return range(self.first().number, self.tip().number + 1)

    def range_str(self) -> str:
        return f"{self.first().number}..={self.tip().number}"

    def blocks_and_receipts(self) -> Iterator[Tuple[Block, Tuple[Receipt, ...]]]:
        return zip(self.blocks, self.receipts)


@dataclass(frozen=True)
class Committed:
    new: Segment


@dataclass(frozen=True)
class Reorged:
    old: Segment
    new: Segment


@dataclass(frozen=True)
class Reverted:
    old: Segment


SegmentEvent = Union[Committed, Reorged, Reverted]


def committed_chain(event: SegmentEvent) -> Optional[Segment]:
    """Segment that is canonical after the event, if any"""
    match event:
        case Committed(new=new):
            return new
        case Reorged(new=new):
            return new
        case Reverted():
            return None
        case _:
            assert_never(event)


__all__ = [
    "BlockNumHash",
    "ChainSpec",
    "Header",
    "Transaction",
    "Log",
    "Receipt",
    "Block",
    "Segment",
    "Committed",
    "Reorged",
    "Reverted",
    "SegmentEvent",
    "committed_chain",
]
