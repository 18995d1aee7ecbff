import json
import logging
from dataclasses import asdict, dataclass
from typing import List, Optional, Sequence, Tuple, Union

from .errors import TransformError
from .types import Block, Receipt

logger = logging.getLogger(__name__)

ZERO_HASH = bytes(32)
ZERO_ADDRESS = bytes(20)

MAX_LOG_TOPICS = 4


def hex_encode(data: bytes) -> str:
    return "0x" + data.hex()


def hex_encode_opt(data: Optional[bytes]) -> Optional[str]:
    if data is None:
        return None
    return hex_encode(data)


@dataclass(frozen=True)
class EmitterBlock:
    block_hash: str
    parent_hash: str
    author: str
    state_root: str
    transactions_root: str
    receipts_root: str
    block_number: int
    gas_used: int
    gas_limit: int
    extra_data: str
    logs_bloom: str
    timestamp: int
    difficulty: int
    size: int
    mix_hash: str
    nonce: str
    base_fee_per_gas: int
    withdrawals_root: Optional[str]
    chain_id: int


@dataclass(frozen=True)
class EmitterTransaction:
    block_number: int
    transaction_index: int
    transaction_hash: str
    nonce: int
    from_address: str
    to_address: str
    value_string: str
    input: str
    gas_limit: int
    gas_used: int
    gas_price: Optional[int]
    transaction_type: int
    max_priority_fee_per_gas: Optional[int]
    max_fee_per_gas: int
    success: bool
    chain_id: int
    block_hash: str
    timestamp: int


@dataclass(frozen=True)
class EmitterLog:
    block_number: int
    transaction_index: int
    log_index: int
    transaction_hash: str
    address: str
    topic0: str
    topic1: str
    topic2: str
    topic3: str
    data: str
    chain_id: int
    block_hash: str


EmitterRecord = Union[EmitterBlock, EmitterTransaction, EmitterLog]


def to_payload(record: EmitterRecord) -> bytes:
    return json.dumps(asdict(record)).encode("utf-8")


def process_committed_block(block: Block, chain_id: int) -> EmitterBlock:
    header = block.header

    if header.mix_hash is None:
        raise TransformError(f"block {header.number} has no mix hash")

    return EmitterBlock(
        block_hash=hex_encode(header.hash),
        parent_hash=hex_encode(header.parent_hash),
        author=hex_encode(header.beneficiary),
        state_root=hex_encode(header.state_root),
        transactions_root=hex_encode(header.transactions_root),
        receipts_root=hex_encode(header.receipts_root),
        block_number=header.number,
        gas_used=header.gas_used,
        gas_limit=header.gas_limit,
        extra_data=hex_encode(header.extra_data),
        logs_bloom=hex_encode(header.logs_bloom),
        timestamp=header.timestamp,
        difficulty=header.difficulty,
        size=block.size,
        mix_hash=hex_encode(header.mix_hash),
        nonce=hex_encode(header.nonce),
        # pre-London blocks have no base fee
        base_fee_per_gas=header.base_fee_per_gas or 0,
        withdrawals_root=hex_encode_opt(header.withdrawals_root),
        chain_id=chain_id,
    )


def process_transactions_in_block(
    block: Block, receipts: Sequence[Receipt], chain_id: int
) -> List[Tuple[EmitterTransaction, List[EmitterLog]]]:
    if len(receipts) != block.transaction_count:
        raise TransformError(
            f"block {block.number} has {block.transaction_count} transactions but {len(receipts)} receipts"
        )

    block_hash = hex_encode(block.hash)
    out = []
    prev_cumulative_gas_used = 0

    for tx_index, (transaction, receipt) in enumerate(
        zip(block.transactions, receipts)
    ):
        tx_hash = hex_encode(transaction.hash)

        emitter_logs = []
        for log_index, log in enumerate(receipt.logs):
            if len(log.topics) > MAX_LOG_TOPICS:
                raise TransformError(
                    f"log {log_index} of transaction {tx_hash} has {len(log.topics)} topics"
                )

            topics = list(log.topics) + [ZERO_HASH] * (MAX_LOG_TOPICS - len(log.topics))

            emitter_logs.append(
                EmitterLog(
                    block_number=block.number,
                    transaction_index=tx_index,
                    log_index=log_index,
                    transaction_hash=tx_hash,
                    address=hex_encode(log.address),
                    topic0=hex_encode(topics[0]),
                    topic1=hex_encode(topics[1]),
                    topic2=hex_encode(topics[2]),
                    topic3=hex_encode(topics[3]),
                    data=hex_encode(log.data),
                    chain_id=chain_id,
                    block_hash=block_hash,
                )
            )

        emitter_transaction = EmitterTransaction(
            block_number=block.number,
            transaction_index=tx_index,
            transaction_hash=tx_hash,
            nonce=transaction.nonce,
            from_address=hex_encode(transaction.sender),
            # contract creations have no recipient
            to_address=hex_encode(
                transaction.to if transaction.to is not None else ZERO_ADDRESS
            ),
            value_string=str(transaction.value),
            input=hex_encode(transaction.input),
            gas_limit=transaction.gas_limit,
            gas_used=receipt.cumulative_gas_used - prev_cumulative_gas_used,
            gas_price=transaction.gas_price,
            transaction_type=transaction.tx_type,
            max_priority_fee_per_gas=transaction.max_priority_fee_per_gas,
            max_fee_per_gas=transaction.max_fee_per_gas,
            success=receipt.success,
            chain_id=chain_id,
            block_hash=block_hash,
            timestamp=block.header.timestamp,
        )
        prev_cumulative_gas_used = receipt.cumulative_gas_used

        out.append((emitter_transaction, emitter_logs))

    return out


def transform(
    block: Block, receipts: Sequence[Receipt], chain_id: int
) -> Tuple[EmitterBlock, List[Tuple[EmitterTransaction, List[EmitterLog]]]]:
    """
    Map a finalized block and its receipts to wire records.

    Receipt i must belong to transaction i. Pure function of its inputs.

    Raises:
        TransformError: receipt count doesn't match the transaction count, the
            block has no mix hash or a log carries more than 4 topics.
    """
    emitter_block = process_committed_block(block, chain_id)
    emitter_transactions = process_transactions_in_block(block, receipts, chain_id)

    return emitter_block, emitter_transactions


__all__ = [
    "ZERO_HASH",
    "ZERO_ADDRESS",
    "EmitterBlock",
    "EmitterTransaction",
    "EmitterLog",
    "EmitterRecord",
    "hex_encode",
    "to_payload",
    "process_committed_block",
    "process_transactions_in_block",
    "transform",
]
