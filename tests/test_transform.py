import json
from dataclasses import replace

import pytest

from chain_data import make_block, make_hash, make_log, make_receipts, make_transaction
from kafka_emitter import transform as tf
from kafka_emitter.errors import TransformError
from kafka_emitter.types import Block, Receipt

ZERO_TOPIC = "0x" + "00" * 32


def test_block_record_fields():
    block = make_block(100, transaction_count=1)

    record = tf.process_committed_block(block, chain_id=1)

    assert record.block_number == 100
    assert record.block_hash == "0x" + make_hash(100).hex()
    assert record.parent_hash == "0x" + make_hash(99).hex()
    assert record.state_root == "0x" + block.header.state_root.hex()
    assert record.state_root != record.transactions_root
    assert record.author == "0x" + "00" * 18 + "0fee"
    assert record.nonce == "0x" + "00" * 8
    assert record.extra_data == "0x" + b"emitter".hex()
    assert record.size == 1024
    assert record.base_fee_per_gas == 7
    assert record.chain_id == 1


def test_block_record_optional_defaults():
    block = make_block(5)
    header = replace(block.header, base_fee_per_gas=None, withdrawals_root=None)

    record = tf.process_committed_block(Block(header=header), chain_id=1)

    assert record.base_fee_per_gas == 0
    assert record.withdrawals_root is None


def test_missing_mix_hash_fails_closed():
    block = make_block(5, mix_hash=None)

    with pytest.raises(TransformError, match="mix hash"):
        tf.process_committed_block(block, chain_id=1)


def test_counts_match_receipts():
    block = make_block(7, transaction_count=3)
    receipts = make_receipts([2, 0, 3])

    emitter_block, emitter_transactions = tf.transform(block, receipts, chain_id=1)

    assert emitter_block.block_number == 7
    assert len(emitter_transactions) == block.transaction_count
    assert sum(len(logs) for _, logs in emitter_transactions) == 5


def test_empty_block():
    emitter_block, emitter_transactions = tf.transform(make_block(3), (), chain_id=1)

    assert emitter_block.block_number == 3
    assert emitter_transactions == []


def test_receipt_count_mismatch():
    block = make_block(7, transaction_count=2)

    with pytest.raises(TransformError, match="2 transactions but 1 receipts"):
        tf.transform(block, make_receipts([0]), chain_id=1)


def test_transaction_record():
    block = make_block(100, transaction_count=2)
    receipts = (
        Receipt(success=True, cumulative_gas_used=21000),
        Receipt(success=False, cumulative_gas_used=71000),
    )

    _, emitter_transactions = tf.transform(block, receipts, chain_id=1)
    (tx0, _), (tx1, _) = emitter_transactions

    assert [tx0.transaction_index, tx1.transaction_index] == [0, 1]
    assert tx0.transaction_hash == "0x" + block.transactions[0].hash.hex()
    assert tx0.block_hash == "0x" + block.hash.hex()
    assert tx0.timestamp == block.header.timestamp
    assert tx0.value_string == str(10**18)
    assert tx0.success is True
    assert tx1.success is False
    assert tx0.gas_used == 21000
    assert tx1.gas_used == 50000
    assert tx0.max_fee_per_gas == 30 * 10**9
    assert tx0.gas_price is None
    assert tx0.transaction_type == 2


def test_value_beyond_64_bits_is_decimal_string():
    value = 2**200 + 1
    block = make_block(1)
    block = Block(
        header=block.header,
        transactions=(make_transaction(0, block_number=1, value=value),),
    )

    _, [(tx, _)] = tf.transform(block, make_receipts([0]), chain_id=1)

    assert tx.value_string == str(value)
    assert json.loads(tf.to_payload(tx))["value_string"] == str(value)


def test_contract_creation_has_zero_recipient():
    block = make_block(1)
    block = Block(
        header=block.header,
        transactions=(make_transaction(0, block_number=1, to=None),),
    )

    _, [(tx, _)] = tf.transform(block, make_receipts([0]), chain_id=1)

    assert tx.to_address == "0x" + "00" * 20


def test_missing_topics_default_to_zero():
    block = make_block(9, transaction_count=1)
    receipts = (
        Receipt(success=True, cumulative_gas_used=21000, logs=(make_log(topic_count=1),)),
    )

    _, [(_, [log])] = tf.transform(block, receipts, chain_id=1)

    assert log.topic0 == "0x" + make_hash(1, salt=2).hex()
    assert log.topic1 == ZERO_TOPIC
    assert log.topic2 == ZERO_TOPIC
    assert log.topic3 == ZERO_TOPIC

    payload = json.loads(tf.to_payload(log))
    assert {"topic0", "topic1", "topic2", "topic3"} <= payload.keys()


def test_log_without_topics():
    block = make_block(9, transaction_count=1)
    receipts = (
        Receipt(success=True, cumulative_gas_used=21000, logs=(make_log(topic_count=0),)),
    )

    _, [(_, [log])] = tf.transform(block, receipts, chain_id=1)

    assert [log.topic0, log.topic1, log.topic2, log.topic3] == [ZERO_TOPIC] * 4


def test_too_many_topics():
    block = make_block(9, transaction_count=1)
    receipts = (
        Receipt(success=True, cumulative_gas_used=21000, logs=(make_log(topic_count=5),)),
    )

    with pytest.raises(TransformError, match="5 topics"):
        tf.transform(block, receipts, chain_id=1)


def test_log_index_is_per_transaction():
    block = make_block(12, transaction_count=2)
    receipts = make_receipts([2, 3])

    _, emitter_transactions = tf.transform(block, receipts, chain_id=1)

    for tx_index, (tx, logs) in enumerate(emitter_transactions):
        assert [log.log_index for log in logs] == list(range(len(logs)))
        assert all(log.transaction_index == tx_index for log in logs)
        assert all(log.transaction_hash == tx.transaction_hash for log in logs)
        assert all(log.block_number == 12 for log in logs)


def test_transform_is_deterministic():
    block = make_block(42, transaction_count=3)
    receipts = make_receipts([1, 2, 0])

    assert tf.transform(block, receipts, 1) == tf.transform(block, receipts, 1)


def test_payload_schema():
    block = make_block(42, transaction_count=1)
    emitter_block, [(tx, [log])] = tf.transform(block, make_receipts([1]), chain_id=10)

    assert set(json.loads(tf.to_payload(emitter_block))) == {
        "block_hash", "parent_hash", "author", "state_root", "transactions_root",
        "receipts_root", "block_number", "gas_used", "gas_limit", "extra_data",
        "logs_bloom", "timestamp", "difficulty", "size", "mix_hash", "nonce",
        "base_fee_per_gas", "withdrawals_root", "chain_id",
    }
    assert set(json.loads(tf.to_payload(tx))) == {
        "block_number", "transaction_index", "transaction_hash", "nonce",
        "from_address", "to_address", "value_string", "input", "gas_limit",
        "gas_used", "gas_price", "transaction_type", "max_priority_fee_per_gas",
        "max_fee_per_gas", "success", "chain_id", "block_hash", "timestamp",
    }
    assert set(json.loads(tf.to_payload(log))) == {
        "block_number", "transaction_index", "log_index", "transaction_hash",
        "address", "topic0", "topic1", "topic2", "topic3", "data", "chain_id",
        "block_hash",
    }
    assert json.loads(tf.to_payload(log))["chain_id"] == 10
