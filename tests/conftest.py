import logging

import pytest

from chain_data import MAINNET, FakeBlockHashReader, RecordingPublisher


@pytest.fixture(autouse=True)
def configure_logging():
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    yield


@pytest.fixture
def chain():
    return MAINNET


@pytest.fixture
def publisher():
    return RecordingPublisher("1-mainnet")


@pytest.fixture
def block_hashes():
    return FakeBlockHashReader({0: MAINNET.genesis_hash})


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    # keep exported broker settings out of the tests
    monkeypatch.chdir(tmp_path)
    for name in ("AWS_REGION", "KAFKA_BROKER", "RPC_URL"):
        monkeypatch.delenv(name, raising=False)
