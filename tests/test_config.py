import pytest
import yaml

from kafka_emitter import cli
from kafka_emitter.config import (
    ConsolePublisherConfig,
    KafkaPublisherConfig,
    PublisherKind,
    load_config,
    parse_config,
)


def write_config(tmp_path, raw):
    path = tmp_path / "emitter.yaml"
    path.write_text(yaml.safe_dump(raw))
    return str(path)


def test_defaults():
    config = load_config()

    assert config.publisher.kind == PublisherKind.KAFKA
    assert isinstance(config.publisher.config, KafkaPublisherConfig)
    assert config.publisher.config.bootstrap_servers == "localhost:9092"
    assert config.publisher.config.region == "us-east-1"
    assert config.topic_prefix is None
    assert config.start_block is None


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("AWS_REGION", "ap-south-1")
    monkeypatch.setenv("KAFKA_BROKER", "b-1.msk:9098")
    monkeypatch.setenv("RPC_URL", "http://node:8545")

    config = load_config()

    assert config.publisher.config.region == "ap-south-1"
    assert config.publisher.config.bootstrap_servers == "b-1.msk:9098"
    assert config.source.url == "http://node:8545"


def test_yaml_config(tmp_path):
    path = write_config(
        tmp_path,
        {
            "topic_prefix": "eth",
            "start_block": 100,
            "publisher": {
                "kind": "kafka",
                "config": {"bootstrap_servers": "b-2.msk:9098", "token_timeout_s": 5},
            },
            "source": {"url": "http://node:8545", "poll_interval_s": 1},
        },
    )

    config = load_config(path)

    assert config.topic_prefix == "eth"
    assert config.start_block == 100
    assert config.publisher.config.bootstrap_servers == "b-2.msk:9098"
    assert config.publisher.config.token_timeout_s == 5.0
    assert config.source.poll_interval_s == 1.0
    assert config.source.max_segment_blocks == 100


def test_console_publisher_config():
    config = parse_config({"publisher": {"kind": "console"}})

    assert config.publisher.kind == PublisherKind.CONSOLE
    assert isinstance(config.publisher.config, ConsolePublisherConfig)


def test_unknown_key_is_rejected(tmp_path):
    path = write_config(tmp_path, {"topic_prefx": "typo"})

    with pytest.raises(Exception):
        load_config(path)


def test_invalid_publisher_kind():
    with pytest.raises(ValueError):
        parse_config({"publisher": {"kind": "s3"}})


def test_cli_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("RPC_URL", "http://env-node:8545")
    path = write_config(tmp_path, {"topic_prefix": "from-file"})

    args = cli.parse_args(
        [
            "--config", path,
            "--publisher", "console",
            "--topic-prefix", "from-cli",
            "--start-block", "0",
            "--rpc-url", "http://cli-node:8545",
        ]
    )
    config = cli.build_config(args)

    assert config.publisher.kind == PublisherKind.CONSOLE
    assert config.topic_prefix == "from-cli"
    assert config.start_block == 0
    assert config.source.url == "http://cli-node:8545"


def test_cli_keeps_file_values(tmp_path):
    path = write_config(tmp_path, {"topic_prefix": "from-file", "start_block": 7})

    config = cli.build_config(cli.parse_args(["--config", path]))

    assert config.topic_prefix == "from-file"
    assert config.start_block == 7
    assert config.source.url == "http://localhost:8545"


def test_main_reports_fatal_errors(monkeypatch):
    async def failing_run(config):
        raise RuntimeError("node unreachable")

    monkeypatch.setattr(cli, "run", failing_run)

    assert cli.main(["--no-log-file", "--publisher", "console"]) == 1
