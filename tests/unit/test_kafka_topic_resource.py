"""Unit tests for the Kafka topic resource and its change waiter."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from aiven_provisioner.client.aiven import AivenAPIError, AivenClient, KafkaTopic
from aiven_provisioner.config.models import KafkaTopicSpec
from aiven_provisioner.convergence.errors import (
    FatalProbeError,
    UnexpectedStateError,
    WaitCancelledError,
    WaitTimeoutError,
)
from aiven_provisioner.convergence.states import WaitConfiguration
from aiven_provisioner.resources.base import Resource, ResourceError
from aiven_provisioner.resources.kafka_topic import (
    KafkaTopicChangeWaiter,
    KafkaTopicResource,
    kafka_topic_id,
    parse_kafka_topic_id,
)

FAST = WaitConfiguration(initial_delay=0.0, poll_interval=0.0, timeout=1.0)


def _spec(**overrides) -> KafkaTopicSpec:
    params = {
        "project": "proj",
        "service_name": "kafka1",
        "topic": "orders",
        "partitions": 3,
        "replication": 2,
    }
    params.update(overrides)
    return KafkaTopicSpec(**params)


def _topic(state: str = "ACTIVE", partitions: int = 3) -> KafkaTopic:
    return KafkaTopic(
        topic_name="orders",
        state=state,
        partitions=[{"partition": i} for i in range(partitions)],
        replication=2,
        retention_bytes=-1,
        retention_hours=72,
        minimum_in_sync_replicas=1,
        cleanup_policy="delete",
    )


def _client(*get_results) -> MagicMock:
    client = MagicMock(spec=AivenClient)
    client.get_kafka_topic.side_effect = list(get_results)
    return client


class TestTopicId:
    def test_round_trip(self):
        rid = kafka_topic_id("proj", "kafka1", "orders")
        assert rid == "proj/kafka1/orders"
        assert parse_kafka_topic_id(rid) == ("proj", "kafka1", "orders")

    @pytest.mark.parametrize("bad", ["proj/kafka1", "a/b/c/d", "proj//orders", ""])
    def test_invalid_ids(self, bad: str):
        with pytest.raises(ValueError, match="Invalid kafka topic ID"):
            parse_kafka_topic_id(bad)


class TestKafkaTopicChangeWaiter:
    def test_default_conf(self):
        waiter = KafkaTopicChangeWaiter(MagicMock(), "proj", "kafka1", "orders")
        conf = waiter.conf()
        assert conf.pending_states == ("CONFIGURING",)
        assert conf.target_states == ("ACTIVE",)
        assert conf.initial_delay == 10.0
        assert conf.poll_interval == 2.0
        assert conf.timeout == 600.0

    def test_waits_through_not_found(self):
        client = _client(
            AivenAPIError(404, "Topic 'orders' does not exist"),
            _topic("CONFIGURING"),
            _topic("ACTIVE"),
        )
        waiter = KafkaTopicChangeWaiter(client, "proj", "kafka1", "orders", config=FAST)
        result = waiter.wait()
        assert result.state == "ACTIVE"
        assert client.get_kafka_topic.call_count == 3
        client.get_kafka_topic.assert_called_with("proj", "kafka1", "orders")

    def test_not_found_for_other_topic_is_fatal(self):
        client = _client(AivenAPIError(404, "Topic 'other' does not exist"))
        waiter = KafkaTopicChangeWaiter(client, "proj", "kafka1", "orders", config=FAST)
        with pytest.raises(FatalProbeError):
            waiter.wait()
        assert client.get_kafka_topic.call_count == 1

    def test_injected_predicate_replaces_exact_match(self):
        client = _client(AivenAPIError(404, "not yet"), _topic("ACTIVE"))
        waiter = KafkaTopicChangeWaiter(
            client,
            "proj",
            "kafka1",
            "orders",
            config=FAST,
            is_benign=lambda exc: getattr(exc, "status_code", None) == 404,
        )
        assert waiter.wait().state == "ACTIVE"

    def test_cancel_event_is_honoured(self):
        cancel = threading.Event()
        cancel.set()
        client = _client(_topic("ACTIVE"))
        waiter = KafkaTopicChangeWaiter(
            client,
            "proj",
            "kafka1",
            "orders",
            config=WaitConfiguration(initial_delay=5.0, timeout=10.0),
        )
        with pytest.raises(WaitCancelledError):
            waiter.wait(cancel)
        client.get_kafka_topic.assert_not_called()


class TestKafkaTopicResource:
    def test_satisfies_protocol(self):
        assert isinstance(KafkaTopicResource(MagicMock()), Resource)

    def test_create_waits_then_reads(self):
        client = _client(
            AivenAPIError(404, "Topic 'orders' does not exist"),
            _topic("ACTIVE"),
            _topic("ACTIVE"),
        )
        resource = KafkaTopicResource(client, FAST)
        rid, state = resource.create(_spec())
        client.create_kafka_topic.assert_called_once()
        assert rid == "proj/kafka1/orders"
        assert state.state == "ACTIVE"
        assert state.partitions == 3
        assert state.project == "proj"
        assert state.service_name == "kafka1"

    def test_create_api_failure_wrapped(self):
        client = _client()
        client.create_kafka_topic.side_effect = AivenAPIError(409, "Topic exists")
        with pytest.raises(ResourceError, match="Topic exists") as exc_info:
            KafkaTopicResource(client, FAST).create(_spec())
        assert isinstance(exc_info.value.__cause__, AivenAPIError)
        client.get_kafka_topic.assert_not_called()

    def test_create_wait_failure_wrapped(self):
        client = _client(AivenAPIError(500, "Internal error"))
        with pytest.raises(
            ResourceError, match="Error waiting for Aiven Kafka topic to be ACTIVE"
        ) as exc_info:
            KafkaTopicResource(client, FAST).create(_spec())
        assert isinstance(exc_info.value.__cause__, FatalProbeError)

    def test_create_unexpected_state_wrapped(self):
        client = _client(_topic("DELETING"))
        with pytest.raises(ResourceError) as exc_info:
            KafkaTopicResource(client, FAST).create(_spec())
        assert isinstance(exc_info.value.__cause__, UnexpectedStateError)

    def test_create_timeout_wrapped(self):
        client = MagicMock(spec=AivenClient)
        client.get_kafka_topic.return_value = _topic("CONFIGURING")
        config = WaitConfiguration(initial_delay=0.0, poll_interval=0.01, timeout=0.05)
        with pytest.raises(ResourceError) as exc_info:
            KafkaTopicResource(client, config).create(_spec())
        assert isinstance(exc_info.value.__cause__, WaitTimeoutError)

    def test_update_waits(self):
        client = _client(_topic("CONFIGURING"), _topic("ACTIVE"), _topic("ACTIVE", 6))
        state = KafkaTopicResource(client, FAST).update(_spec(partitions=6))
        client.update_kafka_topic.assert_called_once()
        assert state.partitions == 6
        assert client.get_kafka_topic.call_count == 3

    def test_read(self):
        client = _client(_topic("ACTIVE"))
        state = KafkaTopicResource(client, FAST).read("proj/kafka1/orders")
        assert state.topic == "orders"
        assert state.retention_hours == 72
        client.get_kafka_topic.assert_called_once_with("proj", "kafka1", "orders")

    def test_read_propagates_api_errors(self):
        client = _client(AivenAPIError(404, "Topic 'orders' does not exist"))
        with pytest.raises(AivenAPIError):
            KafkaTopicResource(client, FAST).read("proj/kafka1/orders")

    def test_delete(self):
        client = _client()
        KafkaTopicResource(client, FAST).delete("proj/kafka1/orders")
        client.delete_kafka_topic.assert_called_once_with("proj", "kafka1", "orders")

    def test_delete_missing_topic_propagates_404(self):
        client = _client()
        client.delete_kafka_topic.side_effect = AivenAPIError(
            404, "Topic 'orders' does not exist"
        )
        with pytest.raises(AivenAPIError) as exc_info:
            KafkaTopicResource(client, FAST).delete("proj/kafka1/orders")
        assert exc_info.value.status_code == 404

    def test_delete_rejects_malformed_id(self):
        client = _client()
        with pytest.raises(ValueError):
            KafkaTopicResource(client, FAST).delete("proj/orders")
        client.delete_kafka_topic.assert_not_called()
