"""Kafka topic lifecycle with convergence waiting on create and update."""

from __future__ import annotations

import threading
from dataclasses import dataclass

import structlog

from aiven_provisioner.client.aiven import AivenClient, KafkaTopic
from aiven_provisioner.config.models import KafkaTopicSpec
from aiven_provisioner.convergence.errors import WaitError
from aiven_provisioner.convergence.probe import (
    ErrorPredicate,
    Probe,
    build_probe,
    topic_not_found_matcher,
)
from aiven_provisioner.convergence.states import WaitConfiguration, WaitResult
from aiven_provisioner.convergence.waiter import ConvergenceWaiter
from aiven_provisioner.resources.base import ResourceError

logger = structlog.get_logger()


def kafka_topic_id(project: str, service_name: str, topic: str) -> str:
    """Build a topic resource ID: ``<project>/<service_name>/<topic>``."""
    return f"{project}/{service_name}/{topic}"


def parse_kafka_topic_id(resource_id: str) -> tuple[str, str, str]:
    """Split a topic resource ID into ``(project, service_name, topic)``."""
    parts = resource_id.split("/")
    if len(parts) != 3 or not all(parts):
        msg = (
            f"Invalid kafka topic ID '{resource_id}', "
            "expected '<project>/<service_name>/<topic>'"
        )
        raise ValueError(msg)
    return parts[0], parts[1], parts[2]


@dataclass
class KafkaTopicState:
    """Kafka topic as read back from the API, shaped like ``KafkaTopicSpec``."""

    project: str
    service_name: str
    topic: str
    state: str
    partitions: int
    replication: int
    retention_bytes: int
    retention_hours: int
    minimum_in_sync_replicas: int
    cleanup_policy: str


class KafkaTopicChangeWaiter:
    """Waits for a Kafka topic to become ACTIVE after a create or update.

    Newly created topics answer "Topic '<name>' does not exist" for a short
    while; that exact error counts as CONFIGURING.
    """

    def __init__(
        self,
        client: AivenClient,
        project: str,
        service_name: str,
        topic: str,
        *,
        config: WaitConfiguration | None = None,
        is_benign: ErrorPredicate | None = None,
    ) -> None:
        self.client = client
        self.project = project
        self.service_name = service_name
        self.topic = topic
        self._config = config or WaitConfiguration.topic_defaults()
        self._is_benign = is_benign or topic_not_found_matcher(topic)

    def refresh(self) -> Probe:
        return build_probe(
            lambda: self.client.get_kafka_topic(
                self.project, self.service_name, self.topic
            ),
            state_of=lambda t: t.state,
            is_benign=self._is_benign,
        )

    def conf(self) -> WaitConfiguration:
        return self._config

    def wait(self, cancel: threading.Event | None = None) -> WaitResult:
        waiter = ConvergenceWaiter(
            self.refresh(),
            self.conf(),
            description=(
                f"kafka topic {kafka_topic_id(self.project, self.service_name, self.topic)}"
            ),
        )
        return waiter.wait(cancel)


class KafkaTopicResource:
    """Create, read, update and delete Kafka topics on an Aiven service."""

    def __init__(
        self,
        client: AivenClient,
        wait_config: WaitConfiguration | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> None:
        self._client = client
        self._wait_config = wait_config or WaitConfiguration.topic_defaults()
        self._cancel = cancel

    def _waiter(self, spec: KafkaTopicSpec) -> KafkaTopicChangeWaiter:
        return KafkaTopicChangeWaiter(
            self._client,
            spec.project,
            spec.service_name,
            spec.topic,
            config=self._wait_config,
        )

    def _wait(self, spec: KafkaTopicSpec) -> WaitResult:
        try:
            return self._waiter(spec).wait(self._cancel)
        except WaitError as exc:
            target = ", ".join(self._wait_config.target_states)
            msg = f"Error waiting for Aiven Kafka topic to be {target}: {exc}"
            raise ResourceError(msg) from exc

    def create(self, spec: KafkaTopicSpec) -> tuple[str, KafkaTopicState]:
        try:
            self._client.create_kafka_topic(spec)
        except Exception as exc:
            msg = f"Error creating Aiven Kafka topic {spec.topic}: {exc}"
            raise ResourceError(msg) from exc
        self._wait(spec)

        resource_id = kafka_topic_id(spec.project, spec.service_name, spec.topic)
        logger.info("kafka_topic.created", id=resource_id)
        return resource_id, self.read(resource_id)

    def read(self, resource_id: str) -> KafkaTopicState:
        project, service_name, topic_name = parse_kafka_topic_id(resource_id)
        logger.debug("kafka_topic.read", id=resource_id)
        topic = self._client.get_kafka_topic(project, service_name, topic_name)
        return self._to_state(project, service_name, topic)

    def update(self, spec: KafkaTopicSpec) -> KafkaTopicState:
        try:
            self._client.update_kafka_topic(spec)
        except Exception as exc:
            msg = f"Error updating Aiven Kafka topic {spec.topic}: {exc}"
            raise ResourceError(msg) from exc
        self._wait(spec)
        resource_id = kafka_topic_id(spec.project, spec.service_name, spec.topic)
        logger.info("kafka_topic.updated", id=resource_id)
        return self.read(resource_id)

    def delete(self, resource_id: str) -> None:
        """Delete by ID; a missing topic surfaces as a 404 ``AivenAPIError``."""
        project, service_name, topic_name = parse_kafka_topic_id(resource_id)
        self._client.delete_kafka_topic(project, service_name, topic_name)

    @staticmethod
    def _to_state(project: str, service_name: str, topic: KafkaTopic) -> KafkaTopicState:
        return KafkaTopicState(
            project=project,
            service_name=service_name,
            topic=topic.topic_name,
            state=topic.state,
            partitions=len(topic.partitions),
            replication=topic.replication,
            retention_bytes=topic.retention_bytes,
            retention_hours=topic.retention_hours,
            minimum_in_sync_replicas=topic.minimum_in_sync_replicas,
            cleanup_policy=topic.cleanup_policy,
        )
