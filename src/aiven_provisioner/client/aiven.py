"""Synchronous REST wrapper for the Aiven API (projects and Kafka topics)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from aiven_provisioner.config.models import AivenConfig, KafkaTopicSpec, ProjectSpec

logger = structlog.get_logger()


class AivenAPIError(Exception):
    """Raised when an Aiven API call returns a non-2xx response.

    ``str(exc)`` is the API's own message, so callers can match on it.
    """

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


@dataclass
class KafkaTopic:
    topic_name: str
    state: str
    partitions: list[dict[str, Any]] = field(default_factory=list)
    replication: int = 0
    retention_bytes: int = -1
    retention_hours: int = -1
    minimum_in_sync_replicas: int = 1
    cleanup_policy: str = "delete"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> KafkaTopic:
        return cls(
            topic_name=data["topic_name"],
            state=data.get("state", ""),
            partitions=list(data.get("partitions") or []),
            replication=data.get("replication", 0),
            retention_bytes=data.get("retention_bytes", -1),
            retention_hours=data.get("retention_hours", -1),
            minimum_in_sync_replicas=data.get("min_insync_replicas", 1),
            cleanup_policy=data.get("cleanup_policy", "delete"),
        )


@dataclass
class Project:
    project_name: str
    default_cloud: str | None = None
    card_id: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Project:
        return cls(
            project_name=data["project_name"],
            default_cloud=data.get("default_cloud"),
            card_id=data.get("card_id"),
        )


def _error_message(resp: httpx.Response) -> str:
    """Pull the human-readable message out of an Aiven error body."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        if body.get("message"):
            return str(body["message"])
        errors = body.get("errors") or []
        if errors and isinstance(errors[0], dict) and errors[0].get("message"):
            return str(errors[0]["message"])
    return resp.text or f"HTTP {resp.status_code}"


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


class AivenClient:
    """Thin sync wrapper around the Aiven REST API."""

    def __init__(
        self,
        config: AivenConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config or AivenConfig()
        headers = {"Content-Type": "application/json"}
        token = self._config.token.get_secret_value()
        if token:
            headers["Authorization"] = f"aivenv1 {token}"
        self._client = httpx.Client(
            base_url=self._config.api_url,
            headers=headers,
            timeout=httpx.Timeout(self._config.request_timeout_seconds),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> AivenClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _request(
        self, method: str, path: str, *, json: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        resp = self._client.request(method, path, json=json)
        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.debug(
                "aiven.request_failed",
                method=method,
                path=path,
                status=resp.status_code,
                error=message,
            )
            raise AivenAPIError(resp.status_code, message)
        if not resp.content:
            return {}
        return resp.json()  # type: ignore[no-any-return]

    # -- Health ----------------------------------------------------------------

    def verify_token(self) -> dict[str, Any]:
        """Check the API is reachable and the token is accepted."""

        @retry(
            retry=retry_if_exception_type(httpx.TransportError),
            stop=stop_after_attempt(self._config.connect_retry_attempts),
            wait=wait_exponential(multiplier=1, max=10),
            reraise=True,
        )
        def _me() -> dict[str, Any]:
            return self._request("GET", "/v1/me")

        data = _me()
        logger.info("aiven.authenticated", url=self._config.api_url)
        return data.get("user", data)

    # -- Projects --------------------------------------------------------------

    def create_project(self, spec: ProjectSpec) -> Project:
        body = _drop_none(
            {"project": spec.project, "card_id": spec.card_id, "cloud": spec.cloud}
        )
        data = self._request("POST", "/v1/project", json=body)
        logger.info("project.created", project=spec.project)
        return Project.from_api(data["project"])

    def get_project(self, name: str) -> Project:
        data = self._request("GET", f"/v1/project/{name}")
        return Project.from_api(data["project"])

    def update_project(self, name: str, spec: ProjectSpec) -> Project:
        body = _drop_none({"card_id": spec.card_id, "cloud": spec.cloud})
        data = self._request("PUT", f"/v1/project/{name}", json=body)
        logger.info("project.updated", project=name)
        return Project.from_api(data["project"])

    def delete_project(self, name: str) -> None:
        self._request("DELETE", f"/v1/project/{name}")
        logger.info("project.deleted", project=name)

    # -- Kafka topics ----------------------------------------------------------

    @staticmethod
    def _topics_path(project: str, service_name: str) -> str:
        return f"/v1/project/{project}/service/{service_name}/topic"

    def create_kafka_topic(self, spec: KafkaTopicSpec) -> None:
        body = {
            "topic_name": spec.topic,
            "partitions": spec.partitions,
            "replication": spec.replication,
            "retention_bytes": spec.retention_bytes,
            "retention_hours": spec.retention_hours,
            "min_insync_replicas": spec.minimum_in_sync_replicas,
            "cleanup_policy": spec.cleanup_policy.value,
        }
        self._request(
            "POST", self._topics_path(spec.project, spec.service_name), json=body
        )
        logger.info(
            "kafka_topic.create_requested",
            project=spec.project,
            service=spec.service_name,
            topic=spec.topic,
        )

    def get_kafka_topic(self, project: str, service_name: str, topic: str) -> KafkaTopic:
        data = self._request(
            "GET", f"{self._topics_path(project, service_name)}/{topic}"
        )
        return KafkaTopic.from_api(data["topic"])

    def update_kafka_topic(self, spec: KafkaTopicSpec) -> None:
        # Replication and cleanup policy cannot be changed after creation.
        body = {
            "partitions": spec.partitions,
            "retention_bytes": spec.retention_bytes,
            "retention_hours": spec.retention_hours,
            "min_insync_replicas": spec.minimum_in_sync_replicas,
        }
        self._request(
            "PUT",
            f"{self._topics_path(spec.project, spec.service_name)}/{spec.topic}",
            json=body,
        )
        logger.info(
            "kafka_topic.update_requested",
            project=spec.project,
            service=spec.service_name,
            topic=spec.topic,
        )

    def delete_kafka_topic(self, project: str, service_name: str, topic: str) -> None:
        self._request("DELETE", f"{self._topics_path(project, service_name)}/{topic}")
        logger.info(
            "kafka_topic.deleted", project=project, service=service_name, topic=topic
        )
