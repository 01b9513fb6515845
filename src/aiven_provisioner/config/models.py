"""Pydantic configuration models for the Aiven provisioner."""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Self

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

from aiven_provisioner.convergence.states import WaitConfiguration


class CleanupPolicy(StrEnum):
    """Kafka topic cleanup policies."""

    DELETE = "delete"
    COMPACT = "compact"


class AivenConfig(BaseModel):
    """Aiven REST API connection settings."""

    api_url: str = "https://api.aiven.io"
    token: SecretStr = SecretStr("")
    # Per-request timeout; independent of the waiter's overall budget.
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    connect_retry_attempts: int = Field(default=5, ge=1)


class WaiterConfig(BaseModel):
    """Tuning for the topic convergence waiter."""

    pending_states: list[str] = Field(default_factory=lambda: ["CONFIGURING"])
    target_states: list[str] = Field(default_factory=lambda: ["ACTIVE"])
    initial_delay_seconds: float = Field(default=10.0, ge=0)
    poll_interval_seconds: float = Field(default=2.0, ge=0)
    timeout_seconds: float = Field(default=600.0, gt=0)
    backoff_factor: float = Field(default=1.0, ge=1.0)
    max_poll_interval_seconds: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_states_and_budget(self) -> Self:
        """Reject settings the waiter itself would refuse.

        Field-named checks come first so messages point at the YAML keys;
        the rest is delegated to ``WaitConfiguration``.
        """
        overlap = set(self.pending_states) & set(self.target_states)
        if overlap:
            msg = f"pending_states and target_states overlap: {sorted(overlap)}"
            raise ValueError(msg)
        if not self.target_states:
            msg = "target_states must not be empty"
            raise ValueError(msg)
        if not self.pending_states:
            msg = "pending_states must not be empty"
            raise ValueError(msg)
        if self.timeout_seconds <= self.initial_delay_seconds:
            msg = "timeout_seconds must be greater than initial_delay_seconds"
            raise ValueError(msg)
        self.to_wait_configuration()
        return self

    def to_wait_configuration(self) -> WaitConfiguration:
        return WaitConfiguration(
            pending_states=tuple(self.pending_states),
            target_states=tuple(self.target_states),
            initial_delay=self.initial_delay_seconds,
            poll_interval=self.poll_interval_seconds,
            timeout=self.timeout_seconds,
            backoff_factor=self.backoff_factor,
            max_poll_interval=self.max_poll_interval_seconds,
        )


class ProviderConfig(BaseModel):
    """Top-level provider settings (API access, waiter, logging)."""

    aiven: AivenConfig = Field(default_factory=AivenConfig)
    waiter: WaiterConfig = Field(default_factory=WaiterConfig)
    log_level: str = "INFO"
    json_logs: bool = False

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            msg = f"Unknown log_level '{v}'"
            raise ValueError(msg)
        return level


_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+$")


def _check_name(value: str, what: str) -> str:
    # '/' would break the project/service/topic resource ID
    if not _NAME_PATTERN.match(value):
        msg = f"{what} '{value}' may only contain letters, digits, '.', '_' or '-'"
        raise ValueError(msg)
    return value


class KafkaTopicSpec(BaseModel):
    """Desired state of a Kafka topic on an Aiven Kafka service."""

    project: str
    service_name: str
    topic: str
    partitions: int = Field(ge=1)
    replication: int = Field(ge=1)
    retention_bytes: int = Field(default=-1, ge=-1)
    retention_hours: int = Field(default=72, ge=-1)
    minimum_in_sync_replicas: int = Field(default=1, ge=1)
    cleanup_policy: CleanupPolicy = CleanupPolicy.DELETE

    @field_validator("project", "service_name", "topic")
    @classmethod
    def validate_names(cls, v: str) -> str:
        return _check_name(v, "Name")


class ProjectSpec(BaseModel):
    """Desired state of an Aiven project."""

    project: str
    card_id: str | None = None
    cloud: str | None = None

    @field_validator("project")
    @classmethod
    def validate_project(cls, v: str) -> str:
        return _check_name(v, "Project")


class ResourcesFile(BaseModel):
    """A set of resources to apply or destroy together."""

    projects: list[ProjectSpec] = Field(default_factory=list)
    kafka_topics: list[KafkaTopicSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_topics(self) -> Self:
        seen: set[tuple[str, str, str]] = set()
        for t in self.kafka_topics:
            key = (t.project, t.service_name, t.topic)
            if key in seen:
                msg = f"Duplicate kafka topic '{'/'.join(key)}'"
                raise ValueError(msg)
            seen.add(key)
        return self
