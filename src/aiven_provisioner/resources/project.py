"""Aiven project lifecycle."""

from __future__ import annotations

import structlog

from aiven_provisioner.client.aiven import AivenClient, Project
from aiven_provisioner.config.models import ProjectSpec

logger = structlog.get_logger()


def project_id(name: str) -> str:
    return f"{name}!"


def parse_project_id(resource_id: str) -> str:
    """Accept either ``<name>!`` or a bare project name."""
    name = resource_id.removesuffix("!")
    if not name:
        msg = f"Invalid project ID '{resource_id}'"
        raise ValueError(msg)
    return name


class ProjectResource:
    """Create, read, update and delete Aiven projects.

    Projects are usable as soon as the API accepts them, so nothing waits.
    """

    def __init__(self, client: AivenClient) -> None:
        self._client = client

    def create(self, spec: ProjectSpec) -> tuple[str, Project]:
        project = self._client.create_project(spec)
        return project_id(project.project_name), project

    def read(self, resource_id: str) -> Project:
        return self._client.get_project(parse_project_id(resource_id))

    def update(self, spec: ProjectSpec) -> Project:
        return self._client.update_project(spec.project, spec)

    def delete(self, resource_id: str) -> None:
        self._client.delete_project(parse_project_id(resource_id))
