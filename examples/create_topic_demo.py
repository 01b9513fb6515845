#!/usr/bin/env python3
"""Runnable demo: create a Kafka topic on Aiven and wait for it to go ACTIVE.

Prerequisites:
    export AIVEN_TOKEN=...  AIVEN_PROJECT=...  AIVEN_KAFKA_SERVICE=...
    uv run python examples/create_topic_demo.py
"""

from __future__ import annotations

import os
import sys

from rich.console import Console

from aiven_provisioner.client.aiven import AivenClient
from aiven_provisioner.config.loader import load_provider_config
from aiven_provisioner.config.models import KafkaTopicSpec
from aiven_provisioner.observability.logging import configure_logging
from aiven_provisioner.resources.base import ResourceError
from aiven_provisioner.resources.kafka_topic import KafkaTopicResource

console = Console()


def main() -> None:
    # 1. Provider config from built-in defaults (token comes from AIVEN_TOKEN)
    provider = load_provider_config()
    configure_logging(provider.log_level)
    if not provider.aiven.token.get_secret_value():
        console.print("[red]AIVEN_TOKEN is not set[/red]")
        sys.exit(1)

    spec = KafkaTopicSpec(
        project=os.environ["AIVEN_PROJECT"],
        service_name=os.environ["AIVEN_KAFKA_SERVICE"],
        topic="demo-topic",
        partitions=3,
        replication=2,
    )

    with AivenClient(provider.aiven) as client:
        # 2. Check the token before doing anything
        client.verify_token()

        # 3. Create the topic; blocks until it is ACTIVE
        topics = KafkaTopicResource(client, provider.waiter.to_wait_configuration())
        try:
            resource_id, state = topics.create(spec)
        except ResourceError as exc:
            console.print(f"[red]{exc}[/red]")
            sys.exit(1)
        console.print(f"[green]{resource_id}[/green] is {state.state}")
        console.print(f"  partitions: {state.partitions}")
        console.print(f"  retention:  {state.retention_hours}h")


if __name__ == "__main__":
    main()
