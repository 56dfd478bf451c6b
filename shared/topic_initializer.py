"""
topic_initializer.py - Kafka Topic Auto-Creation Utility

PURPOSE:
    Creates the topics the inventory service publishes to on startup, with
    explicit partitioning and replication configuration.

TOPICS CREATED:
    - product.created
    - product.stock_added
    - dlq.events

RETRY LOGIC:
    - Brokers may not be ready when the service boots
    - Up to 10 attempts, 3 seconds apart
    - Existing topics are treated as success (idempotent)

USAGE:
    create_topics("kafka-broker-1:9092", replication_factor=1)
"""

import logging
import time
from typing import List

from confluent_kafka.admin import AdminClient, NewTopic

from shared.events import ALL_TOPICS

logger = logging.getLogger(__name__)


def create_topics(
    bootstrap_servers: str,
    num_partitions: int = 3,
    replication_factor: int = 3,
    max_retries: int = 10,
    retry_delay: float = 3,
) -> None:
    """
    Create all Kafka topics with specified partitions and replication factor.

    Args:
        bootstrap_servers: Comma-separated Kafka broker addresses
        num_partitions: Number of partitions per topic
        replication_factor: Number of replicas per partition
        max_retries: Attempts before giving up on unreachable brokers
        retry_delay: Seconds between attempts
    """
    admin_client = AdminClient({"bootstrap.servers": bootstrap_servers})

    topics_to_create: List[NewTopic] = [
        NewTopic(topic, num_partitions=num_partitions, replication_factor=replication_factor)
        for topic in ALL_TOPICS
    ]

    for attempt in range(max_retries):
        try:
            logger.info(f"Creating topics (attempt {attempt + 1}/{max_retries})...")
            fs = admin_client.create_topics(topics_to_create, validate_only=False)

            for topic, future in fs.items():
                try:
                    future.result(timeout=10)
                    logger.info(f"Topic '{topic}' created successfully")
                except Exception as e:
                    if "already exists" in str(e) or "TOPIC_ALREADY_EXISTS" in str(e):
                        logger.info(f"Topic '{topic}' already exists")
                    else:
                        logger.warning(f"Error creating topic '{topic}': {e}")

            logger.info("All topics processed successfully")
            return

        except Exception as e:
            if attempt < max_retries - 1:
                logger.warning(f"Failed to create topics (attempt {attempt + 1}): {e}. Retrying in {retry_delay}s...")
                time.sleep(retry_delay)
            else:
                logger.error(f"Failed to create topics after {max_retries} attempts: {e}")
                raise
