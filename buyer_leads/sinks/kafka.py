"""Kafka sink streaming audit events to a topic."""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any

from confluent_kafka import KafkaException, Producer

from buyer_leads.config import KafkaConfig
from buyer_leads.exceptions import SinkError
from buyer_leads.models import Event
from buyer_leads.sinks.serialization import to_dict

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "leads.buyer-history"


@dataclass
class ProducerStats:
    """Track producer delivery statistics."""

    sent: int = 0
    delivered: int = 0
    failed: int = 0
    start_time: float | None = None

    @property
    def success_rate(self) -> float:
        """Calculate success rate."""
        total = self.delivered + self.failed
        return self.delivered / total if total > 0 else 0.0


class KafkaSink:
    """Publish audit events to Kafka, keyed by buyer id.

    Keying by the event subject keeps every event of one buyer on the same
    partition, so consumers see a buyer's history in commit order.
    """

    def __init__(self, config: KafkaConfig | str, topic: str = DEFAULT_TOPIC) -> None:
        """Initialize Kafka sink.

        Parameters
        ----------
        config : KafkaConfig | str
            Producer configuration or bootstrap servers string.
        topic : str
            Destination topic.
        """
        if isinstance(config, str):
            config = KafkaConfig(bootstrap_servers=config)

        self.config = config
        self.topic = topic
        self.producer = Producer(config.to_dict())
        self.stats = ProducerStats()

    def _delivery_callback(self, err: Any, msg: Any) -> None:
        """Handle delivery reports."""
        if err:
            self.stats.failed += 1
            logger.error("Delivery failed: %s", err)
        else:
            self.stats.delivered += 1
            logger.debug("Delivered to %s[%d]@%d", msg.topic(), msg.partition(), msg.offset())

    def publish(self, event: Event) -> None:
        """Send a single event."""
        if self.stats.start_time is None:
            self.stats.start_time = time.time()

        value = json.dumps(to_dict(event), ensure_ascii=False, default=str).encode("utf-8")
        try:
            self.producer.produce(
                topic=self.topic,
                key=event.subject.encode("utf-8"),
                value=value,
                callback=self._delivery_callback,
            )
        except (BufferError, KafkaException) as e:
            raise SinkError(f"Failed to enqueue {event.event_type} for {event.subject}: {e}") from e
        self.stats.sent += 1
        self.producer.poll(0)

    def flush(self, timeout: float = 30.0) -> None:
        """Flush pending messages."""
        self.producer.flush(timeout)

    def close(self) -> None:
        """Flush and close the producer."""
        self.flush()
        logger.info(
            "Kafka sink closed: sent=%d, delivered=%d, failed=%d",
            self.stats.sent,
            self.stats.delivered,
            self.stats.failed,
        )
