import json

import pika

from ..logging_config import get_logger

log = get_logger(__name__)

EXCHANGE = "events"


class RabbitMQProducer:
    """
    Publishes order events to the 'events' topic exchange.

    A connection is opened per publish and closed right after. Publishing
    happens after the order change has committed, so a failure here is
    logged and dropped rather than raised.
    """

    def __init__(self, host, heartbeat=600, blocked_connection_timeout=300):
        self.parameters = pika.ConnectionParameters(
            host=host,
            heartbeat=heartbeat,
            blocked_connection_timeout=blocked_connection_timeout,
        )

    def publish_event(self, event_data: dict, routing_key: str):
        connection = None
        try:
            connection = pika.BlockingConnection(self.parameters)
            channel = connection.channel()
            channel.exchange_declare(exchange=EXCHANGE, exchange_type="topic", durable=True)
            channel.basic_publish(
                exchange=EXCHANGE,
                routing_key=routing_key,
                body=json.dumps(event_data, default=str),
                properties=pika.BasicProperties(
                    content_type="application/json",
                    delivery_mode=2,  # Persist the message on disk
                ),
            )
            log.info("event published", routing_key=routing_key, order_no=event_data.get("order_no"))
        except pika.exceptions.AMQPError as e:
            log.error("event publish failed", routing_key=routing_key, error=str(e))
        finally:
            if connection is not None and connection.is_open:
                connection.close()


class NullProducer:
    """Stands in for RabbitMQProducer when no broker is configured."""

    def publish_event(self, event_data: dict, routing_key: str):
        log.debug("no broker configured, event dropped", routing_key=routing_key)
