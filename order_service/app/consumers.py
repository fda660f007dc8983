import json
import threading
import time

import pika

from .errors import NotFoundError, StorageError, TransientError, ValidationError
from .logging_config import get_logger
from .messaging.producer import EXCHANGE

log = get_logger(__name__)

QUEUE = "orders.payment.captured"


class PaymentConsumer:
    """
    Listens for 'payment.captured' events and records the payment on the order.

    Expected body: {"order_no": ..., "razorpay_payment_id": ..., "razorpay_order_id": ...}
    """

    def __init__(self, workflow, host, retry_delay=5):
        self.workflow = workflow
        self.host = host
        self.retry_delay = retry_delay
        self.connection = None
        self.channel = None

    def connect(self):
        """Connects to RabbitMQ, retrying until the broker is up."""
        while True:
            try:
                self.connection = pika.BlockingConnection(
                    pika.ConnectionParameters(host=self.host, heartbeat=600, blocked_connection_timeout=300))
                self.channel = self.connection.channel()
                self.channel.exchange_declare(exchange=EXCHANGE, exchange_type="topic", durable=True)
                self.channel.queue_declare(queue=QUEUE, durable=True)
                self.channel.queue_bind(exchange=EXCHANGE, queue=QUEUE, routing_key="payment.captured")
                self.channel.basic_qos(prefetch_count=1)
                log.info("payment consumer connected", host=self.host, queue=QUEUE)
                break
            except pika.exceptions.AMQPConnectionError as e:
                log.warning("RabbitMQ not ready, retrying", delay=self.retry_delay, error=str(e))
                time.sleep(self.retry_delay)

    def callback(self, ch, method, properties, body):
        try:
            event = json.loads(body)
            order_no = event["order_no"]
        except (ValueError, TypeError, KeyError):
            log.error("malformed payment event rejected", body=body[:200])
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
            return

        try:
            self.workflow.confirm_payment(
                order_no,
                payment_id=event.get("razorpay_payment_id"),
                gateway_order_id=event.get("razorpay_order_id"),
            )
        except TransientError as e:
            log.warning("payment event requeued", order_no=order_no, error=str(e))
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=True)
            return
        except (NotFoundError, ValidationError, StorageError) as e:
            log.error("payment event rejected", order_no=order_no, error=str(e))
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
            return
        except Exception:
            # The consumer thread must survive any single bad message.
            log.exception("payment event handling failed", order_no=order_no)
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
            return

        ch.basic_ack(delivery_tag=method.delivery_tag)

    def start_listening(self):
        """Consumes forever, reconnecting when the broker connection drops."""
        while True:
            if not self.connection or self.connection.is_closed:
                self.connect()
            try:
                self.channel.basic_consume(queue=QUEUE, on_message_callback=self.callback)
                log.info("payment consumer waiting for events")
                self.channel.start_consuming()
            except pika.exceptions.AMQPConnectionError as e:
                log.warning("payment consumer lost connection", error=str(e))
                self.connection = None
                time.sleep(self.retry_delay)


def start_consumer_thread(workflow, host):
    """Runs the consumer in a daemon thread so it stops with the app."""
    consumer = PaymentConsumer(workflow, host)
    thread = threading.Thread(target=consumer.start_listening, daemon=True)
    thread.start()
    return thread
