import json
import time

import pika
import structlog

logger = structlog.get_logger(__name__)


class RabbitMQProducer:
    """
    Handles the connection to RabbitMQ and publishing of order events.
    Connection attempts are retried a bounded number of times so a missing
    broker cannot stall the service start-up forever.
    """

    def __init__(self, host, exchange_name="events", exchange_type="topic", connect_attempts=5, retry_delay=5.0):
        self.host = host
        self.exchange_name = exchange_name
        self.exchange_type = exchange_type
        self.connect_attempts = connect_attempts
        self.retry_delay = retry_delay
        self.connection = None
        self.channel = None

    def connect(self):
        """Establishes a connection to RabbitMQ with retry logic."""
        for attempt in range(1, self.connect_attempts + 1):
            try:
                parameters = pika.ConnectionParameters(
                    host=self.host,
                    heartbeat=600,
                    blocked_connection_timeout=300,
                )
                self.connection = pika.BlockingConnection(parameters)
                self.channel = self.connection.channel()

                # Declare the exchange (durable ensures it survives restarts)
                self.channel.exchange_declare(
                    exchange=self.exchange_name,
                    exchange_type=self.exchange_type,
                    durable=True,
                )
                logger.info("Connected to RabbitMQ", host=self.host, exchange=self.exchange_name)
                return
            except pika.exceptions.AMQPConnectionError:
                logger.warning("RabbitMQ not ready", host=self.host, attempt=attempt)
                if attempt == self.connect_attempts:
                    raise
                time.sleep(self.retry_delay)

    def publish(self, routing_key, message):
        """
        Publishes a message to the exchange with a specific routing key.

        Args:
            routing_key (str): The topic key (e.g., 'order.placed').
            message (dict): The data payload to send.
        """
        # Reconnect if the connection was lost
        if not self.connection or self.connection.is_closed:
            self.connect()

        self.channel.basic_publish(
            exchange=self.exchange_name,
            routing_key=routing_key,
            body=json.dumps(message),
            properties=pika.BasicProperties(
                delivery_mode=2,  # Make message persistent
                content_type="application/json",
            ),
        )
        logger.info("Event published", routing_key=routing_key, message=message)

    def close(self):
        """Closes the connection cleanly."""
        if self.connection and not self.connection.is_closed:
            self.connection.close()


def order_placed_event(order):
    return {
        "order_id": order.id,
        "user_id": order.user_id,
        "total_amount": str(order.total_amount),
        "item_count": order.item_count,
        "payment_method": order.payment_method,
    }
