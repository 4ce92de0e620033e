# messaging/rabbitmq_client.py

import json
import logging
import threading
import time

import pika
from django.conf import settings

logger = logging.getLogger(__name__)


class RabbitMQClient:
    """
    Publishes FileVault's domain events to durable topic exchanges.

    Each thread keeps its own connection; a broker error drops it so the next
    attempt reconnects.
    """
    _thread_local = threading.local()

    def __init__(self, max_retries=3, retry_delay=2):
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def _connection(self):
        connection = getattr(self._thread_local, 'connection', None)
        if connection is None or connection.is_closed:
            connection = pika.BlockingConnection(pika.URLParameters(settings.RABBITMQ_URL))
            self._thread_local.connection = connection
        return connection

    def _drop_connection(self):
        connection = self._thread_local.__dict__.pop('connection', None)
        if connection is not None and connection.is_open:
            try:
                connection.close()
            except pika.exceptions.AMQPError:
                pass

    def publish(self, exchange_name, routing_key, body):
        for attempt in range(1, self.max_retries + 1):
            try:
                with self._connection().channel() as channel:
                    channel.exchange_declare(exchange=exchange_name, exchange_type='topic', durable=True)
                    channel.basic_publish(
                        exchange=exchange_name,
                        routing_key=routing_key,
                        body=json.dumps(body, default=str),
                        properties=pika.BasicProperties(
                            content_type='application/json',
                            delivery_mode=pika.DeliveryMode.Persistent,
                        ),
                    )
                logger.info(f"Published '{routing_key}' to '{exchange_name}'.")
                return
            except (pika.exceptions.AMQPError, OSError) as e:
                self._drop_connection()
                if attempt == self.max_retries:
                    logger.critical(f"Giving up on '{routing_key}' after {attempt} attempts: {e}")
                    raise
                logger.warning(f"Publishing '{routing_key}' failed (attempt {attempt}): {e}")
                time.sleep(self.retry_delay)


rabbitmq_client = RabbitMQClient()
