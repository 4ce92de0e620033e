# messaging/management/commands/run_user_cleanup_worker.py

import pika
import json
import time
import logging
from django.core.management.base import BaseCommand
from django.conf import settings
from django.db import transaction

from files.repository import FileRecordRepository
from files.storage import BlobStore
from messaging.event_publisher import file_event_publisher

logging.basicConfig(level=logging.INFO, format='%(asctime)s - FileVault-CleanupWorker - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def handle_user_deletion(user_id: str, repository: FileRecordRepository = None, blob_store: BlobStore = None):
    """
    Deletes every file owned by `user_id`, blobs first, then the metadata
    records in one transaction. Idempotent: a user with no files still gets a
    confirmation event so the saga can complete.
    """
    repository = repository or FileRecordRepository()
    blob_store = blob_store or BlobStore()

    logger.info(f"--- User Cleanup Initiated for user_id: {user_id} ---")

    with transaction.atomic():
        records = repository.find_all_for_owner(user_id)
        if not records:
            logger.info(f"No files found for user {user_id}. Cleanup is already complete.")
        else:
            logger.info(f"Found {len(records)} file(s) to delete for user {user_id}.")
            for record in records:
                blob_store.delete_blob(record.storage_ref)
            deleted_count = repository.delete_all_for_owner(user_id)
            logger.info(f"Deleted {deleted_count} file records for user {user_id}.")

    # Only announce once the transaction has committed.
    file_event_publisher.publish_resource_for_user_deleted(user_id)
    logger.info(f"--- User Cleanup Finished for user_id: {user_id} ---")


class Command(BaseCommand):
    """
    Runs a RabbitMQ worker that listens for `user.deletion.initiated` events
    and removes all files belonging to the deleted user.
    """
    help = 'Runs the FileVault worker for user deletion sagas.'

    def handle(self, *args, **options):
        rabbitmq_url = settings.RABBITMQ_URL
        self.stdout.write(self.style.SUCCESS("--- FileVault User Cleanup Worker ---"))
        self.stdout.write(f"Connecting to RabbitMQ at {rabbitmq_url}...")

        while True:
            try:
                connection = pika.BlockingConnection(pika.URLParameters(rabbitmq_url))
                channel = connection.channel()

                channel.exchange_declare(exchange='user_events', exchange_type='topic', durable=True)

                queue_name = 'filevault_user_cleanup_queue'
                channel.queue_declare(queue=queue_name, durable=True)
                channel.queue_bind(exchange='user_events', queue=queue_name, routing_key='user.deletion.initiated')

                self.stdout.write(self.style.SUCCESS('\n [*] Worker is now waiting for user deletion messages.'))
                channel.basic_consume(queue=queue_name, on_message_callback=self.callback)
                channel.start_consuming()

            except pika.exceptions.AMQPConnectionError as e:
                self.stderr.write(self.style.ERROR(f'Connection to RabbitMQ failed: {e}. Retrying in 5 seconds...'))
                time.sleep(5)
            except KeyboardInterrupt:
                self.stdout.write(self.style.WARNING('\nWorker stopped by user.'))
                break

    def callback(self, ch, method, properties, body):
        logger.info("Received a message from the queue.")
        try:
            payload = json.loads(body)
            user_id = payload.get('user_id')

            if user_id:
                handle_user_deletion(user_id)
            else:
                logger.warning(f"Received message without a user_id. Discarding: {body}")

        except json.JSONDecodeError:
            logger.error(f"Could not decode message body. Discarding: {body}", exc_info=True)
        except Exception as e:
            # Not requeued; a critical log is the alert.
            logger.critical(f"CRITICAL ERROR during user cleanup: {e}", exc_info=True)

        ch.basic_ack(delivery_tag=method.delivery_tag)
