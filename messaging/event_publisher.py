# messaging/event_publisher.py

import logging
from .rabbitmq_client import rabbitmq_client

logger = logging.getLogger(__name__)

SERVICE_NAME = "FileVaultService"


class FileEventPublisher:
    def publish_file_uploaded(self, file_id: str, owner_id: str):
        rabbitmq_client.publish(
            exchange_name='file_events',
            routing_key='file.uploaded',
            body={"file_id": file_id, "owner_id": owner_id}
        )

    def publish_file_transformed(self, old_file_id: str, new_file_id: str, operation: str, owner_id: str):
        """
        Announces that a file was replaced by an encrypted or decrypted copy.
        Consumers holding `old_file_id` should switch to `new_file_id`.
        """
        rabbitmq_client.publish(
            exchange_name='file_events',
            routing_key='file.transformed',
            body={
                "old_file_id": old_file_id,
                "new_file_id": new_file_id,
                "operation": str(operation),
                "owner_id": owner_id,
            }
        )

    def publish_file_deleted(self, file_id: str, owner_id: str):
        rabbitmq_client.publish(
            exchange_name='file_events',
            routing_key='file.deleted',
            body={"file_id": file_id, "owner_id": owner_id}
        )

    def publish_resource_for_user_deleted(self, user_id: str):
        """
        Publishes a confirmation that all files of a given user have been
        deleted. This is this service's part of the User Deletion Saga.
        """
        event_name = f"resource.for_user.deleted.{SERVICE_NAME}"
        payload = {
            "user_id": str(user_id),
            "service_name": SERVICE_NAME
        }

        logger.info(f"Publishing user cleanup confirmation for user_id: {user_id}")

        rabbitmq_client.publish(
            exchange_name='user_events',
            routing_key=event_name,
            body=payload
        )


file_event_publisher = FileEventPublisher()
