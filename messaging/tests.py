import json
from unittest import mock

import pika
import pytest
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile

from files.models import FileRecord
from files.services import FileService
from messaging.event_publisher import file_event_publisher
from messaging.management.commands.run_user_cleanup_worker import Command, handle_user_deletion
from messaging.rabbitmq_client import RabbitMQClient


@pytest.fixture(autouse=True)
def fresh_connections():
    RabbitMQClient._thread_local.__dict__.clear()
    yield
    RabbitMQClient._thread_local.__dict__.clear()


def upload(user_id, name='a.txt'):
    return FileService().upload_file(user_id=user_id, file_obj=SimpleUploadedFile(name, b'data'))


@pytest.mark.django_db
def test_user_deletion_removes_all_files_of_user(owner_id, other_user_id, published_events):
    first = upload(owner_id, 'a.txt')
    second = upload(owner_id, 'b.txt')
    survivor = upload(other_user_id, 'c.txt')

    handle_user_deletion(owner_id)

    assert not FileRecord.objects.filter(owner_id=owner_id).exists()
    assert not default_storage.exists(first.storage_ref)
    assert not default_storage.exists(second.storage_ref)
    assert FileRecord.objects.filter(id=survivor.id).exists()
    assert default_storage.exists(survivor.storage_ref)

    confirmation = published_events.call_args.kwargs
    assert confirmation['exchange_name'] == 'user_events'
    assert confirmation['routing_key'] == 'resource.for_user.deleted.FileVaultService'
    assert confirmation['body'] == {'user_id': owner_id, 'service_name': 'FileVaultService'}


@pytest.mark.django_db
def test_user_deletion_without_files_still_confirms(owner_id, published_events):
    handle_user_deletion(owner_id)
    published_events.assert_called_once()


@pytest.mark.django_db
def test_worker_callback_acks_and_dispatches(owner_id):
    channel = mock.Mock()
    method = mock.Mock(delivery_tag=7)
    body = json.dumps({'user_id': owner_id}).encode()

    with mock.patch('messaging.management.commands.run_user_cleanup_worker.handle_user_deletion') as handler:
        Command().callback(channel, method, None, body)

    handler.assert_called_once_with(owner_id)
    channel.basic_ack.assert_called_once_with(delivery_tag=7)


def test_worker_callback_acks_undecodable_messages():
    channel = mock.Mock()
    method = mock.Mock(delivery_tag=3)

    with mock.patch('messaging.management.commands.run_user_cleanup_worker.handle_user_deletion') as handler:
        Command().callback(channel, method, None, b'not json')

    handler.assert_not_called()
    channel.basic_ack.assert_called_once_with(delivery_tag=3)


def test_transformed_event_payload(published_events):
    file_event_publisher.publish_file_transformed(
        old_file_id='old', new_file_id='new', operation='encrypt', owner_id='owner',
    )
    published_events.assert_called_once_with(
        exchange_name='file_events',
        routing_key='file.transformed',
        body={'old_file_id': 'old', 'new_file_id': 'new', 'operation': 'encrypt', 'owner_id': 'owner'},
    )


def test_publish_retries_then_gives_up():
    client = RabbitMQClient(max_retries=2, retry_delay=0)
    with mock.patch('messaging.rabbitmq_client.pika.BlockingConnection',
                    side_effect=pika.exceptions.AMQPConnectionError("refused")) as connect:
        with pytest.raises(pika.exceptions.AMQPConnectionError):
            client.publish('file_events', 'file.deleted', {'file_id': 'x'})
    assert connect.call_count == 2


def test_publish_sends_persistent_json():
    client = RabbitMQClient(max_retries=1, retry_delay=0)
    connection = mock.MagicMock()
    connection.is_closed = False
    channel = connection.channel.return_value.__enter__.return_value

    with mock.patch('messaging.rabbitmq_client.pika.BlockingConnection', return_value=connection):
        client.publish('file_events', 'file.deleted', {'file_id': 'x'})

    kwargs = channel.basic_publish.call_args.kwargs
    assert kwargs['routing_key'] == 'file.deleted'
    assert json.loads(kwargs['body']) == {'file_id': 'x'}
    assert kwargs['properties'].delivery_mode in (pika.DeliveryMode.Persistent, pika.DeliveryMode.Persistent.value)


def test_publish_reconnects_after_broken_connection():
    client = RabbitMQClient(max_retries=2, retry_delay=0)
    broken = mock.MagicMock(is_closed=False, is_open=True)
    broken.channel.side_effect = pika.exceptions.StreamLostError("lost")
    healthy = mock.MagicMock(is_closed=False)

    with mock.patch('messaging.rabbitmq_client.pika.BlockingConnection', side_effect=[broken, healthy]):
        client.publish('file_events', 'file.deleted', {'file_id': 'x'})

    broken.close.assert_called_once()
    healthy.channel.return_value.__enter__.return_value.basic_publish.assert_called_once()
