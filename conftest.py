import uuid
from unittest import mock

import pytest
from rest_framework.test import APIClient


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    """Every test writes blobs to its own temporary directory."""
    settings.MEDIA_ROOT = tmp_path / 'media'
    return settings.MEDIA_ROOT


@pytest.fixture(autouse=True)
def published_events():
    """RabbitMQ is never contacted from tests; published messages are captured instead."""
    with mock.patch('messaging.event_publisher.rabbitmq_client.publish') as publish:
        yield publish


@pytest.fixture
def owner_id():
    return str(uuid.uuid4())


@pytest.fixture
def other_user_id():
    return str(uuid.uuid4())


def make_token_user(user_id):
    from rest_framework_simplejwt.models import TokenUser
    return TokenUser({'user_id': user_id})


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def owner_client(owner_id):
    client = APIClient()
    client.force_authenticate(user=make_token_user(owner_id))
    return client


@pytest.fixture
def other_client(other_user_id):
    client = APIClient()
    client.force_authenticate(user=make_token_user(other_user_id))
    return client
