from unittest import mock

import pytest
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework.exceptions import NotFound, ValidationError

from files import crypto
from files.exceptions import TransformFailed
from files.models import FileRecord
from files.services import FileService, TransformOperation, transformed_name


@pytest.fixture
def service():
    return FileService()


def upload(service, user_id, name='hello.txt', data=b'hello world'):
    return service.upload_file(user_id=user_id, file_obj=SimpleUploadedFile(name, data))


@pytest.mark.parametrize('name, operation, expected', [
    ('hello.txt', TransformOperation.ENCRYPT, 'hello.txt.enc'),
    ('hello.txt.enc', TransformOperation.ENCRYPT, 'hello.txt.enc.enc'),
    ('hello.txt.enc', TransformOperation.DECRYPT, 'hello.txt'),
    ('hello.txt', TransformOperation.DECRYPT, 'hello.txt'),
    ('.enc', TransformOperation.DECRYPT, '.enc'),
])
def test_transformed_name(name, operation, expected):
    assert transformed_name(name, operation) == expected


@pytest.mark.django_db
def test_upload_file_creates_plain_record(service, owner_id):
    record = upload(service, owner_id)

    assert record.display_name == 'hello.txt'
    assert record.original_name == 'hello.txt'
    assert record.is_encrypted is False
    assert str(record.owner_id) == owner_id
    assert service.blob_store.read_bytes(record.storage_ref) == b'hello world'


@pytest.mark.django_db
def test_upload_file_strips_path_components(service, owner_id):
    record = upload(service, owner_id, name='../../etc/passwd')
    assert record.display_name == 'passwd'


@pytest.mark.django_db
def test_store_file_after_handshake(service, owner_id):
    upload_ref = service.request_upload(user_id=owner_id)
    storage_ref = service.receive_upload(upload_ref=upload_ref, user_id=owner_id, data=b'abc')

    record = service.store_file(user_id=owner_id, storage_ref=storage_ref, name='abc.bin')

    assert record.original_name == 'abc.bin'
    assert service.get_file(file_id=record.id, user_id=owner_id).url


@pytest.mark.django_db
def test_store_file_rejects_blob_of_another_user(service, owner_id, other_user_id):
    upload_ref = service.request_upload(user_id=other_user_id)
    storage_ref = service.receive_upload(upload_ref=upload_ref, user_id=other_user_id, data=b'abc')

    with pytest.raises(ValidationError):
        service.store_file(user_id=owner_id, storage_ref=storage_ref, name='stolen.bin')


@pytest.mark.django_db
def test_store_file_rejects_unknown_blob(service, owner_id):
    with pytest.raises(ValidationError):
        service.store_file(user_id=owner_id, storage_ref=f"uploads/{owner_id}/missing", name='x')


@pytest.mark.django_db
def test_get_file_of_other_user_is_not_found(service, owner_id, other_user_id):
    record = upload(service, owner_id)
    with pytest.raises(NotFound):
        service.get_file(file_id=record.id, user_id=other_user_id)


@pytest.mark.django_db
def test_get_file_without_blob_is_not_found(service, owner_id):
    record = upload(service, owner_id)
    default_storage.delete(record.storage_ref)
    with pytest.raises(NotFound):
        service.get_file(file_id=record.id, user_id=owner_id)


@pytest.mark.django_db
def test_list_files_hides_stale_records(service, owner_id):
    kept = upload(service, owner_id, name='a.txt')
    stale = upload(service, owner_id, name='b.txt')
    default_storage.delete(stale.storage_ref)

    assert [r.id for r in service.list_files(user_id=owner_id)] == [kept.id]


@pytest.mark.django_db
def test_delete_file_removes_record_and_blob(service, owner_id):
    record = upload(service, owner_id)

    service.delete_file(file_id=record.id, user_id=owner_id)

    assert not FileRecord.objects.filter(id=record.id).exists()
    assert not default_storage.exists(record.storage_ref)
    with pytest.raises(NotFound):
        service.get_file(file_id=record.id, user_id=owner_id)


@pytest.mark.django_db
def test_delete_file_works_when_blob_already_gone(service, owner_id):
    record = upload(service, owner_id)
    default_storage.delete(record.storage_ref)

    service.delete_file(file_id=record.id, user_id=owner_id)

    assert not FileRecord.objects.filter(id=record.id).exists()


@pytest.mark.django_db
def test_delete_file_of_other_user_is_not_found(service, owner_id, other_user_id):
    record = upload(service, owner_id)
    with pytest.raises(NotFound):
        service.delete_file(file_id=record.id, user_id=other_user_id)
    assert default_storage.exists(record.storage_ref)


@pytest.mark.django_db
def test_encrypt_replaces_plain_file(service, owner_id):
    record = upload(service, owner_id)

    encrypted = service.transform_file(
        file_id=record.id, user_id=owner_id, password='correcthorse', operation=TransformOperation.ENCRYPT,
    )

    assert encrypted.id != record.id
    assert encrypted.display_name == 'hello.txt.enc'
    assert encrypted.original_name == 'hello.txt'
    assert encrypted.is_encrypted is True
    assert encrypted.url
    ciphertext = service.blob_store.read_bytes(encrypted.storage_ref)
    assert ciphertext != b'hello world'
    assert crypto.decrypt(ciphertext, crypto.derive_key('correcthorse')) == b'hello world'

    assert not FileRecord.objects.filter(id=record.id).exists()
    assert not default_storage.exists(record.storage_ref)


@pytest.mark.django_db
def test_decrypt_restores_plain_file(service, owner_id):
    record = upload(service, owner_id)
    encrypted = service.transform_file(
        file_id=record.id, user_id=owner_id, password='correcthorse', operation=TransformOperation.ENCRYPT,
    )

    decrypted = service.transform_file(
        file_id=encrypted.id, user_id=owner_id, password='correcthorse', operation=TransformOperation.DECRYPT,
    )

    assert decrypted.display_name == 'hello.txt'
    assert decrypted.is_encrypted is False
    assert service.blob_store.read_bytes(decrypted.storage_ref) == b'hello world'
    assert [r.id for r in service.list_files(user_id=owner_id)] == [decrypted.id]


@pytest.mark.django_db
def test_binary_content_survives_round_trip(service, owner_id):
    payload = bytes(range(256)) * 7
    record = upload(service, owner_id, name='image.png', data=payload)

    encrypted = service.transform_file(
        file_id=record.id, user_id=owner_id, password='pw', operation=TransformOperation.ENCRYPT,
    )
    decrypted = service.transform_file(
        file_id=encrypted.id, user_id=owner_id, password='pw', operation=TransformOperation.DECRYPT,
    )

    assert service.blob_store.read_bytes(decrypted.storage_ref) == payload


@pytest.mark.django_db
def test_decrypt_with_wrong_password_leaves_encrypted_file_untouched(service, owner_id):
    record = upload(service, owner_id)
    encrypted = service.transform_file(
        file_id=record.id, user_id=owner_id, password='correcthorse', operation=TransformOperation.ENCRYPT,
    )
    ciphertext = service.blob_store.read_bytes(encrypted.storage_ref)

    with pytest.raises(TransformFailed) as exc_info:
        service.transform_file(
            file_id=encrypted.id, user_id=owner_id, password='wrongpassword', operation=TransformOperation.DECRYPT,
        )

    assert str(exc_info.value.detail) == 'Wrong password or corrupted file.'
    assert list(FileRecord.objects.filter(owner_id=owner_id)) == [encrypted]
    assert service.blob_store.read_bytes(encrypted.storage_ref) == ciphertext


@pytest.mark.django_db
def test_transform_of_other_users_file_is_not_found(service, owner_id, other_user_id):
    record = upload(service, owner_id)

    with pytest.raises(NotFound):
        service.transform_file(
            file_id=record.id, user_id=other_user_id, password='pw', operation=TransformOperation.ENCRYPT,
        )

    assert FileRecord.objects.get(id=record.id).is_encrypted is False


@pytest.mark.django_db
def test_transform_direction_must_match_state(service, owner_id):
    record = upload(service, owner_id)
    with pytest.raises(TransformFailed):
        service.transform_file(
            file_id=record.id, user_id=owner_id, password='pw', operation=TransformOperation.DECRYPT,
        )

    encrypted = service.transform_file(
        file_id=record.id, user_id=owner_id, password='pw', operation=TransformOperation.ENCRYPT,
    )
    with pytest.raises(TransformFailed):
        service.transform_file(
            file_id=encrypted.id, user_id=owner_id, password='pw', operation=TransformOperation.ENCRYPT,
        )


@pytest.mark.django_db
def test_failed_upload_of_result_keeps_original(service, owner_id):
    record = upload(service, owner_id)

    with mock.patch.object(service.blob_store, 'push_bytes', side_effect=OSError("bucket unavailable")):
        with pytest.raises(TransformFailed):
            service.transform_file(
                file_id=record.id, user_id=owner_id, password='pw', operation=TransformOperation.ENCRYPT,
            )

    assert list(FileRecord.objects.filter(owner_id=owner_id)) == [record]
    assert default_storage.exists(record.storage_ref)


@pytest.mark.django_db
def test_failed_cleanup_leaves_duplicate_instead_of_failing(service, owner_id):
    record = upload(service, owner_id)

    with mock.patch.object(service.blob_store, 'delete_blob', side_effect=OSError("delete refused")):
        encrypted = service.transform_file(
            file_id=record.id, user_id=owner_id, password='pw', operation=TransformOperation.ENCRYPT,
        )

    remaining = {r.id for r in FileRecord.objects.filter(owner_id=owner_id)}
    assert remaining == {record.id, encrypted.id}


@pytest.mark.django_db
def test_cleanup_of_already_removed_copy_does_not_fail(service, owner_id):
    record = upload(service, owner_id)
    # Simulates a concurrent transform that already removed the old copy.
    service._remove_superseded(record)
    service._remove_superseded(record)

    assert not FileRecord.objects.filter(id=record.id).exists()
