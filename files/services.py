# files/services.py

import logging
import os
import uuid
from typing import List, Tuple

from django.core.files.uploadedfile import UploadedFile
from django.db import models
from rest_framework.exceptions import NotFound, ValidationError

from . import crypto
from .exceptions import TransformFailed
from .models import FileRecord
from .repository import FileRecordRepository
from .storage import BlobStore

logger = logging.getLogger(__name__)

ENCRYPTED_SUFFIX = '.enc'


class TransformOperation(models.TextChoices):
    ENCRYPT = 'encrypt', 'Encrypt'
    DECRYPT = 'decrypt', 'Decrypt'


def transformed_name(display_name: str, operation: str) -> str:
    """Encrypting appends '.enc'; decrypting strips one trailing '.enc' if present."""
    if operation == TransformOperation.ENCRYPT:
        return f"{display_name}{ENCRYPTED_SUFFIX}"
    if display_name.endswith(ENCRYPTED_SUFFIX) and len(display_name) > len(ENCRYPTED_SUFFIX):
        return display_name[:-len(ENCRYPTED_SUFFIX)]
    return display_name


class FileService:
    """
    The service layer for all business logic around a user's files.

    Every public method takes the requesting user's id explicitly and resolves
    records through `_get_owned_record`, so identity and ownership are checked
    at the start of each operation.
    """

    def __init__(self, repository: FileRecordRepository = None, blob_store: BlobStore = None):
        self.repository = repository or FileRecordRepository()
        self.blob_store = blob_store or BlobStore()

    # --- Authorization guard ---

    def _get_owned_record(self, *, file_id: uuid.UUID, user_id: uuid.UUID, require_blob: bool = True) -> FileRecord:
        record = self.repository.get(file_id, user_id)
        if require_blob:
            url = self.blob_store.resolve_download_url(record.storage_ref)
            if not url:
                logger.warning(f"File {file_id} has no resolvable blob; treating it as not found.")
                raise NotFound("File not found.")
            record.url = url
        return record

    # --- Upload handshake ---

    def request_upload(self, *, user_id: uuid.UUID) -> str:
        return self.blob_store.request_upload_handle(user_id)

    def receive_upload(self, *, upload_ref: str, user_id: uuid.UUID, data: bytes) -> str:
        return self.blob_store.push_bytes(upload_ref, data, owner_id=user_id)

    def store_file(self, *, user_id: uuid.UUID, storage_ref: str, name: str,
                   original_name: str = None, is_encrypted: bool = False) -> FileRecord:
        """
        Records metadata for a blob the user pushed through the upload handshake.
        The blob must live in the user's own upload area.
        """
        if not self.blob_store.is_owned_by(storage_ref, user_id) or not self.blob_store.exists(storage_ref):
            raise ValidationError("Unknown storage reference.")

        record = self.repository.create(
            owner_id=user_id,
            storage_ref=storage_ref,
            display_name=os.path.basename(name),
            original_name=os.path.basename(original_name or name),
            is_encrypted=is_encrypted,
        )
        record.url = self.blob_store.resolve_download_url(storage_ref)
        logger.info(f"User {user_id} stored file {record.id} ('{record.display_name}').")
        return record

    def upload_file(self, *, user_id: uuid.UUID, file_obj: UploadedFile, is_encrypted: bool = False) -> FileRecord:
        # Using file_obj.name directly is unsafe if it contains path characters like '../'.
        safe_filename = os.path.basename(file_obj.name)
        upload_ref = self.blob_store.request_upload_handle(user_id)
        try:
            storage_ref = self.blob_store.push_bytes(upload_ref, file_obj.read(), owner_id=user_id)
        except ValidationError:
            raise
        except Exception as e:
            # Catch potential Boto3/network errors during upload
            raise ValidationError(f"Could not save file to storage backend: {e}")

        return self.store_file(
            user_id=user_id,
            storage_ref=storage_ref,
            name=safe_filename,
            original_name=safe_filename,
            is_encrypted=is_encrypted,
        )

    # --- Reads ---

    def list_files(self, *, user_id: uuid.UUID) -> List[FileRecord]:
        return self.repository.list_by_owner(user_id, self.blob_store.resolve_download_url)

    def get_file(self, *, file_id: uuid.UUID, user_id: uuid.UUID) -> FileRecord:
        return self._get_owned_record(file_id=file_id, user_id=user_id)

    def read_file_content(self, *, file_id: uuid.UUID, user_id: uuid.UUID) -> Tuple[FileRecord, bytes]:
        record = self._get_owned_record(file_id=file_id, user_id=user_id)
        return record, self.blob_store.read_bytes(record.storage_ref)

    # --- Deletion ---

    def delete_file(self, *, file_id: uuid.UUID, user_id: uuid.UUID) -> None:
        record = self._get_owned_record(file_id=file_id, user_id=user_id, require_blob=False)
        self.blob_store.delete_blob(record.storage_ref)
        self.repository.discard(record)
        logger.info(f"User {user_id} deleted file {file_id}.")

    # --- Encrypt / decrypt ---

    def transform_file(self, *, file_id: uuid.UUID, user_id: uuid.UUID, password: str, operation: str) -> FileRecord:
        """
        Replaces a file with a copy in the opposite encryption state.

        The new blob and record are created before the old ones are removed, so
        a failure at any point leaves at least one readable copy. A failure while
        removing the old copy is logged and otherwise ignored.
        """
        record = self._get_owned_record(file_id=file_id, user_id=user_id)

        encrypting = operation == TransformOperation.ENCRYPT
        if encrypting == record.is_encrypted:
            # Flipping is_encrypted would otherwise mislabel the result.
            raise TransformFailed("File is already encrypted." if encrypting else "File is not encrypted.")

        logger.info(f"User {user_id} requested '{operation}' on file {file_id}.")

        try:
            source = self.blob_store.read_bytes(record.storage_ref)
        except Exception as e:
            logger.error(f"Could not read blob for file {file_id}: {e}", exc_info=True)
            raise TransformFailed("Failed to fetch file.")

        key = crypto.derive_key(password)
        if encrypting:
            result = crypto.encrypt(source, key)
        else:
            try:
                result = crypto.decrypt(source, key)
            except crypto.DecryptionFailed:
                logger.info(f"Decryption of file {file_id} failed for user {user_id}.")
                raise TransformFailed("Wrong password or corrupted file.")

        try:
            upload_ref = self.blob_store.request_upload_handle(user_id)
            storage_ref = self.blob_store.push_bytes(upload_ref, result, owner_id=user_id)
        except Exception as e:
            logger.error(f"Could not upload processed file for {file_id}: {e}", exc_info=True)
            raise TransformFailed("Failed to upload processed file.")

        new_record = self.repository.create(
            owner_id=user_id,
            storage_ref=storage_ref,
            display_name=transformed_name(record.display_name, operation),
            original_name=record.original_name,
            is_encrypted=encrypting,
        )
        new_record.url = self.blob_store.resolve_download_url(storage_ref)
        logger.info(f"File {file_id} -> {new_record.id} ({operation}) created for user {user_id}.")

        self._remove_superseded(record)
        return new_record

    def _remove_superseded(self, record: FileRecord) -> None:
        try:
            self.blob_store.delete_blob(record.storage_ref)
            self.repository.discard(record)
        except Exception as e:
            logger.error(
                f"Transform succeeded but cleanup of superseded file {record.id} failed: {e}. "
                f"Both copies remain visible.",
                exc_info=True,
            )
