# files/storage.py

import logging
import uuid
from typing import Optional

from django.conf import settings
from django.core import signing
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage  # S3/MinIO in production, local disk otherwise
from rest_framework.exceptions import ValidationError

logger = logging.getLogger(__name__)

UPLOAD_TICKET_SALT = 'filevault.upload-ticket'


class BlobStore:
    """
    Thin adapter over a Django storage backend. Blobs are addressed by an opaque
    storage key under `uploads/<owner_id>/`; callers never build paths themselves.

    Uploads follow a two-step handshake: `request_upload_handle` allocates a key
    and returns a signed, expiring ticket for it, and `push_bytes` redeems the
    ticket once by writing the bytes and returning the final storage key.
    """

    def __init__(self, storage=None):
        self.storage = storage or default_storage
        self.signer = signing.TimestampSigner(salt=UPLOAD_TICKET_SALT)

    @staticmethod
    def owner_prefix(owner_id) -> str:
        return f"uploads/{owner_id}/"

    def request_upload_handle(self, owner_id) -> str:
        storage_key = f"{self.owner_prefix(owner_id)}{uuid.uuid4()}"
        return self.signer.sign_object({"owner_id": str(owner_id), "key": storage_key})

    def push_bytes(self, upload_ref: str, data: bytes, owner_id=None) -> str:
        try:
            ticket = self.signer.unsign_object(upload_ref, max_age=settings.FILEVAULT_UPLOAD_TICKET_MAX_AGE)
        except signing.SignatureExpired:
            raise ValidationError("Upload ticket has expired.")
        except signing.BadSignature:
            raise ValidationError("Invalid upload ticket.")

        if owner_id is not None and ticket["owner_id"] != str(owner_id):
            raise ValidationError("Invalid upload ticket.")

        if self.storage.exists(ticket["key"]):
            raise ValidationError("Upload ticket has already been used.")

        # Storage backends may rename on collision; the returned key is authoritative.
        storage_ref = self.storage.save(ticket["key"], ContentFile(data))
        logger.info(f"Stored blob '{storage_ref}' ({len(data)} bytes).")
        return storage_ref

    def exists(self, storage_ref: str) -> bool:
        return self.storage.exists(storage_ref)

    def resolve_download_url(self, storage_ref: str) -> Optional[str]:
        """Returns a download URL for the blob, or None when it cannot be resolved."""
        try:
            if not self.storage.exists(storage_ref):
                return None
            return self.storage.url(storage_ref)
        except Exception as e:
            logger.warning(f"Could not resolve download URL for blob '{storage_ref}': {e}")
            return None

    def read_bytes(self, storage_ref: str) -> bytes:
        with self.storage.open(storage_ref, 'rb') as blob:
            return blob.read()

    def delete_blob(self, storage_ref: str) -> None:
        if self.storage.exists(storage_ref):
            self.storage.delete(storage_ref)
        else:
            logger.warning(f"Blob '{storage_ref}' was already gone; nothing to delete.")

    def is_owned_by(self, storage_ref: str, owner_id) -> bool:
        return storage_ref.startswith(self.owner_prefix(owner_id)) and '..' not in storage_ref
