# files/repository.py

from typing import Callable, List, Optional
import uuid

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework.exceptions import NotFound

from .models import FileRecord


class FileRecordRepository:
    """
    Acts as a data access layer for the FileRecord model.
    Every owner-facing lookup is scoped to the requesting user: a record that
    exists but belongs to someone else is reported exactly like a missing one.
    """

    def create(self, *, owner_id: uuid.UUID, storage_ref: str, display_name: str,
               original_name: str, is_encrypted: bool) -> FileRecord:
        return FileRecord.objects.create(
            owner_id=owner_id,
            storage_ref=storage_ref,
            display_name=display_name,
            original_name=original_name,
            is_encrypted=is_encrypted,
        )

    def get(self, record_id: uuid.UUID, user_id: uuid.UUID) -> FileRecord:
        """
        Finds a single FileRecord owned by `user_id`.

        Raises:
            NotFound: the record does not exist or is not owned by the user.
        """
        try:
            return FileRecord.objects.get(id=record_id, owner_id=user_id)
        except (FileRecord.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFound("File not found.")

    def list_by_owner(self, user_id: uuid.UUID, resolve: Callable[[str], Optional[str]]) -> List[FileRecord]:
        """
        Returns the user's records whose blob still resolves to a download URL.
        Each returned record carries the resolved URL as `record.url`. Records
        whose blob is gone are hidden, not repaired.
        """
        records = []
        for record in FileRecord.objects.filter(owner_id=user_id):
            url = resolve(record.storage_ref)
            if url:
                record.url = url
                records.append(record)
        return records

    def delete(self, record_id: uuid.UUID, user_id: uuid.UUID) -> None:
        record = self.get(record_id, user_id)
        self.discard(record)

    def discard(self, record: FileRecord) -> None:
        """Deletes an already-authorized record. Deleting one that is already gone is a no-op."""
        FileRecord.objects.filter(id=record.id).delete()

    def find_all_for_owner(self, user_id: uuid.UUID) -> List[FileRecord]:
        return list(FileRecord.objects.filter(owner_id=user_id))

    def delete_all_for_owner(self, user_id: uuid.UUID) -> int:
        deleted_count, _ = FileRecord.objects.filter(owner_id=user_id).delete()
        return deleted_count
