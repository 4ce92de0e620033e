import uuid
from django.db import models


class FileRecord(models.Model):
    """
    Metadata for one logical file. The bytes live in object storage under
    `storage_ref`; a record whose blob no longer resolves is treated as gone.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    owner_id = models.UUIDField(db_index=True)

    storage_ref = models.CharField(max_length=1024, help_text="Key of the raw file in object storage.")

    display_name = models.CharField(max_length=255, help_text="Name shown to the user (e.g. 'report.pdf.enc').")
    original_name = models.CharField(max_length=255, help_text="Name of the file as first uploaded.")
    is_encrypted = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        state = 'encrypted' if self.is_encrypted else 'plain'
        return f"{self.display_name} ({state}, owner {self.owner_id})"
