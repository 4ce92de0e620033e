from django.contrib import admin

from .models import FileRecord


@admin.register(FileRecord)
class FileRecordAdmin(admin.ModelAdmin):
    list_display = ('display_name', 'owner_id', 'is_encrypted', 'created_at')
    list_filter = ('is_encrypted',)
    search_fields = ('display_name', 'original_name', 'owner_id')
    readonly_fields = ('id', 'storage_ref', 'created_at')
