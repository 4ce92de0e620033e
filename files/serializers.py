from rest_framework import serializers

from .models import FileRecord
from .services import TransformOperation


class FileRecordSerializer(serializers.ModelSerializer):
    url = serializers.SerializerMethodField()

    class Meta:
        model = FileRecord
        fields = ['id', 'display_name', 'original_name', 'is_encrypted', 'url', 'created_at']
        read_only_fields = fields

    def get_url(self, obj):
        # Only set on records whose blob was resolved by the service layer.
        return getattr(obj, 'url', None)


class FileUploadSerializer(serializers.Serializer):
    file = serializers.FileField(write_only=True)
    is_encrypted = serializers.BooleanField(default=False)


class StoreFileSerializer(serializers.Serializer):
    storage_ref = serializers.CharField(max_length=1024)
    name = serializers.CharField(max_length=255)
    original_name = serializers.CharField(max_length=255, required=False)
    is_encrypted = serializers.BooleanField(default=False)


class TransformSerializer(serializers.Serializer):
    # Never echoed back and never logged.
    password = serializers.CharField(write_only=True, trim_whitespace=False, allow_blank=True)
    operation = serializers.ChoiceField(choices=TransformOperation.choices)
