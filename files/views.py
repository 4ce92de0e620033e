# files/views.py

import io
import logging

from django.http import FileResponse
from django.urls import reverse
from rest_framework import permissions, status
from rest_framework.exceptions import APIException, NotFound
from rest_framework.parsers import BaseParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from .permissions import IsFileOwner
from .serializers import FileRecordSerializer, FileUploadSerializer, StoreFileSerializer, TransformSerializer
from .services import FileService
from messaging.event_publisher import file_event_publisher

logger = logging.getLogger(__name__)


class OctetStreamParser(BaseParser):
    """Hands the raw request body to the view as bytes."""
    media_type = 'application/octet-stream'

    def parse(self, stream, media_type=None, parser_context=None):
        return stream.read() if stream is not None else b''


def error_response(e: APIException) -> Response:
    return Response({"error": e.detail}, status=e.status_code)


def announce_upload(record):
    try:
        file_event_publisher.publish_file_uploaded(file_id=str(record.id), owner_id=str(record.owner_id))
    except Exception as e:
        logger.critical(f"File {record.id} was stored, but 'file.uploaded' event publishing failed: {e}")


def unexpected_error_response(action: str) -> Response:
    logger.error(f"Unexpected error during {action}.", exc_info=True)
    return Response({"error": f"An unexpected error occurred during {action}."},
                    status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class OwnedFileAPIView(APIView):
    """
    Base view for endpoints addressing a single FileRecord. The service already
    scopes lookups to the caller; the object permission check runs on top of it
    and a failure is reported as 404 so other users' files stay invisible.
    """
    permission_classes = [permissions.IsAuthenticated, IsFileOwner]

    def permission_denied(self, request, message=None, code=None):
        if request.authenticators and not request.successful_authenticator:
            super().permission_denied(request, message=message, code=code)
        raise NotFound("File not found.")

    def get_object(self, pk, require_blob=True):
        service = FileService()
        if require_blob:
            obj = service.get_file(file_id=pk, user_id=self.request.user.id)
        else:
            obj = service.repository.get(pk, self.request.user.id)
        self.check_object_permissions(self.request, obj)
        return obj


class UploadRequestAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        upload_ref = FileService().request_upload(user_id=request.user.id)
        upload_url = request.build_absolute_uri(reverse('upload-push', kwargs={'upload_ref': upload_ref}))
        return Response({"upload_ref": upload_ref, "upload_url": upload_url}, status=status.HTTP_201_CREATED)


class UploadPushAPIView(APIView):
    parser_classes = [OctetStreamParser]
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, upload_ref):
        # DRF hands back an empty dict instead of bytes when the body is empty.
        data = request.data if isinstance(request.data, bytes) else b''
        service = FileService()
        try:
            storage_ref = service.receive_upload(upload_ref=upload_ref, user_id=request.user.id, data=data)
            return Response({"storage_ref": storage_ref}, status=status.HTTP_201_CREATED)
        except APIException as e:
            return error_response(e)
        except Exception:
            return unexpected_error_response("upload")


class FileListCreateAPIView(APIView):
    parser_classes = [MultiPartParser]
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        files = FileService().list_files(user_id=request.user.id)
        serializer = FileRecordSerializer(files, many=True)
        return Response(serializer.data)

    def post(self, request):
        serializer = FileUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        service = FileService()
        try:
            new_file = service.upload_file(
                user_id=request.user.id,
                file_obj=serializer.validated_data['file'],
                is_encrypted=serializer.validated_data['is_encrypted'],
            )
        except APIException as e:
            return error_response(e)
        except Exception:
            return unexpected_error_response("file upload")

        announce_upload(new_file)
        return Response(FileRecordSerializer(new_file).data, status=status.HTTP_201_CREATED)


class FileStoreAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = StoreFileSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        service = FileService()
        try:
            new_file = service.store_file(user_id=request.user.id, **serializer.validated_data)
        except APIException as e:
            return error_response(e)
        except Exception:
            return unexpected_error_response("file registration")

        announce_upload(new_file)
        return Response(FileRecordSerializer(new_file).data, status=status.HTTP_201_CREATED)


class FileDetailAPIView(OwnedFileAPIView):

    def get(self, request, pk):
        instance = self.get_object(pk)
        return Response(FileRecordSerializer(instance).data)

    def delete(self, request, pk):
        # Deleting must work even when the blob has already vanished.
        instance = self.get_object(pk, require_blob=False)
        service = FileService()
        try:
            service.delete_file(file_id=instance.id, user_id=request.user.id)
        except APIException as e:
            return error_response(e)
        except Exception:
            return unexpected_error_response("file deletion")

        try:
            file_event_publisher.publish_file_deleted(file_id=str(pk), owner_id=str(request.user.id))
        except Exception as e:
            logger.critical(f"File {pk} was deleted, but 'file.deleted' event publishing failed: {e}")

        return Response(status=status.HTTP_204_NO_CONTENT)


class FileContentAPIView(OwnedFileAPIView):

    def get(self, request, pk):
        instance = self.get_object(pk)
        _, data = FileService().read_file_content(file_id=instance.id, user_id=request.user.id)
        return FileResponse(io.BytesIO(data), as_attachment=True, filename=instance.display_name,
                            content_type='application/octet-stream')


class FileTransformAPIView(OwnedFileAPIView):

    def post(self, request, pk):
        instance = self.get_object(pk)

        serializer = TransformSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        operation = serializer.validated_data['operation']

        service = FileService()
        try:
            new_file = service.transform_file(
                file_id=instance.id,
                user_id=request.user.id,
                password=serializer.validated_data['password'],
                operation=operation,
            )
        except APIException as e:
            return error_response(e)
        except Exception:
            return unexpected_error_response("encryption/decryption")

        try:
            file_event_publisher.publish_file_transformed(
                old_file_id=str(pk),
                new_file_id=str(new_file.id),
                operation=operation,
                owner_id=str(request.user.id),
            )
        except Exception as e:
            logger.critical(f"File {pk} was transformed, but 'file.transformed' event publishing failed: {e}")

        return Response(FileRecordSerializer(new_file).data, status=status.HTTP_201_CREATED)
