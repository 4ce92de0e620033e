from django.urls import path
from .views import (
    FileContentAPIView,
    FileDetailAPIView,
    FileListCreateAPIView,
    FileStoreAPIView,
    FileTransformAPIView,
    UploadPushAPIView,
    UploadRequestAPIView,
)

urlpatterns = [
    path('uploads/', UploadRequestAPIView.as_view(), name='upload-request'),
    path('uploads/<str:upload_ref>/', UploadPushAPIView.as_view(), name='upload-push'),
    path('files/', FileListCreateAPIView.as_view(), name='file-list-create'),
    path('files/store/', FileStoreAPIView.as_view(), name='file-store'),
    path('files/<uuid:pk>/', FileDetailAPIView.as_view(), name='file-detail'),
    path('files/<uuid:pk>/content/', FileContentAPIView.as_view(), name='file-content'),
    path('files/<uuid:pk>/transform/', FileTransformAPIView.as_view(), name='file-transform'),
]
