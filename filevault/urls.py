from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('filevault/admin/', admin.site.urls),
    path('filevault/api/v1/', include('files.api_urls')),
]
