from rest_framework import permissions


class IsFileOwner(permissions.BasePermission):
    """
    Object-level guard: only the owner of a FileRecord may act on it.
    IDs are compared as strings to avoid UUID-vs-str mismatches.
    """

    def has_object_permission(self, request, view, obj):
        if obj.owner_id and request.user and request.user.is_authenticated:
            return str(obj.owner_id) == str(request.user.id)
        return False
