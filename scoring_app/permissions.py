from rest_framework.permissions import BasePermission, SAFE_METHODS


class IsHR(BasePermission):
    def has_permission(self, request, view):
        return request.user.role == "HR"

class IsAdmin(BasePermission):
    def has_permission(self, request, view):
        return request.user.role == "ADMIN"

class IsManager(BasePermission):
    def has_permission(self, request, view):
        return request.user.role == "MANAGER"


class IsAdminOrHR(BasePermission):
    """
    Grants permission when the user is ADMIN **or** HR.
    """
    def has_permission(self, request, view):
        return request.user.role in ("ADMIN", "HR")


class ReadOnlyOrAdminHR(BasePermission):
    """
    - SAFE methods (GET / HEAD / OPTIONS) → every tenant user.
    - Mutating methods (POST / PUT / PATCH / DELETE) → Admin or HR only.
    """
    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return request.user.role in ("ADMIN", "HR")


class BelongsToTenant(BasePermission):
    """
    Objects carrying a ``company_id`` are only reachable by users of that company.
    """
    message = "This record belongs to another company."

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.company_id)

    def has_object_permission(self, request, view, obj):
        return str(getattr(obj, "company_id", "")) == str(request.user.company_id)
