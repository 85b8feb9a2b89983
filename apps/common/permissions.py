from rest_framework.permissions import BasePermission

from apps.common.exceptions import NotAuthorized
from apps.common.principals import Admin, Faculty, Student, principal_for


class _PrincipalPermission(BasePermission):
    principal_types: tuple = ()

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if not isinstance(principal_for(user), self.principal_types):
            raise NotAuthorized(self.message)
        return True


class IsStudent(_PrincipalPermission):
    """Allow only authenticated users with role 'student'."""

    message = "Only students can perform this action"
    principal_types = (Student,)


class IsFaculty(_PrincipalPermission):
    """Allow only authenticated users with role 'faculty'."""

    message = "Only faculty can perform this action"
    principal_types = (Faculty,)


class IsAdminRole(_PrincipalPermission):
    """Allow only admins (role 'admin' or staff accounts)."""

    message = "Admin privileges required"
    principal_types = (Admin,)
