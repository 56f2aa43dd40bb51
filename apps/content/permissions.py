from rest_framework import permissions

from apps.enrollments.services import RosterService


def _course_for(view):
    # Views under /courses/{course_pk}/ expose get_course(), which 404s.
    return view.get_course()


class IsCourseInstructorOrAdmin(permissions.BasePermission):
    """
    Allows access only to the instructor of the course in the URL or an admin user.
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return _course_for(view).is_instructor(user)


class IsEnrolledOrInstructorOrAdmin(permissions.BasePermission):
    """
    Allows access if the user is enrolled in the course, is the instructor, or is an admin.
    Used for reading content and tracking one's own access.
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        course = _course_for(view)
        if course.is_instructor(user):
            return True
        return RosterService.is_enrolled(user, course.pk)
