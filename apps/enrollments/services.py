import logging

from django.conf import settings

from .models import Enrollment

logger = logging.getLogger(__name__)


def _roster_statuses() -> list[str]:
    return list(
        getattr(
            settings,
            "CONTENT_ROSTER_STATUSES",
            [Enrollment.Status.ACTIVE, Enrollment.Status.COMPLETED],
        )
    )


class RosterService:
    """Answers roster questions for the content subsystem."""

    @staticmethod
    def count_enrolled(course_id) -> int:
        """Number of students currently on the course roster."""
        return Enrollment.objects.filter(
            course_id=course_id, status__in=_roster_statuses()
        ).count()

    @staticmethod
    def is_enrolled(user, course_id) -> bool:
        if not user or not user.is_authenticated:
            return False
        return Enrollment.objects.filter(
            user=user, course_id=course_id, status__in=_roster_statuses()
        ).exists()

    @staticmethod
    def enrolled_user_ids(course_id):
        """Queryset of the user ids on the roster, usable in ``__in`` lookups."""
        return Enrollment.objects.filter(
            course_id=course_id, status__in=_roster_statuses()
        ).values("user_id")
