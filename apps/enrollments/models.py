from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from apps.common.models import TimestampedModel
from apps.courses.models import Course


class Enrollment(TimestampedModel):
    """A student's membership in a course roster."""

    class Status(models.TextChoices):
        PENDING = "PENDING", _("Pending")  # E.g., waiting for approval or payment
        ACTIVE = "ACTIVE", _("Active")
        COMPLETED = "COMPLETED", _("Completed")
        CANCELLED = "CANCELLED", _("Cancelled")  # User dropped or admin removed

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="enrollments"
    )
    course = models.ForeignKey(
        Course, on_delete=models.CASCADE, related_name="enrollments"
    )
    status = models.CharField(
        max_length=15, choices=Status.choices, default=Status.ACTIVE, db_index=True
    )

    def __str__(self):
        return f"{self.user} enrolled in {self.course.title}"

    class Meta:
        unique_together = ("user", "course")  # User can only enroll once in a course
        ordering = ["course__title"]
