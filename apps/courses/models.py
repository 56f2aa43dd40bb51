from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from apps.common.models import TimestampedModel


class Course(TimestampedModel):
    """The scope every content tree, access record and roster belongs to."""

    class Status(models.TextChoices):
        DRAFT = "DRAFT", _("Draft")
        PUBLISHED = "PUBLISHED", _("Published")
        ARCHIVED = "ARCHIVED", _("Archived")

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    instructor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="courses_authored",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    status = models.CharField(
        max_length=10, choices=Status.choices, default=Status.DRAFT, db_index=True
    )

    def __str__(self):
        return self.title

    def is_instructor(self, user) -> bool:
        """True for the course instructor and for staff users."""
        if not user or not user.is_authenticated:
            return False
        return user.is_staff or (self.instructor_id is not None and self.instructor_id == user.pk)

    class Meta:
        ordering = ["title"]
