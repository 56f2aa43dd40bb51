import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxLengthValidator, MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.common.models import TimestampedModel
from apps.courses.models import Course
from apps.files.services import FileType

MAX_INDENT_LEVEL = getattr(settings, "CONTENT_MAX_INDENT_LEVEL", 10)


class ContentItem(TimestampedModel):
    """
    A node in a course's content tree. The hierarchy is only ever derived
    from ``parent``; there is no stored list of children.
    """

    class Type(models.TextChoices):
        FOLDER = "folder", _("Folder")
        FILE = "file", _("File")
        LINK = "link", _("Link")
        TEXT = "text", _("Text")
        ASSIGNMENT_LINK = "assignment_link", _("Assignment Link")
        QUIZ_LINK = "quiz_link", _("Quiz Link")

    class Status(models.TextChoices):
        DRAFT = "draft", _("Draft")
        PUBLISHED = "published", _("Published")
        SCHEDULED = "scheduled", _("Scheduled")
        HIDDEN = "hidden", _("Hidden")

    # Fields each type may carry, and the subset it must carry
    PAYLOAD_FIELDS = {
        "folder": (),
        "file": ("file_type", "file_name", "file_size", "file_url", "storage_path", "mime_type"),
        "link": ("external_url",),
        "text": ("text_content",),
        "assignment_link": ("linked_item_id",),
        "quiz_link": ("linked_item_id",),
    }
    REQUIRED_PAYLOAD_FIELDS = {
        "file": ("file_name", "storage_path"),
        "link": ("external_url",),
        "text": ("text_content",),
        "assignment_link": ("linked_item_id",),
        "quiz_link": ("linked_item_id",),
    }
    ALL_PAYLOAD_FIELDS = (
        "file_type",
        "file_name",
        "file_size",
        "file_url",
        "storage_path",
        "mime_type",
        "external_url",
        "text_content",
        "linked_item_id",
    )

    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="content_items")
    parent = models.ForeignKey(
        "self",
        on_delete=models.CASCADE,
        related_name="children",
        null=True,
        blank=True,
    )
    type = models.CharField(max_length=20, choices=Type.choices)
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, validators=[MaxLengthValidator(5000)])
    order = models.PositiveIntegerField(default=0, help_text="Position among siblings")
    indent_level = models.PositiveSmallIntegerField(
        default=0, validators=[MaxValueValidator(MAX_INDENT_LEVEL)], help_text="Display hint only"
    )

    # file payload
    file_type = models.CharField(max_length=20, choices=FileType.choices, blank=True)
    file_name = models.CharField(max_length=255, blank=True)
    file_size = models.BigIntegerField(null=True, blank=True, help_text="Size in bytes")
    file_url = models.CharField(max_length=1024, blank=True)
    storage_path = models.CharField(max_length=1024, blank=True)
    mime_type = models.CharField(max_length=255, blank=True)
    # link payload
    external_url = models.URLField(max_length=2048, blank=True)
    # text payload
    text_content = models.TextField(blank=True, validators=[MaxLengthValidator(50000)])
    # assignment_link / quiz_link payload
    linked_item_id = models.CharField(max_length=255, blank=True)

    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.DRAFT, db_index=True
    )
    visible_to_students = models.BooleanField(default=True)
    available_from = models.DateTimeField(null=True, blank=True)
    available_until = models.DateTimeField(null=True, blank=True)

    require_previous_completion = models.BooleanField(default=False)
    prerequisite_content_ids = models.JSONField(default=list, blank=True)

    is_graded = models.BooleanField(default=False)
    points = models.FloatField(null=True, blank=True, validators=[MinValueValidator(0)])

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="authored_content_items",
        null=True,
        blank=True,
    )
    published_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"{self.get_type_display()}: {self.title}"

    @property
    def is_folder(self):
        return self.type == self.Type.FOLDER

    def is_available_to_students(self, now=None) -> bool:
        """Published, visible, and inside the optional availability window."""
        now = now or timezone.now()
        if self.status != self.Status.PUBLISHED or not self.visible_to_students:
            return False
        if self.available_from and now < self.available_from:
            return False
        if self.available_until and now > self.available_until:
            return False
        return True

    def clean(self):
        errors = {}
        errors.update(self._payload_errors())

        if self.available_from and self.available_until and self.available_from > self.available_until:
            errors["available_until"] = _("Must not be earlier than available_from.")

        prerequisite_errors = self._normalize_prerequisites()
        if prerequisite_errors:
            errors["prerequisite_content_ids"] = prerequisite_errors

        if self.parent_id is not None:
            parent_error = self._parent_error()
            if parent_error:
                errors["parent_id"] = parent_error

        if errors:
            raise ValidationError(errors)

    def _payload_errors(self):
        errors = {}
        if self.type not in self.PAYLOAD_FIELDS:
            return errors
        allowed = self.PAYLOAD_FIELDS[self.type]
        for field in self.REQUIRED_PAYLOAD_FIELDS.get(self.type, ()):
            if not getattr(self, field):
                errors[field] = _("This field is required for %(type)s items.") % {"type": self.type}
        for field in self.ALL_PAYLOAD_FIELDS:
            if field not in allowed and getattr(self, field) not in (None, ""):
                errors[field] = _("Not allowed for %(type)s items.") % {"type": self.type}
        return errors

    def _normalize_prerequisites(self):
        ids = self.prerequisite_content_ids
        if ids in (None, ""):
            self.prerequisite_content_ids = []
            return None
        if not isinstance(ids, (list, tuple)):
            return _("Must be a list of content item ids.")
        normalized = []
        for value in ids:
            try:
                value = str(uuid.UUID(str(value)))
            except ValueError:
                return _("'%(value)s' is not a valid content item id.") % {"value": value}
            if self.pk and value == str(self.pk):
                return _("An item cannot be its own prerequisite.")
            if value not in normalized:
                normalized.append(value)
        self.prerequisite_content_ids = normalized
        return None

    def _parent_error(self):
        parent = ContentItem.objects.filter(pk=self.parent_id).only("id", "course_id", "type", "parent_id").first()
        if parent is None or parent.course_id != self.course_id:
            return _("Parent must be an item of the same course.")
        if parent.type != self.Type.FOLDER:
            return _("Parent must be a folder.")
        if self.pk is None:
            return None
        # Walk up from the new parent; reaching this item means a cycle.
        node, seen = parent, set()
        while node is not None and node.pk not in seen:
            if node.pk == self.pk:
                return _("An item cannot be moved under itself or one of its descendants.")
            seen.add(node.pk)
            node = (
                ContentItem.objects.filter(pk=node.parent_id).only("id", "parent_id").first()
                if node.parent_id
                else None
            )
        return None

    class Meta:
        ordering = ["order", "created_at"]
        indexes = [models.Index(fields=["course", "parent", "order"], name="content_item_tree_idx")]


class ContentAccess(TimestampedModel):
    """One student's interaction history with one content item."""

    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="content_access_records")
    content_item = models.ForeignKey(ContentItem, on_delete=models.CASCADE, related_name="access_records")
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="content_access_records"
    )
    student_name = models.CharField(max_length=255, blank=True)

    first_accessed_at = models.DateTimeField()
    last_accessed_at = models.DateTimeField()
    access_count = models.PositiveIntegerField(default=1)

    is_completed = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)
    completion_percentage = models.FloatField(
        default=0, validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    total_time_spent = models.PositiveIntegerField(default=0, help_text="Seconds, client reported")

    download_count = models.PositiveIntegerField(default=0)
    last_download_at = models.DateTimeField(null=True, blank=True)

    video_progress = models.FloatField(null=True, blank=True, validators=[MinValueValidator(0)])
    video_duration = models.FloatField(null=True, blank=True, validators=[MinValueValidator(0)])

    def __str__(self):
        return f"{self.student} accessed {self.content_item_id} ({self.access_count}x)"

    class Meta:
        unique_together = ("content_item", "student")
        ordering = ["-last_accessed_at"]
        verbose_name_plural = "content access records"


class ContentProgress(TimestampedModel):
    """
    Per (course, student) rollup over the visible content items. Rebuilt in
    full by ProgressAggregatorService.recompute; never edited directly.
    """

    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="content_progress")
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="content_progress"
    )
    total_content_items = models.PositiveIntegerField(default=0)
    completed_items = models.PositiveIntegerField(default=0)
    in_progress_items = models.PositiveIntegerField(default=0)
    completion_percentage = models.PositiveSmallIntegerField(default=0)
    last_accessed_content_id = models.UUIDField(null=True, blank=True)
    last_accessed_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"{self.student} - {self.course}: {self.completion_percentage}%"

    class Meta:
        unique_together = ("course", "student")
        ordering = ["course", "student"]
        verbose_name_plural = "content progress"
