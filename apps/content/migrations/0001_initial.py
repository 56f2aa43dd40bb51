import uuid

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("courses", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ContentItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("folder", "Folder"),
                            ("file", "File"),
                            ("link", "Link"),
                            ("text", "Text"),
                            ("assignment_link", "Assignment Link"),
                            ("quiz_link", "Quiz Link"),
                        ],
                        max_length=20,
                    ),
                ),
                ("title", models.CharField(max_length=200)),
                (
                    "description",
                    models.TextField(blank=True, validators=[django.core.validators.MaxLengthValidator(5000)]),
                ),
                ("order", models.PositiveIntegerField(default=0, help_text="Position among siblings")),
                (
                    "indent_level",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Display hint only",
                        validators=[django.core.validators.MaxValueValidator(10)],
                    ),
                ),
                (
                    "file_type",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("pdf", "PDF"),
                            ("video", "Video"),
                            ("audio", "Audio"),
                            ("image", "Image"),
                            ("document", "Document"),
                            ("presentation", "Presentation"),
                            ("spreadsheet", "Spreadsheet"),
                            ("archive", "Archive"),
                            ("code", "Code"),
                            ("other", "Other"),
                        ],
                        max_length=20,
                    ),
                ),
                ("file_name", models.CharField(blank=True, max_length=255)),
                ("file_size", models.BigIntegerField(blank=True, help_text="Size in bytes", null=True)),
                ("file_url", models.CharField(blank=True, max_length=1024)),
                ("storage_path", models.CharField(blank=True, max_length=1024)),
                ("mime_type", models.CharField(blank=True, max_length=255)),
                ("external_url", models.URLField(blank=True, max_length=2048)),
                (
                    "text_content",
                    models.TextField(blank=True, validators=[django.core.validators.MaxLengthValidator(50000)]),
                ),
                ("linked_item_id", models.CharField(blank=True, max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("published", "Published"),
                            ("scheduled", "Scheduled"),
                            ("hidden", "Hidden"),
                        ],
                        db_index=True,
                        default="draft",
                        max_length=20,
                    ),
                ),
                ("visible_to_students", models.BooleanField(default=True)),
                ("available_from", models.DateTimeField(blank=True, null=True)),
                ("available_until", models.DateTimeField(blank=True, null=True)),
                ("require_previous_completion", models.BooleanField(default=False)),
                ("prerequisite_content_ids", models.JSONField(blank=True, default=list)),
                ("is_graded", models.BooleanField(default=False)),
                (
                    "points",
                    models.FloatField(
                        blank=True, null=True, validators=[django.core.validators.MinValueValidator(0)]
                    ),
                ),
                ("published_at", models.DateTimeField(blank=True, null=True)),
                (
                    "course",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="content_items",
                        to="courses.course",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="authored_content_items",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "parent",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="children",
                        to="content.contentitem",
                    ),
                ),
            ],
            options={
                "ordering": ["order", "created_at"],
                "indexes": [models.Index(fields=["course", "parent", "order"], name="content_item_tree_idx")],
            },
        ),
        migrations.CreateModel(
            name="ContentAccess",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("student_name", models.CharField(blank=True, max_length=255)),
                ("first_accessed_at", models.DateTimeField()),
                ("last_accessed_at", models.DateTimeField()),
                ("access_count", models.PositiveIntegerField(default=1)),
                ("is_completed", models.BooleanField(default=False)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "completion_percentage",
                    models.FloatField(
                        default=0,
                        validators=[
                            django.core.validators.MinValueValidator(0),
                            django.core.validators.MaxValueValidator(100),
                        ],
                    ),
                ),
                ("total_time_spent", models.PositiveIntegerField(default=0, help_text="Seconds, client reported")),
                ("download_count", models.PositiveIntegerField(default=0)),
                ("last_download_at", models.DateTimeField(blank=True, null=True)),
                (
                    "video_progress",
                    models.FloatField(
                        blank=True, null=True, validators=[django.core.validators.MinValueValidator(0)]
                    ),
                ),
                (
                    "video_duration",
                    models.FloatField(
                        blank=True, null=True, validators=[django.core.validators.MinValueValidator(0)]
                    ),
                ),
                (
                    "content_item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="access_records",
                        to="content.contentitem",
                    ),
                ),
                (
                    "course",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="content_access_records",
                        to="courses.course",
                    ),
                ),
                (
                    "student",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="content_access_records",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "content access records",
                "ordering": ["-last_accessed_at"],
                "unique_together": {("content_item", "student")},
            },
        ),
        migrations.CreateModel(
            name="ContentProgress",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("total_content_items", models.PositiveIntegerField(default=0)),
                ("completed_items", models.PositiveIntegerField(default=0)),
                ("in_progress_items", models.PositiveIntegerField(default=0)),
                ("completion_percentage", models.PositiveSmallIntegerField(default=0)),
                ("last_accessed_content_id", models.UUIDField(blank=True, null=True)),
                ("last_accessed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "course",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="content_progress",
                        to="courses.course",
                    ),
                ),
                (
                    "student",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="content_progress",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "content progress",
                "ordering": ["course", "student"],
                "unique_together": {("course", "student")},
            },
        ),
    ]
