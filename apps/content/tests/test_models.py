"""Tests for content models."""

from datetime import datetime, timedelta, timezone as dt_timezone

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import TestCase

from apps.content.models import ContentItem
from apps.courses.models import Course

User = get_user_model()

NOW = datetime(2024, 5, 10, 12, 0, tzinfo=dt_timezone.utc)


class ContentItemAvailabilityTests(TestCase):
    def setUp(self):
        self.course = Course.objects.create(title="Algorithms")
        self.item = ContentItem(
            course=self.course,
            type=ContentItem.Type.TEXT,
            title="Notes",
            text_content="...",
            status=ContentItem.Status.PUBLISHED,
        )

    def test_published_and_visible_is_available(self):
        self.assertTrue(self.item.is_available_to_students(NOW))

    def test_draft_is_not_available(self):
        self.item.status = ContentItem.Status.DRAFT
        self.assertFalse(self.item.is_available_to_students(NOW))

    def test_hidden_flag_wins_over_status(self):
        self.item.visible_to_students = False
        self.assertFalse(self.item.is_available_to_students(NOW))

    def test_window_bounds(self):
        self.item.available_from = NOW + timedelta(hours=1)
        self.assertFalse(self.item.is_available_to_students(NOW))
        self.assertTrue(self.item.is_available_to_students(NOW + timedelta(hours=2)))

        self.item.available_until = NOW + timedelta(hours=3)
        self.assertFalse(self.item.is_available_to_students(NOW + timedelta(hours=4)))


class ContentItemValidationTests(TestCase):
    def setUp(self):
        self.course = Course.objects.create(title="Algorithms")

    def build(self, **kwargs):
        kwargs.setdefault("title", "Item")
        return ContentItem(course=self.course, **kwargs)

    def assertInvalid(self, item, field):
        with self.assertRaises(ValidationError) as ctx:
            item.full_clean()
        self.assertIn(field, ctx.exception.message_dict)

    def test_folder_without_payload_is_valid(self):
        self.build(type=ContentItem.Type.FOLDER).full_clean()

    def test_required_payload_per_type(self):
        self.assertInvalid(self.build(type=ContentItem.Type.LINK), "external_url")
        self.assertInvalid(self.build(type=ContentItem.Type.TEXT), "text_content")
        self.assertInvalid(self.build(type=ContentItem.Type.QUIZ_LINK), "linked_item_id")
        self.assertInvalid(self.build(type=ContentItem.Type.FILE, file_name="a.pdf"), "storage_path")

    def test_foreign_payload_rejected(self):
        item = self.build(type=ContentItem.Type.LINK, external_url="https://example.com", text_content="x")
        self.assertInvalid(item, "text_content")

    def test_title_length(self):
        self.assertInvalid(self.build(type=ContentItem.Type.FOLDER, title=""), "title")
        self.assertInvalid(self.build(type=ContentItem.Type.FOLDER, title="x" * 201), "title")

    def test_text_content_limit(self):
        item = self.build(type=ContentItem.Type.TEXT, text_content="x" * 50001)
        self.assertInvalid(item, "text_content")

    def test_negative_points_rejected(self):
        self.assertInvalid(self.build(type=ContentItem.Type.FOLDER, points=-1), "points")

    def test_prerequisite_ids_are_normalized(self):
        other = ContentItem.objects.create(course=self.course, type=ContentItem.Type.FOLDER, title="Other")
        item = self.build(
            type=ContentItem.Type.FOLDER,
            prerequisite_content_ids=[str(other.pk).upper(), str(other.pk)],
        )
        item.full_clean()
        self.assertEqual(item.prerequisite_content_ids, [str(other.pk)])

    def test_malformed_prerequisite_id_rejected(self):
        item = self.build(type=ContentItem.Type.FOLDER, prerequisite_content_ids=["nope"])
        self.assertInvalid(item, "prerequisite_content_ids")

    def test_parent_must_be_folder(self):
        text = ContentItem.objects.create(
            course=self.course, type=ContentItem.Type.TEXT, title="Text", text_content="x"
        )
        self.assertInvalid(self.build(type=ContentItem.Type.FOLDER, parent=text), "parent_id")
