"""Tests for content viewsets."""

from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from apps.content.models import ContentAccess, ContentItem, ContentProgress
from apps.courses.models import Course
from apps.enrollments.models import Enrollment

User = get_user_model()


class ContentApiTestCase(TestCase):
    """Course with an instructor, an admin, an enrolled learner and an outsider."""

    def setUp(self):
        self.client = APIClient()

        self.instructor = User.objects.create_user(username="instructor", password="testpass123")
        self.admin = User.objects.create_user(username="admin", password="testpass123", is_staff=True)
        self.learner = User.objects.create_user(username="learner", password="testpass123")
        self.outsider = User.objects.create_user(username="outsider", password="testpass123")

        self.course = Course.objects.create(
            title="Compilers", instructor=self.instructor, status=Course.Status.PUBLISHED
        )
        Enrollment.objects.create(user=self.learner, course=self.course, status=Enrollment.Status.ACTIVE)

        self.folder = ContentItem.objects.create(
            course=self.course, type=ContentItem.Type.FOLDER, title="Week 1", order=0
        )
        self.notes = ContentItem.objects.create(
            course=self.course,
            parent=self.folder,
            type=ContentItem.Type.TEXT,
            title="Lexing notes",
            text_content="Tokens...",
            status=ContentItem.Status.PUBLISHED,
            order=0,
        )
        self.hidden = ContentItem.objects.create(
            course=self.course,
            type=ContentItem.Type.LINK,
            title="Answer key",
            external_url="https://example.com/key",
            visible_to_students=False,
            order=1,
        )

    def _url(self, name, pk=None):
        kwargs = {"course_pk": self.course.pk}
        if pk is not None:
            kwargs["pk"] = pk
        return reverse(f"content:course-item-{name}", kwargs=kwargs)


class ContentItemViewSetTests(ContentApiTestCase):
    # --- Reads ---
    def test_learner_list_excludes_hidden(self):
        self.client.force_authenticate(user=self.learner)
        response = self.client.get(self._url("list"), {"include_hidden": "true"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ids = [item["id"] for item in response.data]
        self.assertEqual(ids, [str(self.folder.pk), str(self.notes.pk)])

    def test_instructor_list_can_include_hidden(self):
        self.client.force_authenticate(user=self.instructor)
        response = self.client.get(self._url("list"), {"include_hidden": "true"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn(str(self.hidden.pk), [item["id"] for item in response.data])

    def test_outsider_cannot_list(self):
        self.client.force_authenticate(user=self.outsider)
        response = self.client.get(self._url("list"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unauthenticated_cannot_list(self):
        response = self.client.get(self._url("list"))
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_learner_cannot_retrieve_hidden_item(self):
        self.client.force_authenticate(user=self.learner)
        response = self.client.get(self._url("detail", self.hidden.pk))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertIn("error", response.data)

    def test_tree_nests_children(self):
        self.client.force_authenticate(user=self.learner)
        response = self.client.get(self._url("tree"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["item"]["id"], str(self.folder.pk))
        self.assertEqual(response.data[0]["children"][0]["item"]["id"], str(self.notes.pk))

    # --- Writes ---
    def test_instructor_creates_item(self):
        self.client.force_authenticate(user=self.instructor)
        response = self.client.post(
            self._url("list"),
            {"type": "link", "title": "Dragon book", "external_url": "https://example.com/dragon", "parent_id": str(self.folder.pk)},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["status"], "draft")
        self.assertEqual(response.data["parent_id"], str(self.folder.pk))
        self.assertEqual(response.data["created_by_id"], str(self.instructor.pk))

    def test_create_with_missing_payload_returns_details(self):
        self.client.force_authenticate(user=self.instructor)
        response = self.client.post(self._url("list"), {"type": "text", "title": "Empty"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("text_content", response.data["details"])

    def test_learner_cannot_create(self):
        self.client.force_authenticate(user=self.learner)
        response = self.client.post(self._url("list"), {"type": "folder", "title": "Mine"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_partial_update(self):
        self.client.force_authenticate(user=self.instructor)
        response = self.client.patch(self._url("detail", self.notes.pk), {"title": "Lexing"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["title"], "Lexing")
        self.assertEqual(response.data["text_content"], "Tokens...")

    def test_update_rejects_type_change(self):
        self.client.force_authenticate(user=self.instructor)
        response = self.client.patch(self._url("detail", self.notes.pk), {"type": "folder"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_publish(self):
        self.client.force_authenticate(user=self.instructor)
        response = self.client.post(self._url("publish", self.hidden.pk))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "published")
        self.assertIsNotNone(response.data["published_at"])

    def test_admin_can_write(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(self._url("publish", self.notes.pk))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    @patch("apps.content.services.StorageService.delete_object")
    def test_delete_returns_both_outcomes(self, mock_delete):
        self.client.force_authenticate(user=self.instructor)
        response = self.client.delete(self._url("detail", self.folder.pk))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["metadata_deleted"])
        self.assertTrue(response.data["storage_released"])
        self.assertCountEqual(response.data["deleted_ids"], [str(self.folder.pk), str(self.notes.pk)])
        mock_delete.assert_not_called()

    @patch("apps.content.services.StorageService.save_object")
    def test_upload(self, mock_save):
        mock_save.return_value = ("courses/c/content/1_clip.mp4", "/media/courses/c/content/1_clip.mp4")
        self.client.force_authenticate(user=self.instructor)
        upload = SimpleUploadedFile("clip.mp4", b"\x00\x01", content_type="video/mp4")

        response = self.client.post(
            self._url("upload"),
            {"file": upload, "title": "Lecture 1", "parent_id": str(self.folder.pk)},
            format="multipart",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["type"], "file")
        self.assertEqual(response.data["file_type"], "video")
        self.assertEqual(response.data["status"], "published")
        self.assertEqual(response.data["title"], "Lecture 1")

    def test_reorder(self):
        self.client.force_authenticate(user=self.instructor)
        response = self.client.post(
            self._url("reorder"),
            {"item_ids": [str(self.folder.pk), str(self.hidden.pk)], "orders": [1, 0]},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item["id"] for item in response.data], [str(self.hidden.pk), str(self.folder.pk)])

    def test_reorder_length_mismatch(self):
        self.client.force_authenticate(user=self.instructor)
        response = self.client.post(
            self._url("reorder"), {"item_ids": [str(self.folder.pk)], "orders": [1, 0]}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.folder.refresh_from_db()
        self.assertEqual(self.folder.order, 0)


class ContentAccessEndpointTests(ContentApiTestCase):
    def test_track_then_update_then_progress(self):
        self.client.force_authenticate(user=self.learner)

        response = self.client.post(self._url("track-access", self.notes.pk))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["access_count"], 1)

        response = self.client.patch(
            self._url("track-access", self.notes.pk),
            {"is_completed": True, "completion_percentage": 100},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["is_completed"])
        self.assertIsNotNone(response.data["completed_at"])

        response = self.client.get(reverse("content:course-progress", kwargs={"course_pk": self.course.pk}))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["completed_items"], 1)
        self.assertEqual(response.data["total_content_items"], 1)
        self.assertEqual(response.data["completion_percentage"], 100)

    def test_update_before_track_is_not_found(self):
        self.client.force_authenticate(user=self.learner)
        response = self.client.patch(
            self._url("track-access", self.notes.pk), {"completion_percentage": 10}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_update_rejects_invalid_percentage(self):
        self.client.force_authenticate(user=self.learner)
        self.client.post(self._url("track-access", self.notes.pk))
        response = self.client.patch(
            self._url("track-access", self.notes.pk), {"completion_percentage": 150}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("completion_percentage", response.data["details"])

    def test_my_access(self):
        self.client.force_authenticate(user=self.learner)
        self.assertEqual(
            self.client.get(self._url("my-access", self.notes.pk)).status_code, status.HTTP_404_NOT_FOUND
        )

        self.client.post(self._url("track-access", self.notes.pk))
        self.client.post(self._url("track-access", self.notes.pk))
        response = self.client.get(self._url("my-access", self.notes.pk))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["access_count"], 2)
        self.assertEqual(response.data["student_id"], str(self.learner.pk))

    def test_all_access_is_instructor_only(self):
        ContentAccess.objects.create(
            course=self.course,
            content_item=self.notes,
            student=self.learner,
            first_accessed_at=self.notes.created_at,
            last_accessed_at=self.notes.created_at,
        )

        self.client.force_authenticate(user=self.learner)
        self.assertEqual(
            self.client.get(self._url("all-access", self.notes.pk)).status_code, status.HTTP_403_FORBIDDEN
        )

        self.client.force_authenticate(user=self.instructor)
        response = self.client.get(self._url("all-access", self.notes.pk))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_download_requires_file_item(self):
        self.client.force_authenticate(user=self.learner)
        response = self.client.post(self._url("download", self.notes.pk))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_download_counts(self):
        video = ContentItem.objects.create(
            course=self.course,
            type=ContentItem.Type.FILE,
            title="Video",
            file_name="v.mp4",
            storage_path="courses/c/content/1_v.mp4",
            file_url="/media/courses/c/content/1_v.mp4",
        )
        self.client.force_authenticate(user=self.learner)
        response = self.client.post(self._url("download", video.pk))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["download_count"], 1)
        self.assertEqual(response.data["file_url"], "/media/courses/c/content/1_v.mp4")

    def test_prerequisites(self):
        self.notes.prerequisite_content_ids = [str(self.hidden.pk)]
        self.notes.save()
        self.client.force_authenticate(user=self.learner)

        response = self.client.get(self._url("prerequisites", self.notes.pk))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data["met"])
        self.assertEqual(response.data["unmet_ids"], [str(self.hidden.pk)])

    def test_statistics(self):
        self.client.force_authenticate(user=self.learner)
        self.client.post(self._url("track-access", self.notes.pk))

        self.assertEqual(
            self.client.get(self._url("statistics", self.notes.pk)).status_code, status.HTTP_403_FORBIDDEN
        )

        self.client.force_authenticate(user=self.instructor)
        response = self.client.get(self._url("statistics", self.notes.pk))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["total_students"], 1)
        self.assertEqual(response.data["students_accessed"], 1)
        self.assertEqual(response.data["average_access_count"], 1.0)


class ContentProgressViewTests(ContentApiTestCase):
    def _progress_url(self):
        return reverse("content:course-progress", kwargs={"course_pk": self.course.pk})

    def test_first_read_materializes_progress(self):
        self.client.force_authenticate(user=self.learner)
        response = self.client.get(self._progress_url())

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["total_content_items"], 1)
        self.assertEqual(response.data["completed_items"], 0)
        self.assertTrue(ContentProgress.objects.filter(student=self.learner).exists())

    def test_instructor_reads_student_progress(self):
        self.client.force_authenticate(user=self.instructor)
        response = self.client.get(self._progress_url(), {"student_id": self.learner.pk})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["student_id"], str(self.learner.pk))

    def test_learner_cannot_read_other_student(self):
        self.client.force_authenticate(user=self.learner)
        response = self.client.get(self._progress_url(), {"student_id": self.instructor.pk})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_outsider_is_forbidden(self):
        self.client.force_authenticate(user=self.outsider)
        response = self.client.get(self._progress_url())
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
