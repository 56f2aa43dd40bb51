"""Tests for enrollment services."""

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.test import TestCase, override_settings

from apps.courses.models import Course
from apps.enrollments.models import Enrollment
from apps.enrollments.services import RosterService

User = get_user_model()


class RosterServiceTests(TestCase):
    def setUp(self):
        self.course = Course.objects.create(title="Databases")
        self.active = User.objects.create_user(username="active", password="testpass123")
        self.completed = User.objects.create_user(username="completed", password="testpass123")
        self.pending = User.objects.create_user(username="pending", password="testpass123")
        self.cancelled = User.objects.create_user(username="cancelled", password="testpass123")

        for user, enrollment_status in (
            (self.active, Enrollment.Status.ACTIVE),
            (self.completed, Enrollment.Status.COMPLETED),
            (self.pending, Enrollment.Status.PENDING),
            (self.cancelled, Enrollment.Status.CANCELLED),
        ):
            Enrollment.objects.create(user=user, course=self.course, status=enrollment_status)

    def test_count_enrolled_counts_active_and_completed(self):
        self.assertEqual(RosterService.count_enrolled(self.course.pk), 2)

    def test_count_enrolled_for_empty_course(self):
        empty = Course.objects.create(title="Empty")
        self.assertEqual(RosterService.count_enrolled(empty.pk), 0)

    @override_settings(CONTENT_ROSTER_STATUSES=["ACTIVE"])
    def test_roster_statuses_are_configurable(self):
        self.assertEqual(RosterService.count_enrolled(self.course.pk), 1)

    def test_is_enrolled(self):
        self.assertTrue(RosterService.is_enrolled(self.active, self.course.pk))
        self.assertTrue(RosterService.is_enrolled(self.completed, self.course.pk))
        self.assertFalse(RosterService.is_enrolled(self.pending, self.course.pk))
        self.assertFalse(RosterService.is_enrolled(AnonymousUser(), self.course.pk))

    def test_enrolled_user_ids(self):
        ids = set(RosterService.enrolled_user_ids(self.course.pk).values_list("user_id", flat=True))
        self.assertEqual(ids, {self.active.pk, self.completed.pk})
