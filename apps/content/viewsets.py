import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.http import Http404
from django.shortcuts import get_object_or_404
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.courses.models import Course

from .models import ContentItem
from .permissions import IsCourseInstructorOrAdmin, IsEnrolledOrInstructorOrAdmin
from .serializers import (
    AccessProgressSerializer,
    ContentAccessSerializer,
    ContentItemSerializer,
    ContentProgressSerializer,
    ContentStatisticsSerializer,
    ContentTreeNodeSerializer,
    ContentUploadSerializer,
    DeletionResultSerializer,
    PrerequisiteStatusSerializer,
    ReorderSerializer,
)
from .services import (
    AccessTrackerService,
    ContentCatalogService,
    ContentDependencyError,
    ContentError,
    ContentNotFound,
    InvalidContentError,
    ProgressAggregatorService,
    ReorderService,
    StatisticsService,
)

logger = logging.getLogger(__name__)

UUID_REGEX = "[0-9a-fA-F-]{36}"

INCLUDE_HIDDEN_PARAMETER = OpenApiParameter(
    "include_hidden",
    OpenApiTypes.BOOL,
    description="Instructors only: include items not visible to students.",
)


def content_error_response(exc: ContentError) -> Response:
    """Translate a service exception into an API error body."""
    if isinstance(exc, ContentNotFound):
        return Response({"error": str(exc), "details": {}}, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, InvalidContentError):
        return Response({"error": str(exc), "details": exc.errors}, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, ContentDependencyError):
        return Response({"error": str(exc), "details": {}}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
    logger.error(f"Unhandled content error: {exc}")
    return Response({"error": str(exc), "details": {}}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


def _flag(value) -> bool:
    return str(value).lower() in ("1", "true", "yes")


class CourseScopedMixin:
    """Resolves the course from the ``course_pk`` URL kwarg and maps service errors."""

    def get_course(self) -> Course:
        if not hasattr(self, "_course"):
            self._course = get_object_or_404(Course, pk=self.kwargs.get("course_pk"))
        return self._course

    def is_course_instructor(self) -> bool:
        return self.get_course().is_instructor(self.request.user)

    def handle_exception(self, exc):
        if isinstance(exc, ContentError):
            return content_error_response(exc)
        return super().handle_exception(exc)


@extend_schema(tags=["Course Content"])
class ContentItemViewSet(CourseScopedMixin, viewsets.ModelViewSet):
    """
    API endpoint for the content tree of a course.
    Accessed via nested routes like /api/v1/courses/{course_pk}/items/
    Enrolled students read visible items and track their own access;
    writes, hidden items, and per-item reporting need the course instructor.
    """

    serializer_class = ContentItemSerializer
    permission_classes = [permissions.IsAuthenticated, IsCourseInstructorOrAdmin]  # Default, overridden in get_permissions
    lookup_value_regex = UUID_REGEX

    student_actions = (
        "list",
        "retrieve",
        "tree",
        "track_access",
        "update_access",
        "my_access",
        "download",
        "prerequisites",
    )

    def get_permissions(self):
        if self.action in self.student_actions:
            return [permissions.IsAuthenticated(), IsEnrolledOrInstructorOrAdmin()]
        return [permissions.IsAuthenticated(), IsCourseInstructorOrAdmin()]

    def get_queryset(self):
        # Handle schema generation request
        if getattr(self, "swagger_fake_view", False):
            return ContentItem.objects.none()
        return ContentItem.objects.filter(course_id=self.kwargs.get("course_pk"))

    def _include_hidden(self) -> bool:
        return self.is_course_instructor() and _flag(self.request.query_params.get("include_hidden"))

    def _get_item(self, pk) -> ContentItem:
        item = ContentCatalogService.get_item(self.get_course().pk, pk)
        if not item.visible_to_students and not self.is_course_instructor():
            raise ContentNotFound(f"Content item {pk} not found.")
        return item

    def _validated(self, serializer_class, data, **kwargs):
        serializer = serializer_class(data=data, context=self.get_serializer_context(), **kwargs)
        if not serializer.is_valid():
            raise InvalidContentError(serializer.errors)
        return serializer.validated_data

    @extend_schema(parameters=[INCLUDE_HIDDEN_PARAMETER])
    def list(self, request, *args, **kwargs):
        items = ContentCatalogService.list_items(self.get_course().pk, include_hidden=self._include_hidden())
        return Response(self.get_serializer(items, many=True).data)

    def retrieve(self, request, pk=None, **kwargs):
        return Response(self.get_serializer(self._get_item(pk)).data)

    def create(self, request, *args, **kwargs):
        data = self._validated(ContentItemSerializer, request.data)
        item = ContentCatalogService.create_item(self.get_course().pk, request.user, data)
        return Response(self.get_serializer(item).data, status=status.HTTP_201_CREATED)

    def update(self, request, pk=None, **kwargs):
        partial = kwargs.pop("partial", False)
        data = self._validated(ContentItemSerializer, request.data, partial=partial)
        item = ContentCatalogService.update_item(self.get_course().pk, pk, data)
        return Response(self.get_serializer(item).data)

    @extend_schema(responses={200: DeletionResultSerializer})
    def destroy(self, request, pk=None, **kwargs):
        result = ContentCatalogService.delete_item(self.get_course().pk, pk)
        return Response(DeletionResultSerializer(result).data)

    @extend_schema(request=None, responses={200: ContentItemSerializer})
    @action(detail=True, methods=["post"])
    def publish(self, request, pk=None, **kwargs):
        item = ContentCatalogService.publish_item(self.get_course().pk, pk)
        return Response(self.get_serializer(item).data)

    @extend_schema(
        request=ContentUploadSerializer,
        responses={201: ContentItemSerializer},
        summary="Upload a file as a published content item",
    )
    @action(detail=False, methods=["post"], parser_classes=[MultiPartParser, FormParser])
    def upload(self, request, **kwargs):
        data = dict(self._validated(ContentUploadSerializer, request.data))
        uploaded_file = data.pop("file")
        item = ContentCatalogService.upload_file(self.get_course().pk, request.user, uploaded_file, data)
        return Response(self.get_serializer(item).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        request=ReorderSerializer,
        responses={200: ContentItemSerializer(many=True)},
        summary="Assign new sibling orders in one transaction",
    )
    @action(detail=False, methods=["post"])
    def reorder(self, request, **kwargs):
        data = self._validated(ReorderSerializer, request.data)
        items = ReorderService.reorder(self.get_course().pk, data["item_ids"], data["orders"])
        return Response(self.get_serializer(items, many=True).data)

    @extend_schema(parameters=[INCLUDE_HIDDEN_PARAMETER], responses={200: ContentTreeNodeSerializer(many=True)})
    @action(detail=False, methods=["get"])
    def tree(self, request, **kwargs):
        nodes = ContentCatalogService.tree(self.get_course().pk, include_hidden=self._include_hidden())
        return Response(ContentTreeNodeSerializer(nodes, many=True, context=self.get_serializer_context()).data)

    # --- Access tracking ---

    @extend_schema(request=None, responses={200: ContentAccessSerializer}, summary="Record an access")
    @action(detail=True, methods=["post"], url_path="access")
    def track_access(self, request, pk=None, **kwargs):
        item = self._get_item(pk)
        access = AccessTrackerService.track_access(self.get_course().pk, item.pk, request.user)
        return Response(ContentAccessSerializer(access).data)

    @extend_schema(request=AccessProgressSerializer, responses={200: ContentAccessSerializer})
    @track_access.mapping.patch
    def update_access(self, request, pk=None, **kwargs):
        item = self._get_item(pk)
        data = self._validated(AccessProgressSerializer, request.data)
        access = AccessTrackerService.update_progress(self.get_course().pk, item.pk, request.user, data)
        return Response(ContentAccessSerializer(access).data)

    @extend_schema(responses={200: ContentAccessSerializer})
    @action(detail=True, methods=["get"], url_path="access/me", url_name="my-access")
    def my_access(self, request, pk=None, **kwargs):
        item = self._get_item(pk)
        access = AccessTrackerService.get_for_student(self.get_course().pk, item.pk, request.user)
        if access is None:
            raise ContentNotFound(f"No access record for content item {pk}.")
        return Response(ContentAccessSerializer(access).data)

    @extend_schema(responses={200: ContentAccessSerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="access/all", url_name="all-access")
    def all_access(self, request, pk=None, **kwargs):
        records = AccessTrackerService.get_all_for_item(self.get_course().pk, pk)
        return Response(ContentAccessSerializer(records, many=True).data)

    @extend_schema(request=None, responses={200: ContentAccessSerializer}, summary="Record a download")
    @action(detail=True, methods=["post"])
    def download(self, request, pk=None, **kwargs):
        item = self._get_item(pk)
        if item.type != ContentItem.Type.FILE:
            raise InvalidContentError({"type": ["Only file items can be downloaded."]})
        access = AccessTrackerService.record_download(self.get_course().pk, item.pk, request.user)
        data = ContentAccessSerializer(access).data
        data["file_url"] = item.file_url
        return Response(data)

    @extend_schema(responses={200: PrerequisiteStatusSerializer})
    @action(detail=True, methods=["get"])
    def prerequisites(self, request, pk=None, **kwargs):
        item = self._get_item(pk)
        result = AccessTrackerService.prerequisite_status(self.get_course().pk, item.pk, request.user)
        return Response(PrerequisiteStatusSerializer(result).data)

    @extend_schema(responses={200: ContentStatisticsSerializer})
    @action(detail=True, methods=["get"])
    def statistics(self, request, pk=None, **kwargs):
        stats = StatisticsService.compute(self.get_course().pk, pk)
        return Response(ContentStatisticsSerializer(stats).data)


@extend_schema(tags=["Course Content"])
class ContentProgressView(CourseScopedMixin, APIView):
    """
    Progress of the requesting student in a course. Instructors may pass
    ``student_id`` to read another student's progress.
    """

    permission_classes = [permissions.IsAuthenticated, IsEnrolledOrInstructorOrAdmin]

    def _student(self, request):
        student_id = request.query_params.get("student_id")
        if not student_id or str(student_id) == str(request.user.pk):
            return request.user
        if not self.is_course_instructor():
            raise Http404("Student not found.")
        try:
            return get_user_model().objects.get(pk=student_id)
        except (get_user_model().DoesNotExist, ValueError, ValidationError):
            raise Http404("Student not found.")

    @extend_schema(
        parameters=[OpenApiParameter("student_id", OpenApiTypes.STR, description="Instructors only.")],
        responses={200: ContentProgressSerializer},
    )
    def get(self, request, course_pk=None):
        progress = ProgressAggregatorService.get(self.get_course().pk, self._student(request))
        return Response(ContentProgressSerializer(progress).data)
