from django.conf import settings
from rest_framework import serializers

from .models import ContentAccess, ContentItem, ContentProgress


class ContentItemSerializer(serializers.ModelSerializer):
    """
    Input and output shape of a content item. File payload fields are only
    ever written by the upload endpoint.
    """

    course_id = serializers.UUIDField(read_only=True)
    parent_id = serializers.UUIDField(required=False, allow_null=True)
    prerequisite_content_ids = serializers.ListField(
        child=serializers.UUIDField(), required=False
    )
    created_by_id = serializers.CharField(read_only=True, allow_null=True)
    type_display = serializers.CharField(source="get_type_display", read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    is_available = serializers.SerializerMethodField()

    class Meta:
        model = ContentItem
        fields = (
            "id",
            "course_id",
            "parent_id",
            "type",
            "type_display",
            "title",
            "description",
            "order",
            "indent_level",
            "file_type",
            "file_name",
            "file_size",
            "file_url",
            "mime_type",
            "external_url",
            "text_content",
            "linked_item_id",
            "status",
            "status_display",
            "visible_to_students",
            "available_from",
            "available_until",
            "is_available",
            "require_previous_completion",
            "prerequisite_content_ids",
            "is_graded",
            "points",
            "created_by_id",
            "created_at",
            "updated_at",
            "published_at",
        )
        read_only_fields = (
            "id",
            "file_type",
            "file_name",
            "file_size",
            "file_url",
            "mime_type",
            "created_at",
            "updated_at",
            "published_at",
        )

    def get_is_available(self, obj) -> bool:
        return obj.is_available_to_students()


class ContentTreeNodeSerializer(serializers.Serializer):
    """Serializes a ContentTreeNode; ``children`` recurses."""

    item = ContentItemSerializer(read_only=True)
    children = serializers.SerializerMethodField()

    def get_children(self, obj):
        return ContentTreeNodeSerializer(obj.children, many=True, context=self.context).data


class ContentUploadSerializer(serializers.Serializer):
    file = serializers.FileField()
    title = serializers.CharField(max_length=200, required=False)
    description = serializers.CharField(max_length=5000, required=False, allow_blank=True)
    parent_id = serializers.UUIDField(required=False, allow_null=True)
    order = serializers.IntegerField(min_value=0, required=False)
    indent_level = serializers.IntegerField(min_value=0, required=False)
    visible_to_students = serializers.BooleanField(required=False)
    is_graded = serializers.BooleanField(required=False)
    points = serializers.FloatField(min_value=0, required=False, allow_null=True)
    available_from = serializers.DateTimeField(required=False, allow_null=True)
    available_until = serializers.DateTimeField(required=False, allow_null=True)

    def validate_file(self, value):
        max_size = getattr(settings, "CONTENT_MAX_UPLOAD_SIZE", 500 * 1024 * 1024)
        if value.size > max_size:
            raise serializers.ValidationError(
                f"File exceeds the maximum upload size of {max_size} bytes."
            )
        return value


class ReorderSerializer(serializers.Serializer):
    item_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
    orders = serializers.ListField(child=serializers.IntegerField(min_value=0), allow_empty=False)


class ContentAccessSerializer(serializers.ModelSerializer):
    content_id = serializers.UUIDField(source="content_item_id", read_only=True)
    course_id = serializers.UUIDField(read_only=True)
    student_id = serializers.CharField(read_only=True)

    class Meta:
        model = ContentAccess
        fields = (
            "id",
            "course_id",
            "content_id",
            "student_id",
            "student_name",
            "first_accessed_at",
            "last_accessed_at",
            "access_count",
            "is_completed",
            "completed_at",
            "completion_percentage",
            "total_time_spent",
            "download_count",
            "last_download_at",
            "video_progress",
            "video_duration",
        )
        read_only_fields = fields


class AccessProgressSerializer(serializers.Serializer):
    """Client reported progress for one item; every field is optional."""

    is_completed = serializers.BooleanField(required=False)
    completion_percentage = serializers.FloatField(min_value=0, max_value=100, required=False)
    total_time_spent = serializers.IntegerField(min_value=0, required=False)
    video_progress = serializers.FloatField(min_value=0, required=False, allow_null=True)
    video_duration = serializers.FloatField(min_value=0, required=False, allow_null=True)


class ContentProgressSerializer(serializers.ModelSerializer):
    course_id = serializers.UUIDField(read_only=True)
    student_id = serializers.CharField(read_only=True)

    class Meta:
        model = ContentProgress
        fields = (
            "course_id",
            "student_id",
            "total_content_items",
            "completed_items",
            "in_progress_items",
            "completion_percentage",
            "last_accessed_content_id",
            "last_accessed_at",
            "updated_at",
        )
        read_only_fields = fields


class ContentStatisticsSerializer(serializers.Serializer):
    content_id = serializers.CharField()
    content_title = serializers.CharField()
    total_students = serializers.IntegerField()
    students_accessed = serializers.IntegerField()
    students_completed = serializers.IntegerField()
    average_access_count = serializers.FloatField()
    average_time_spent = serializers.IntegerField()
    average_completion_percentage = serializers.IntegerField()
    most_recent_access = serializers.DateTimeField(allow_null=True)
    calculated_at = serializers.DateTimeField()


class PrerequisiteStatusSerializer(serializers.Serializer):
    met = serializers.BooleanField()
    required_ids = serializers.ListField(child=serializers.CharField())
    unmet_ids = serializers.ListField(child=serializers.CharField())


class StorageReleaseSerializer(serializers.Serializer):
    path = serializers.CharField()
    released = serializers.BooleanField()
    error = serializers.CharField(allow_null=True)


class DeletionResultSerializer(serializers.Serializer):
    item_id = serializers.CharField()
    deleted_ids = serializers.ListField(child=serializers.CharField())
    metadata_deleted = serializers.BooleanField()
    storage_released = serializers.BooleanField()
    storage = StorageReleaseSerializer(many=True)
