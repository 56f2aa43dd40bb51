from rest_framework import serializers

from .models import Course


class CourseSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    instructor_id = serializers.CharField(read_only=True, allow_null=True)

    class Meta:
        model = Course
        fields = (
            "id",
            "title",
            "description",
            "instructor_id",
            "status",
            "status_display",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields
