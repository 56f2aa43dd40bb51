from django.urls import include, path
from rest_framework_nested import routers

from apps.courses.viewsets import CourseViewSet

from .viewsets import ContentItemViewSet, ContentProgressView

app_name = "content"

# Base router for /courses/
router = routers.SimpleRouter()
router.register(r"courses", CourseViewSet, basename="course")

# Nested router for /courses/{course_pk}/items/
courses_router = routers.NestedSimpleRouter(router, r"courses", lookup="course")
courses_router.register(r"items", ContentItemViewSet, basename="course-item")

urlpatterns = [
    path("", include(router.urls)),
    path("", include(courses_router.urls)),
    path(
        "courses/<uuid:course_pk>/progress/",
        ContentProgressView.as_view(),
        name="course-progress",
    ),
]

# URL Structure:
# Courses:                  /api/v1/courses/
# List/Create Items:        /api/v1/courses/{course_pk}/items/
# Retrieve/Update/Delete:   /api/v1/courses/{course_pk}/items/{pk}/
# Upload/Reorder/Tree:      /api/v1/courses/{course_pk}/items/upload|reorder|tree/
# Publish:                  /api/v1/courses/{course_pk}/items/{pk}/publish/
# Track/Update access:      /api/v1/courses/{course_pk}/items/{pk}/access/ (POST/PATCH)
# Own/All access:           /api/v1/courses/{course_pk}/items/{pk}/access/me|all/
# Download/Prerequisites:   /api/v1/courses/{course_pk}/items/{pk}/download|prerequisites/
# Statistics:               /api/v1/courses/{course_pk}/items/{pk}/statistics/
# Student progress:         /api/v1/courses/{course_pk}/progress/
