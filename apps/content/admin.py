from django.contrib import admin

from .models import ContentAccess, ContentItem, ContentProgress


@admin.register(ContentItem)
class ContentItemAdmin(admin.ModelAdmin):
    list_display = ("title", "course", "type", "status", "visible_to_students", "order", "parent")
    list_filter = ("type", "status", "visible_to_students", "course")
    search_fields = ("title", "description", "file_name")
    list_select_related = ("course", "parent")
    readonly_fields = ("created_at", "updated_at", "published_at", "storage_path", "file_url")
    ordering = ("course", "parent", "order")


@admin.register(ContentAccess)
class ContentAccessAdmin(admin.ModelAdmin):
    list_display = (
        "student",
        "content_item",
        "access_count",
        "is_completed",
        "completion_percentage",
        "last_accessed_at",
    )
    list_filter = ("is_completed", "course")
    search_fields = ("student__username", "student__email", "student_name", "content_item__title")
    list_select_related = ("student", "content_item")
    readonly_fields = ("first_accessed_at", "last_accessed_at", "completed_at", "last_download_at")


@admin.register(ContentProgress)
class ContentProgressAdmin(admin.ModelAdmin):
    list_display = (
        "student",
        "course",
        "completed_items",
        "in_progress_items",
        "total_content_items",
        "completion_percentage",
        "updated_at",
    )
    list_filter = ("course",)
    search_fields = ("student__username", "student__email", "course__title")
    list_select_related = ("student", "course")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
