import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from apps.common.utils import round_half_up, sanitize_filename
from apps.courses.models import Course
from apps.enrollments.services import RosterService
from apps.files.services import (
    StorageError,
    StorageService,
    classify_file_type,
    guess_mime_type,
)

from .models import ContentAccess, ContentItem, ContentProgress

logger = logging.getLogger(__name__)

# Fields an author may set through create/update; payload fields of the file
# variant are only written by upload_file.
EDITABLE_FIELDS = (
    "type",
    "title",
    "description",
    "parent_id",
    "order",
    "indent_level",
    "external_url",
    "text_content",
    "linked_item_id",
    "status",
    "visible_to_students",
    "available_from",
    "available_until",
    "require_previous_completion",
    "prerequisite_content_ids",
    "is_graded",
    "points",
)

PROGRESS_FIELDS = (
    "is_completed",
    "completion_percentage",
    "total_time_spent",
    "video_progress",
    "video_duration",
)


class ContentError(Exception):
    """Base class for content subsystem failures."""


class ContentNotFound(ContentError):
    pass


class InvalidContentError(ContentError):
    def __init__(self, errors: Dict[str, object], message: str = "Invalid content data."):
        super().__init__(message)
        self.errors = errors


class ContentDependencyError(ContentError):
    """The database or the binary storage failed underneath an operation."""


@dataclass
class StorageRelease:
    path: str
    released: bool
    error: Optional[str] = None


@dataclass
class DeletionResult:
    """Outcome of both phases of a delete: binary release and metadata removal."""

    item_id: str
    deleted_ids: List[str] = field(default_factory=list)
    metadata_deleted: bool = False
    storage: List[StorageRelease] = field(default_factory=list)

    @property
    def storage_released(self) -> bool:
        return all(release.released for release in self.storage)


@dataclass
class ContentTreeNode:
    item: ContentItem
    children: List["ContentTreeNode"] = field(default_factory=list)


@dataclass
class PrerequisiteStatus:
    met: bool
    required_ids: List[str]
    unmet_ids: List[str]


@dataclass
class ContentStatistics:
    content_id: str
    content_title: str
    total_students: int
    students_accessed: int
    students_completed: int
    average_access_count: float
    average_time_spent: int
    average_completion_percentage: int
    most_recent_access: Optional[datetime]
    calculated_at: datetime


def _validate(instance, exclude=None):
    try:
        instance.full_clean(exclude=exclude, validate_unique=False)
    except ValidationError as e:
        raise InvalidContentError(e.message_dict) from e


def _save(instance, **kwargs):
    try:
        instance.save(**kwargs)
    except DatabaseError as e:
        logger.error(f"Database error saving {instance.__class__.__name__} {instance.pk}: {e}", exc_info=True)
        raise ContentDependencyError(f"Failed to save {instance.__class__.__name__}.") from e


def _editable(data: dict) -> dict:
    fields = {key: value for key, value in data.items() if key in EDITABLE_FIELDS}
    if isinstance(fields.get("prerequisite_content_ids"), (list, tuple)):
        fields["prerequisite_content_ids"] = [str(pk) for pk in fields["prerequisite_content_ids"]]
    return fields


def _student_name(student) -> str:
    full_name = student.get_full_name() if hasattr(student, "get_full_name") else ""
    return full_name or student.get_username()


class ContentCatalogService:
    """Authoring operations on a course's content tree."""

    @staticmethod
    def get_course(course_id) -> Course:
        try:
            return Course.objects.get(pk=course_id)
        except (Course.DoesNotExist, ValidationError, ValueError):
            raise ContentNotFound(f"Course {course_id} not found.")

    @staticmethod
    def create_item(course_id, author, data: dict, now=None) -> ContentItem:
        """
        Create an item from the author supplied fields. Defaults (order 0,
        indent 0, draft, visible) come from the model.
        """
        now = now or timezone.now()
        course = ContentCatalogService.get_course(course_id)
        fields = _editable(data)

        item = ContentItem(
            course=course,
            created_by=author if author is not None and author.is_authenticated else None,
            created_at=now,
            updated_at=now,
            **fields,
        )
        if item.status == ContentItem.Status.PUBLISHED:
            item.published_at = now
        _validate(item, exclude=["course", "parent", "created_by"])
        _save(item)
        logger.info(f"Content item {item.id} ({item.type}) created in course {course_id}")
        return item

    @staticmethod
    def list_items(course_id, include_hidden=False) -> List[ContentItem]:
        items = ContentItem.objects.filter(course_id=course_id).order_by()
        if not include_hidden:
            items = items.filter(visible_to_students=True)
        return sorted(items, key=lambda item: (item.order, item.created_at))

    @staticmethod
    def get_item(course_id, item_id) -> ContentItem:
        try:
            return ContentItem.objects.get(pk=item_id, course_id=course_id)
        except (ContentItem.DoesNotExist, ValidationError, ValueError):
            raise ContentNotFound(f"Content item {item_id} not found in course {course_id}.")

    @staticmethod
    def update_item(course_id, item_id, patch: dict, now=None) -> ContentItem:
        """Merge the provided fields into the item. ``type`` cannot change."""
        now = now or timezone.now()
        item = ContentCatalogService.get_item(course_id, item_id)

        if "type" in patch and patch["type"] != item.type:
            raise InvalidContentError({"type": ["Content type cannot be changed."]})

        for key, value in _editable(patch).items():
            if key != "type":
                setattr(item, key, value)
        if item.status == ContentItem.Status.PUBLISHED and item.published_at is None:
            item.published_at = now
        item.updated_at = now

        _validate(item, exclude=["course", "parent", "created_by"])
        _save(item)
        logger.info(f"Content item {item.id} updated ({', '.join(sorted(patch)) or 'no fields'})")
        return item

    @staticmethod
    def publish_item(course_id, item_id, now=None) -> ContentItem:
        now = now or timezone.now()
        item = ContentCatalogService.get_item(course_id, item_id)
        item.status = ContentItem.Status.PUBLISHED
        item.published_at = now
        item.updated_at = now
        _save(item, update_fields=["status", "published_at", "updated_at"])
        logger.info(f"Content item {item.id} published at {now.isoformat()}")
        return item

    @staticmethod
    def delete_item(course_id, item_id) -> DeletionResult:
        """
        Delete an item and, for folders, its whole subtree.

        Binaries are released first and each release is reported in the
        result; a failed release does not stop the metadata delete.
        """
        item = ContentCatalogService.get_item(course_id, item_id)
        result = DeletionResult(item_id=str(item.pk))

        rows = ContentItem.objects.filter(course_id=course_id).values_list("id", "parent_id", "storage_path")
        children = defaultdict(list)
        storage_paths = {}
        for row_id, parent_id, storage_path in rows:
            children[parent_id].append(row_id)
            storage_paths[row_id] = storage_path

        subtree, stack = [], [item.pk]
        while stack:
            current = stack.pop()
            if current in subtree:
                continue
            subtree.append(current)
            stack.extend(children.get(current, []))

        for node_id in subtree:
            path = storage_paths.get(node_id)
            if not path:
                continue
            try:
                StorageService.delete_object(path)
                result.storage.append(StorageRelease(path=path, released=True))
            except StorageError as e:
                logger.error(f"Failed to release binary {path} of content item {node_id}: {e}", exc_info=True)
                result.storage.append(StorageRelease(path=path, released=False, error=str(e)))

        try:
            with transaction.atomic():
                ContentItem.objects.filter(pk__in=subtree).delete()
        except DatabaseError as e:
            logger.error(f"Failed to delete content item {item.pk}: {e}", exc_info=True)
            raise ContentDependencyError(f"Failed to delete content item {item.pk}.") from e

        result.metadata_deleted = True
        result.deleted_ids = [str(node_id) for node_id in subtree]
        logger.info(
            f"Deleted content item {item.pk} with {len(subtree) - 1} descendant(s); "
            f"{sum(1 for r in result.storage if not r.released)} binary release failure(s)"
        )
        return result

    @staticmethod
    def upload_file(course_id, author, uploaded_file, metadata: Optional[dict] = None, now=None) -> ContentItem:
        """
        Store an uploaded binary and create a published ``file`` item for it.
        The binary is removed again if the item cannot be saved.
        """
        now = now or timezone.now()
        metadata = dict(metadata or {})
        course = ContentCatalogService.get_course(course_id)

        max_size = getattr(settings, "CONTENT_MAX_UPLOAD_SIZE", 500 * 1024 * 1024)
        if uploaded_file.size > max_size:
            raise InvalidContentError(
                {"file": [f"File exceeds the maximum upload size of {max_size} bytes."]}
            )

        file_name = metadata.pop("file_name", None) or uploaded_file.name
        mime_type = guess_mime_type(file_name, getattr(uploaded_file, "content_type", None))
        prefix = getattr(settings, "CONTENT_STORAGE_PREFIX", "courses")
        path = f"{prefix}/{course.pk}/content/{int(now.timestamp() * 1000)}_{sanitize_filename(file_name)}"

        fields = _editable(metadata)
        fields.pop("type", None)
        fields.pop("status", None)
        fields.setdefault("title", file_name[:200])

        item = ContentItem(
            course=course,
            type=ContentItem.Type.FILE,
            status=ContentItem.Status.PUBLISHED,
            published_at=now,
            file_type=classify_file_type(mime_type, file_name),
            file_name=file_name,
            file_size=uploaded_file.size,
            storage_path=path,
            mime_type=mime_type,
            created_by=author if author is not None and author.is_authenticated else None,
            created_at=now,
            updated_at=now,
            **fields,
        )
        _validate(item, exclude=["course", "parent", "created_by"])

        try:
            stored_path, url = StorageService.save_object(path, uploaded_file, mime_type)
        except StorageError as e:
            logger.error(f"Upload of {file_name} to course {course.pk} failed: {e}")
            raise ContentDependencyError(f"Failed to store {file_name}.") from e

        item.storage_path = stored_path
        item.file_url = url
        try:
            _save(item)
        except ContentDependencyError:
            try:
                StorageService.delete_object(stored_path)
            except StorageError as cleanup_error:
                logger.error(f"Failed to clean up orphaned upload {stored_path}: {cleanup_error}")
            raise

        logger.info(f"Uploaded {file_name} ({item.file_type}, {item.file_size} bytes) as content item {item.id}")
        return item

    @staticmethod
    def tree(course_id, include_hidden=False) -> List[ContentTreeNode]:
        """
        Rebuild the forest from ``parent_id``. Items whose parent is not in
        the listing (hidden, or a dangling reference) are placed at the root,
        as is the first item of any parent cycle left in stored data.
        """
        items = ContentCatalogService.list_items(course_id, include_hidden=include_hidden)
        present = {item.pk for item in items}
        by_parent = defaultdict(list)
        for item in items:
            by_parent[item.parent_id if item.parent_id in present else None].append(item)

        emitted = set()

        def node(item):
            emitted.add(item.pk)
            return ContentTreeNode(item=item, children=build(item.pk))

        def build(parent_id):
            return [node(item) for item in by_parent.get(parent_id, []) if item.pk not in emitted]

        roots = build(None)
        for item in items:
            if item.pk not in emitted:
                logger.warning(f"Content item {item.pk} is part of a parent cycle; placing it at the root")
                roots.append(node(item))
        return roots


class AccessTrackerService:
    """Per (item, student) access records."""

    @staticmethod
    def _touch(item: ContentItem, student, now, download=False) -> ContentAccess:
        with transaction.atomic():
            access, created = ContentAccess.objects.get_or_create(
                content_item=item,
                student=student,
                defaults={
                    "course_id": item.course_id,
                    "student_name": _student_name(student),
                    "first_accessed_at": now,
                    "last_accessed_at": now,
                    "access_count": 1,
                    "download_count": 1 if download else 0,
                    "last_download_at": now if download else None,
                    "created_at": now,
                    "updated_at": now,
                },
            )
            if not created:
                changes = {
                    "access_count": F("access_count") + 1,
                    "last_accessed_at": now,
                    "updated_at": now,
                }
                if download:
                    changes["download_count"] = F("download_count") + 1
                    changes["last_download_at"] = now
                ContentAccess.objects.filter(pk=access.pk).update(**changes)
                access.refresh_from_db()
        return access

    @staticmethod
    def track_access(course_id, item_id, student, now=None) -> ContentAccess:
        """Create the record on first access, otherwise bump count and last access."""
        now = now or timezone.now()
        item = ContentCatalogService.get_item(course_id, item_id)
        try:
            access = AccessTrackerService._touch(item, student, now)
        except DatabaseError as e:
            raise ContentDependencyError(f"Failed to record access to {item_id}.") from e
        logger.debug(f"Student {student.pk} accessed {item.pk} (count={access.access_count})")
        ProgressAggregatorService.recompute(course_id, student, now=now)
        return access

    @staticmethod
    def record_download(course_id, item_id, student, now=None) -> ContentAccess:
        now = now or timezone.now()
        item = ContentCatalogService.get_item(course_id, item_id)
        try:
            access = AccessTrackerService._touch(item, student, now, download=True)
        except DatabaseError as e:
            raise ContentDependencyError(f"Failed to record download of {item_id}.") from e
        ProgressAggregatorService.recompute(course_id, student, now=now)
        return access

    @staticmethod
    def update_progress(course_id, item_id, student, patch: dict, now=None) -> ContentAccess:
        """
        Apply client reported progress. The record must already exist.
        Completion is one-way: ``completed_at`` is stamped on the first
        transition to completed and a later ``is_completed=False`` is ignored.
        """
        now = now or timezone.now()
        item = ContentCatalogService.get_item(course_id, item_id)
        try:
            access = ContentAccess.objects.get(content_item=item, student=student)
        except ContentAccess.DoesNotExist:
            raise ContentNotFound(f"No access record for student {student.pk} on item {item_id}.")
        except DatabaseError as e:
            raise ContentDependencyError(f"Failed to load access record for {item_id}.") from e

        changed = []
        for key in PROGRESS_FIELDS:
            if key not in patch or key == "is_completed":
                continue
            setattr(access, key, patch[key])
            changed.append(key)

        if patch.get("is_completed") is True and not access.is_completed:
            access.is_completed = True
            access.completed_at = now
            changed += ["is_completed", "completed_at"]
        elif patch.get("is_completed") is False and access.is_completed:
            logger.debug(f"Ignoring completion regression for student {student.pk} on item {item.pk}")

        access.updated_at = now
        _validate(access, exclude=["course", "content_item", "student"])
        # Counters are owned by _touch; write only the patched columns.
        _save(access, update_fields=changed + ["updated_at"])
        try:
            access.refresh_from_db()
        except DatabaseError as e:
            raise ContentDependencyError(f"Failed to reload access record for {item_id}.") from e
        ProgressAggregatorService.recompute(course_id, student, now=now)
        return access

    @staticmethod
    def get_for_student(course_id, item_id, student) -> Optional[ContentAccess]:
        item = ContentCatalogService.get_item(course_id, item_id)
        return ContentAccess.objects.filter(content_item=item, student=student).first()

    @staticmethod
    def get_all_for_item(course_id, item_id) -> List[ContentAccess]:
        item = ContentCatalogService.get_item(course_id, item_id)
        return list(ContentAccess.objects.filter(content_item=item).select_related("student"))

    @staticmethod
    def prerequisite_status(course_id, item_id, student) -> PrerequisiteStatus:
        """
        Advisory only. Lists the explicit prerequisites plus, with
        ``require_previous_completion``, the preceding non-folder sibling.
        """
        item = ContentCatalogService.get_item(course_id, item_id)
        required = [str(pk) for pk in item.prerequisite_content_ids or []]

        if item.require_previous_completion:
            previous = (
                ContentItem.objects.filter(course_id=course_id, parent_id=item.parent_id, order__lt=item.order)
                .exclude(type=ContentItem.Type.FOLDER)
                .exclude(pk=item.pk)
                .order_by("-order", "-created_at")
                .first()
            )
            if previous is not None and str(previous.pk) not in required:
                required.append(str(previous.pk))

        completed = {
            str(pk)
            for pk in ContentAccess.objects.filter(
                student=student, content_item_id__in=required, is_completed=True
            ).values_list("content_item_id", flat=True)
        }
        unmet = [pk for pk in required if pk not in completed]
        return PrerequisiteStatus(met=not unmet, required_ids=required, unmet_ids=unmet)


class ProgressAggregatorService:
    """Derives ContentProgress; the only writer of that table."""

    @staticmethod
    def recompute(course_id, student, now=None) -> ContentProgress:
        now = now or timezone.now()
        visible = ContentCatalogService.list_items(course_id, include_hidden=False)
        records = {
            access.content_item_id: access
            for access in ContentAccess.objects.filter(
                student=student, content_item_id__in=[item.pk for item in visible]
            )
        }

        # Folders count towards the last access but not towards completion.
        completed = in_progress = total = 0
        latest = None
        for item in visible:
            access = records.get(item.pk)
            if item.type != ContentItem.Type.FOLDER:
                total += 1
                if access is not None and access.is_completed:
                    completed += 1
                elif access is not None and access.completion_percentage > 0:
                    in_progress += 1
            if access is not None and (latest is None or access.last_accessed_at > latest.last_accessed_at):
                latest = access

        percentage = round_half_up(100 * completed / total) if total else 0

        try:
            progress, created = ContentProgress.objects.update_or_create(
                course_id=course_id,
                student=student,
                defaults={
                    "total_content_items": total,
                    "completed_items": completed,
                    "in_progress_items": in_progress,
                    "completion_percentage": percentage,
                    "last_accessed_content_id": latest.content_item_id if latest else None,
                    "last_accessed_at": latest.last_accessed_at if latest else None,
                    "updated_at": now,
                },
            )
        except DatabaseError as e:
            raise ContentDependencyError(f"Failed to store progress for student {student.pk}.") from e

        logger.debug(
            f"Recomputed progress for student {student.pk} in course {course_id}: "
            f"{completed}/{total} completed, {in_progress} in progress"
        )
        return progress

    @staticmethod
    def get(course_id, student, now=None) -> ContentProgress:
        progress = ContentProgress.objects.filter(course_id=course_id, student=student).first()
        if progress is not None:
            return progress
        return ProgressAggregatorService.recompute(course_id, student, now=now)


class StatisticsService:
    @staticmethod
    def compute(course_id, item_id, now=None) -> ContentStatistics:
        """
        Per item rollup over the access records of rostered students.
        Nothing is stored; every call recomputes.
        """
        now = now or timezone.now()
        item = ContentCatalogService.get_item(course_id, item_id)
        total_students = RosterService.count_enrolled(course_id)
        records = list(
            ContentAccess.objects.filter(
                content_item=item,
                student_id__in=RosterService.enrolled_user_ids(course_id),
            )
        )

        accessed = len(records)
        if accessed:
            average_access = round_half_up(sum(r.access_count for r in records) / accessed, 1)
            average_time = round_half_up(sum(r.total_time_spent for r in records) / accessed)
            average_completion = round_half_up(sum(r.completion_percentage for r in records) / accessed)
            most_recent = max(r.last_accessed_at for r in records)
        else:
            average_access, average_time, average_completion, most_recent = 0, 0, 0, None

        return ContentStatistics(
            content_id=str(item.pk),
            content_title=item.title,
            total_students=total_students,
            students_accessed=accessed,
            students_completed=sum(1 for r in records if r.is_completed),
            average_access_count=average_access,
            average_time_spent=average_time,
            average_completion_percentage=average_completion,
            most_recent_access=most_recent,
            calculated_at=now,
        )


class ReorderService:
    @staticmethod
    def reorder(course_id, item_ids, new_orders, now=None) -> List[ContentItem]:
        """
        Assign ``new_orders[i]`` to ``item_ids[i]`` in one transaction.
        Either every item gets its new order or none does.
        """
        now = now or timezone.now()
        item_ids = [str(pk) for pk in item_ids]
        if len(item_ids) != len(new_orders):
            raise InvalidContentError({"orders": ["item_ids and orders must have the same length."]})
        if not item_ids:
            raise InvalidContentError({"item_ids": ["At least one item is required."]})
        if len(set(item_ids)) != len(item_ids):
            raise InvalidContentError({"item_ids": ["Item ids must be unique."]})
        if any(isinstance(order, bool) or not isinstance(order, int) or order < 0 for order in new_orders):
            raise InvalidContentError({"orders": ["Orders must be non-negative integers."]})

        assignments = dict(zip(item_ids, new_orders))
        try:
            with transaction.atomic():
                try:
                    items = list(
                        ContentItem.objects.select_for_update().filter(course_id=course_id, pk__in=item_ids)
                    )
                except ValidationError:
                    raise ContentNotFound("One or more item ids are malformed.")
                missing = set(item_ids) - {str(item.pk) for item in items}
                if missing:
                    raise ContentNotFound(f"Content items not found: {', '.join(sorted(missing))}")

                for item in items:
                    item.order = assignments[str(item.pk)]
                    item.updated_at = now
                ContentItem.objects.bulk_update(items, ["order", "updated_at"])
        except DatabaseError as e:
            logger.warning(f"Reorder of {len(item_ids)} item(s) in course {course_id} rolled back: {e}")
            raise ContentDependencyError("Failed to reorder content items.") from e

        logger.info(f"Reordered {len(items)} content item(s) in course {course_id}")
        return sorted(items, key=lambda item: item.order)
