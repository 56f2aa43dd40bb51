"""
Drop cached ContentProgress rows when the set of items progress is counted
over changes. The next read rebuilds them through the aggregator.
"""
import logging

from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver

from .models import ContentItem, ContentProgress

logger = logging.getLogger(__name__)


def _invalidate_course_progress(course_id, reason):
    deleted, _ = ContentProgress.objects.filter(course_id=course_id).delete()
    if deleted:
        logger.debug(f"Dropped {deleted} cached progress row(s) for course {course_id} ({reason})")


@receiver(pre_save, sender=ContentItem)
def remember_visibility(sender, instance, update_fields=None, **kwargs):
    if instance._state.adding:
        return
    if update_fields is not None and "visible_to_students" not in update_fields:
        return
    instance._previous_visibility = (
        ContentItem.objects.filter(pk=instance.pk).values_list("visible_to_students", flat=True).first()
    )


@receiver(post_save, sender=ContentItem)
def invalidate_progress_on_save(sender, instance, created, **kwargs):
    if created:
        _invalidate_course_progress(instance.course_id, f"item {instance.pk} created")
        return
    previous = getattr(instance, "_previous_visibility", None)
    if previous is not None and previous != instance.visible_to_students:
        _invalidate_course_progress(instance.course_id, f"item {instance.pk} visibility changed")
    instance._previous_visibility = instance.visible_to_students


@receiver(post_delete, sender=ContentItem)
def invalidate_progress_on_delete(sender, instance, **kwargs):
    _invalidate_course_progress(instance.course_id, f"item {instance.pk} deleted")
