import uuid

from django.db import models
from django.utils import timezone


class TimestampedModel(models.Model):
    """
    An abstract base class model that provides `created_at` and `updated_at`
    fields and a UUID primary key.

    Unlike ``auto_now`` fields, both timestamps default to ``timezone.now`` but
    accept explicit values, so services can stamp them from an injected clock.
    Callers that save through ``save(update_fields=...)`` are responsible for
    refreshing ``updated_at`` themselves.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(default=timezone.now, editable=False)

    class Meta:
        abstract = True
        ordering = ["-created_at"]  # Default ordering
