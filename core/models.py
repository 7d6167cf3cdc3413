"""
Core Models - shared infrastructure rows.

Models:
    - SequenceCounter: per-bucket counter backing order and invoice numbers
"""
from django.db import models


class SequenceCounter(models.Model):
    """
    Last issued value for one identifier bucket (e.g. ``order:2526``).

    Rows are locked with select_for_update() and incremented in place, so
    concurrent allocators in the same bucket serialize on this row only.
    """
    key = models.CharField(
        max_length=64,
        unique=True,
        help_text="Bucket key, e.g. 'order:2526' or 'invoice:SNF-2526'"
    )
    last_value = models.PositiveIntegerField(
        default=0,
        help_text="Last sequence number handed out in this bucket"
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Sequence Counter'
        verbose_name_plural = 'Sequence Counters'
        ordering = ['key']

    def __str__(self):
        return f"{self.key}: {self.last_value}"
