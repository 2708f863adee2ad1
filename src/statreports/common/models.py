"""Shared model building blocks for statreports.

Catalog entities and users get created_at/updated_at columns from
TimestampMixin and a KSUID public identifier from generate_ksuid."""

from tortoise import fields, models
from ksuid import ksuid


def generate_ksuid():
    """Generate a K-Sortable Unique IDentifier (KSUID).

    Catalog entities and users expose KSUIDs as their public identifiers
    while the integer primary keys stay internal to report queries.

    Returns:
        str: A string representation of the generated KSUID.
    """
    return str(ksuid.Ksuid())


class TimestampMixin(models.Model):
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        abstract = True
