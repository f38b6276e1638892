"""Morph serializer fields."""
import dataclasses
from collections.abc import Mapping

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema_field
from rest_framework import serializers

from .result import MorphedResult


def natural_attribute_names(value):
    """Get names of the attributes a value naturally exposes.

    These are the string keys of a mapping, the fields of a dataclass or
    the public instance attributes of any other object. Values without
    attributes (numbers, strings, ...) expose none.
    """
    if isinstance(value, Mapping):
        return [key for key in value if isinstance(key, str)]
    if isinstance(value, type):
        return []
    if dataclasses.is_dataclass(value):
        return [field.name for field in dataclasses.fields(value)]
    if hasattr(value, "__dict__"):
        return [name for name in vars(value) if not name.startswith("_")]
    return []


def represent_value(value, context):
    """Get the primitive representation of an attribute value.

    Nested morphed results are rendered with their own rules, containers
    are walked, objects exposing natural attributes are rendered as objects
    and anything else is left to the renderer.
    """
    # Avoid circular import.
    from .serializers import MorphedResultSerializer, NaturalSerializer

    if isinstance(value, MorphedResult):
        return MorphedResultSerializer(value, context=context).data
    if isinstance(value, Mapping):
        return {key: represent_value(item, context) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [represent_value(item, context) for item in value]
    if isinstance(value, (str, bytes, int, float)) or value is None:
        return value
    if (
        dataclasses.is_dataclass(value) and not isinstance(value, type)
    ) or natural_attribute_names(value):
        return dict(NaturalSerializer(value, context=context).data)
    return value


@extend_schema_field(OpenApiTypes.ANY)
class NaturalField(serializers.Field):
    """Read-only field exposing a natural attribute of a value."""

    def __init__(self, **kwargs):
        """Initialize attributes."""
        kwargs["read_only"] = True
        super().__init__(**kwargs)

    def get_attribute(self, instance):
        """Get the attribute by its exact name, dots included."""
        if isinstance(instance, Mapping):
            return instance[self.field_name]
        return getattr(instance, self.field_name)

    def to_representation(self, value):
        """Convert to representation."""
        return represent_value(value, self.context)


@extend_schema_field(OpenApiTypes.OBJECT)
class MorphedResultField(serializers.Field):
    """Field rendering a nested morphed result with its own rules.

    Plain values are rendered through the primary serializer without any
    filtering.
    """

    def __init__(self, primary_serializer=None, **kwargs):
        """Initialize attributes."""
        self.primary_serializer = primary_serializer
        kwargs["read_only"] = True
        super().__init__(**kwargs)

    def to_representation(self, value):
        """Convert to representation."""
        # Avoid circular import.
        from .serializers import MorphedResultSerializer

        serializer = MorphedResultSerializer(
            value, primary_serializer=self.primary_serializer
        )

        # Manually bind this serializer to field.parent so it shares the
        # context of the root serializer.
        serializer.bind(self.field_name, self.parent)

        return serializer.data
