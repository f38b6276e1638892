"""Serializers rendering morphed results."""
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string
from rest_framework import serializers

from .fields import NaturalField, natural_attribute_names, represent_value
from .provider import (
    INNER_FILTER_ID,
    OUTER_FILTER_ID,
    ContainerShape,
    container_shape,
    get_filter_provider,
)
from .result import MorphedResult

DEFAULT_PRIMARY_SERIALIZER = "morph.rest.serializers.NaturalSerializer"


class NaturalSerializer(serializers.Serializer):
    """Serializer exposing the natural attributes of an arbitrary value.

    Fields are derived from the instance the serializer is created with,
    see :func:`~morph.rest.fields.natural_attribute_names`. Declared fields
    take precedence over derived ones.
    """

    def get_fields(self):
        """Add a field for each natural attribute of the instance."""
        fields = super().get_fields()
        for name in natural_attribute_names(self.instance):
            if name not in fields:
                fields[name] = NaturalField()
        return fields


class MorphedResultSerializer(serializers.BaseSerializer):
    """Serialize a morphed result as its filtered primary result.

    Serialization runs in its own filter session. The outer filter is
    resolved for the morphed result first, then the inner filter for each
    primary value. Fields rejected by the inner filter are removed from the
    primary serializer before it renders the value, and the permitted
    expansion data is merged into the output. A primary result that is a
    collection renders as a list, with the expansion data merged into every
    element.

    The primary serializer defaults to the ``MORPH_PRIMARY_SERIALIZER``
    setting and can be any serializer, e.g. a ``ModelSerializer``.
    """

    filter_id = OUTER_FILTER_ID
    primary_filter_id = INNER_FILTER_ID

    def __init__(self, instance=None, primary_serializer=None, provider=None, **kwargs):
        """Initialize attributes."""
        self.primary_serializer = primary_serializer
        self._provider = provider
        super().__init__(instance, **kwargs)

    @property
    def provider(self):
        """Get the filter provider."""
        if self._provider is None:
            self._provider = (
                self.context.get("filter_provider") or get_filter_provider()
            )
        return self._provider

    def get_primary_serializer_class(self):
        """Get the serializer class used for primary values."""
        if self.primary_serializer is not None:
            return self.primary_serializer

        serializer_name = getattr(
            settings, "MORPH_PRIMARY_SERIALIZER", DEFAULT_PRIMARY_SERIALIZER
        )
        try:
            return import_string(serializer_name)
        except ImportError as ex:
            raise ImproperlyConfigured(
                "{} isn't an available primary serializer.\n"
                "Error was: {}".format(serializer_name, ex)
            )

    def get_primary_context(self):
        """Get the context passed to primary and nested serializers."""
        context = dict(self.context)
        context["filter_provider"] = self.provider
        return context

    def primary_representation(self, value, expansion, context):
        """Render a single primary value."""
        property_filter = self.provider.find_property_filter(
            self.primary_filter_id, value
        )

        serializer = self.get_primary_serializer_class()(value, context=context)
        if property_filter is not None:
            for name in list(serializer.fields):
                if not property_filter.include(name):
                    serializer.fields.pop(name)

        representation = serializer.to_representation(value)
        representation.update(expansion)
        return representation

    def to_representation(self, instance):
        """Convert to representation."""
        if not isinstance(instance, MorphedResult):
            instance = MorphedResult(instance)

        with self.provider.session():
            # The wrapper only exposes its primary result, so there is nothing
            # to filter at this level.
            self.provider.find_property_filter(self.filter_id, instance)

            context = self.get_primary_context()
            expansion = {
                name: represent_value(data, context)
                for name, data in instance.expansion_data.items()
            }

            primary_result = instance.primary_result
            if container_shape(primary_result) is ContainerShape.SCALAR:
                return self.primary_representation(primary_result, expansion, context)
            return [
                self.primary_representation(item, expansion, context)
                for item in primary_result
            ]
