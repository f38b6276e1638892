"""Wrapper that shapes the serialized form of an arbitrary value."""


def _flatten_names(attribute_names):
    """Expand collections of attribute names given among single names."""
    for name in attribute_names:
        if isinstance(name, str):
            yield name
        else:
            yield from name


class MorphedResult:
    """Wrap a value to add, remove, replace and filter its serialized attributes.

    The wrapped value (the primary result) is never modified. Instead, the
    wrapper carries the rules that are applied when the value is serialized
    with :class:`~morph.rest.serializers.MorphedResultSerializer`, so the
    wrapper itself disappears from the output, leaving the primary result
    and any expansion data, all filtered by the allowed and excluded
    attributes.

    Attribute permission can be expressed as an allowed set (exclude
    anything else) or as an excluded set (include anything else). Both sets
    may be given, which is equivalent to allowing only the names in the
    allowed set that are not also excluded. If both sets are ``None``, no
    attributes are filtered.

    New attributes are added with :meth:`add_expansion_data`, existing ones
    are masked with :meth:`replace_attribute`. Expanded and replaced
    attributes are subject to the allowed and excluded configuration too.

    .. note::
        Filtering is applied to the attributes of the primary result only.
        Nested values that need their own rules must be wrapped separately.

    """

    def __init__(self, primary_result):
        """Initialize attributes.

        Wrapping another :class:`MorphedResult` collapses the two: the new
        wrapper adopts the inner primary result and copies its rules.
        """
        if primary_result is None:
            raise ValueError("The primary result of a morphed result can not be None.")

        self._primary_result = primary_result
        self._allowed_attributes = None
        self._excluded_attributes = None
        self._replaced_attributes = None
        self._expansion_data = None

        if isinstance(primary_result, MorphedResult):
            # Copy containers to prevent write through.
            other = primary_result
            self._primary_result = other._primary_result
            if other._allowed_attributes is not None:
                self._allowed_attributes = set(other._allowed_attributes)
            if other._excluded_attributes is not None:
                self._excluded_attributes = set(other._excluded_attributes)
            if other._replaced_attributes is not None:
                self._replaced_attributes = set(other._replaced_attributes)
            if other._expansion_data is not None:
                self._expansion_data = dict(other._expansion_data)

    @property
    def primary_result(self):
        """Get the wrapped value."""
        return self._primary_result

    @property
    def allowed_attributes(self):
        """Get the set of explicitly allowed attribute names.

        ``None`` means that all attributes are implicitly allowed. An
        attribute may be both allowed and excluded, in which case it is
        excluded.
        """
        return self._allowed_attributes

    @property
    def excluded_attributes(self):
        """Get the set of explicitly excluded attribute names.

        ``None`` means that no attributes are explicitly excluded.
        """
        return self._excluded_attributes

    @property
    def replaced_attributes(self):
        """Get the set of replaced attribute names.

        A replaced attribute can be thought of as an excluded attribute
        followed by an expansion under the same name.
        """
        return self._replaced_attributes

    def allow_attribute(self, attribute_name):
        """Add the given attribute name to the allowed set."""
        self.allow_attributes(attribute_name)

    def allow_attributes(self, *attribute_names):
        """Add the given attribute names to the allowed set.

        Names may also be given as collections, e.g. a list or a set.
        """
        if self._allowed_attributes is None:
            self._allowed_attributes = set()
        self._allowed_attributes.update(_flatten_names(attribute_names))

    def exclude_attribute(self, attribute_name):
        """Add the given attribute name to the excluded set."""
        self.exclude_attributes(attribute_name)

    def exclude_attributes(self, *attribute_names):
        """Add the given attribute names to the excluded set.

        Names may also be given as collections, e.g. a list or a set.
        """
        if self._excluded_attributes is None:
            self._excluded_attributes = set()
        self._excluded_attributes.update(_flatten_names(attribute_names))

    def replace_attribute(self, attribute_name, data):
        """Mask the attribute of the primary result with the given data.

        The allowed and excluded sets still apply: if the attribute is not
        permitted, neither the natural value nor the replacement is
        serialized. Replacing an attribute the primary result does not have
        is the same as calling :meth:`add_expansion_data`.
        """
        if self._replaced_attributes is None:
            self._replaced_attributes = set()
        self._replaced_attributes.add(attribute_name)
        self.add_expansion_data(attribute_name, data)

    def add_expansion_data(self, attribute_name, data):
        """Add data as if it were an attribute of the primary result."""
        if self._expansion_data is None:
            self._expansion_data = {}
        self._expansion_data[attribute_name] = data

    def is_permitted(self, attribute_name):
        """Return ``True`` if the named attribute will be serialized."""
        return (
            self._allowed_attributes is None
            or attribute_name in self._allowed_attributes
        ) and (
            self._excluded_attributes is None
            or attribute_name not in self._excluded_attributes
        )

    def is_replaced(self, attribute_name):
        """Return ``True`` if the named attribute has been replaced.

        This is independent of :meth:`is_permitted`.
        """
        return (
            self._replaced_attributes is not None
            and attribute_name in self._replaced_attributes
        )

    @property
    def expansion_data(self):
        """Get the permitted expansion data.

        Entries that are not permitted are left out, but kept, so they
        reappear if the rules change later.
        """
        if self._expansion_data is None:
            return {}

        return {
            name: data
            for name, data in self._expansion_data.items()
            if self.is_permitted(name)
        }

    def __str__(self):
        """Return user friendly string representation."""
        return "\n".join(
            [
                "primary_result: {}".format(self._primary_result),
                "allowed_attributes: {}".format(self._allowed_attributes),
                "excluded_attributes: {}".format(self._excluded_attributes),
                "replaced_attributes: {}".format(self._replaced_attributes),
                "expansion_data: {}".format(self._expansion_data),
            ]
        )

    def __repr__(self):
        """Return the object representation."""
        return "<MorphedResult: {!r}>".format(self._primary_result)
