"""Filter provider relating primary results to the rules of their wrappers.

Serializing a :class:`~morph.rest.result.MorphedResult` happens in two
phases. First the outer filter is resolved for the wrapper itself. No
filtering is needed at that level, but this is where the wrapper's rules are
captured and associated with the primary result (or with every element of
it, when the primary result is a collection). Then the inner filter is
resolved for each primary value being rendered. The only thing known at
that point is the value itself, so its rules are looked up (and consumed)
from the association captured in the first phase.

Associations are kept per filter session. The primary result may not be
unique: two concurrent requests can serialize the very same cached,
immutable instance with different rules, so a shared map keyed by the
primary result alone would let them see each other's rules. Both levels of
the association table hold their keys weakly where Python allows it, and
sessions drop whatever is left when they end, so a serialization that fails
between the two phases does not leak its entries.

"""
import collections
import contextlib
import contextvars
import enum
import logging
import threading
import uuid
import weakref
from collections.abc import Collection, Mapping, Sequence

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db.models.query import QuerySet
from django.utils.module_loading import import_string

from morph.exceptions import CorrelationError, UnsupportedFilterLookup
from morph.utils import BraceMessage as __

from .filters import MorphedResultFilter
from .result import MorphedResult

__all__ = (
    "OUTER_FILTER_ID",
    "INNER_FILTER_ID",
    "ContainerShape",
    "FilterProvider",
    "FilterSession",
    "FilteredResultProvider",
    "PrimaryResultAssociations",
    "container_shape",
    "get_current_session",
    "get_filter_provider",
)

logger = logging.getLogger(__name__)

OUTER_FILTER_ID = "FilteredResultProvider-FilteredResult-OUTER"
INNER_FILTER_ID = "FilteredResultProvider-FilteredResult-INNER"

DEFAULT_FILTER_PROVIDER = "morph.rest.provider.FilteredResultProvider"


class ContainerShape(enum.Enum):
    """Shape of a primary result."""

    #: A single value.
    SCALAR = "scalar"
    #: A sequence, its elements are visited by index.
    INDEXED = "indexed"
    #: Any other collection, its elements are visited by iteration.
    COLLECTION = "collection"


def container_shape(value):
    """Classify the given value by its container shape.

    Strings, bytes and mappings are single values: a mapping is rendered
    as one object with its keys as attributes.
    """
    if isinstance(value, (str, bytes, bytearray, Mapping)):
        return ContainerShape.SCALAR
    if isinstance(value, Sequence):
        return ContainerShape.INDEXED
    # Querysets cache their results, so iterating twice yields the same objects.
    if isinstance(value, (Collection, QuerySet)):
        return ContainerShape.COLLECTION
    return ContainerShape.SCALAR


class FilterSession:
    """Identity of a single serialization call.

    Sessions are compared by identity and only ever referenced weakly by
    the providers, so the associations of a session go away together with
    the session.
    """

    def __init__(self, label=None, implicit=False):
        """Initialize attributes."""
        self.label = label or uuid.uuid4().hex[:12]
        #: Created on demand rather than by :meth:`FilterProvider.session`.
        self.implicit = implicit

    def __repr__(self):
        """Return the object representation."""
        return "<FilterSession: {}>".format(self.label)


_current_session = contextvars.ContextVar("morph_filter_session", default=None)


def get_current_session(create=True):
    """Get the filter session of the current context.

    Every thread (and every task that opened its own session) runs in its
    own context and therefore gets its own session. If there is none, an
    implicit session is created, unless ``create`` is ``False``, in which
    case ``None`` is returned.

    An implicit session lives as long as its context. On a long-lived
    thread, e.g. a pooled worker, unconsumed registrations of values that
    can not be weakly referenced are kept until that session is released,
    so serialization calls should run in :meth:`FilterProvider.session`.
    """
    session = _current_session.get()
    if session is None and create:
        session = FilterSession(implicit=True)
        _current_session.set(session)
    return session


class _StrongReference:
    """Reference holding a value that can not be weakly referenced."""

    __slots__ = ("value",)

    def __init__(self, value):
        self.value = value

    def __call__(self):
        return self.value


class _Registration:
    """Registered morphed results of a single primary value."""

    __slots__ = ("reference", "results")

    def __init__(self, reference):
        self.reference = reference
        self.results = collections.deque()


class PrimaryResultAssociations:
    """Map primary values to morphed results by identity, without owning them.

    Primary values that support weak references are held weakly, those that
    do not (dicts, lists, numbers, ...) are held until their registration is
    consumed or the whole table is dropped. Morphed results are always held
    weakly. Registrations of the same value are consumed in order.
    """

    def __init__(self):
        """Initialize attributes."""
        self._entries = {}
        # Garbage collector callbacks only append here, the list is drained
        # under the lock by the next operation.
        self._pending_removals = []
        self._lock = threading.Lock()

    def _make_callback(self, key):
        """Create a weak reference callback scheduling removal under ``key``."""
        pending_removals = self._pending_removals

        def remove(reference):
            pending_removals.append((key, reference))

        return remove

    def _reference(self, value, key):
        try:
            return weakref.ref(value, self._make_callback(key))
        except TypeError:
            return _StrongReference(value)

    def _remove_dead(self):
        while self._pending_removals:
            key, reference = self._pending_removals.pop()
            registration = self._entries.get(key)
            if registration is None:
                continue

            if registration.reference is reference:
                del self._entries[key]
                continue

            # Dead references are only equal to themselves.
            if reference in registration.results:
                registration.results.remove(reference)
                if not registration.results:
                    del self._entries[key]

    def _lookup(self, value):
        registration = self._entries.get(id(value))
        if registration is not None and registration.reference() is value:
            return registration
        return None

    def put(self, value, morphed_result):
        """Register the morphed result for the given primary value."""
        key = id(value)
        with self._lock:
            self._remove_dead()
            registration = self._lookup(value)
            if registration is None:
                registration = _Registration(self._reference(value, key))
                self._entries[key] = registration
            registration.results.append(
                weakref.ref(morphed_result, self._make_callback(key))
            )

    def take(self, value):
        """Remove and return the oldest morphed result registered for the value.

        Return ``None`` if there is none.
        """
        with self._lock:
            self._remove_dead()
            registration = self._lookup(value)
            if registration is None:
                return None

            morphed_result = None
            while registration.results and morphed_result is None:
                morphed_result = registration.results.popleft()()
            if not registration.results:
                del self._entries[id(value)]
            return morphed_result

    def clear(self):
        """Drop all registrations."""
        with self._lock:
            self._entries.clear()
            self._pending_removals.clear()

    def __len__(self):
        """Get the number of live registrations."""
        with self._lock:
            self._remove_dead()
            return sum(
                1
                for registration in self._entries.values()
                for result in registration.results
                if result() is not None
            )


class FilterProvider:
    """Resolve property filters for values being serialized."""

    def find_property_filter(self, filter_id, value_to_filter):
        """Return the property filter for the value, or ``None`` for no filtering."""
        raise NotImplementedError(
            "Subclasses of FilterProvider must implement "
            "a find_property_filter() method."
        )

    def find_filter(self, filter_id):
        """Look up the filter by its identifier alone."""
        raise UnsupportedFilterLookup(
            "Filters can only be resolved together with the value being filtered."
        )

    @contextlib.contextmanager
    def session(self, label=None):
        """Run the enclosed serialization call in a new filter session."""
        session = FilterSession(label)
        token = _current_session.set(session)
        try:
            yield session
        finally:
            _current_session.reset(token)
            self.release(session)

    def release(self, session):
        """Drop all data kept for the given session."""
        pass


class FilteredResultProvider(FilterProvider):
    """Filter provider for :class:`~morph.rest.result.MorphedResult` instances.

    The outer filter is resolved for the wrapper and the inner filter for
    the primary result, see the module documentation for details.
    """

    def __init__(self):
        """Initialize attributes."""
        self._associations = weakref.WeakKeyDictionary()
        self._lock = threading.Lock()

    def _get_associations(self, session, create=False):
        with self._lock:
            associations = self._associations.get(session)
            if associations is None and create:
                associations = PrimaryResultAssociations()
                self._associations[session] = associations
            return associations

    def _register(self, morphed_result, session):
        """Associate the rules of the morphed result with its primary result."""
        if session.implicit:
            logger.warning(
                __(
                    "Registering {!r} outside of a filter session, unconsumed "
                    "registrations are kept until {!r} is released.",
                    morphed_result,
                    session,
                )
            )

        associations = self._get_associations(session, create=True)
        primary_result = morphed_result.primary_result

        shape = container_shape(primary_result)
        if shape is ContainerShape.INDEXED:
            for index in range(len(primary_result)):
                associations.put(primary_result[index], morphed_result)
        elif shape is ContainerShape.COLLECTION:
            for item in primary_result:
                associations.put(item, morphed_result)
        else:
            associations.put(primary_result, morphed_result)

        logger.debug(
            __(
                "Registered {} primary result of {!r} in {!r}.",
                shape.value,
                morphed_result,
                session,
            )
        )

    def _consume(self, value, session):
        """Get and forget the morphed result registered for the value."""
        associations = self._get_associations(session)
        morphed_result = associations.take(value) if associations is not None else None
        if morphed_result is None:
            logger.error(
                __(
                    "No filter data registered for {} instance in {!r}.",
                    type(value).__name__,
                    session,
                )
            )
            raise CorrelationError(
                "Failed to relate filter data to target. "
                "Unable to properly filter target."
            )
        return morphed_result

    def find_property_filter(self, filter_id, value_to_filter):
        """Resolve the property filter for the value being serialized.

        The outer filter registers the wrapper's rules and returns ``None``,
        since the wrapper only exposes its primary result. The inner filter
        returns a filter backed by the registered rules. Any other filter
        identifier is not supported and resolves to ``None``.
        """
        session = get_current_session()
        if filter_id == OUTER_FILTER_ID and isinstance(value_to_filter, MorphedResult):
            self._register(value_to_filter, session)
            return None
        elif filter_id == INNER_FILTER_ID:
            return MorphedResultFilter(self._consume(value_to_filter, session))
        return None

    def pending(self, session=None):
        """Get the number of unconsumed registrations in the session.

        The current session is used if none is given.
        """
        if session is None:
            session = get_current_session(create=False)
            if session is None:
                return 0
        associations = self._get_associations(session)
        return len(associations) if associations is not None else 0

    def release(self, session):
        """Drop all registrations kept for the given session."""
        with self._lock:
            associations = self._associations.pop(session, None)
        if associations is None:
            return

        abandoned = len(associations)
        if abandoned:
            logger.warning(
                __("Releasing {} abandoned registrations of {!r}.", abandoned, session)
            )
        associations.clear()

    def __len__(self):
        """Get the number of sessions with associations."""
        with self._lock:
            return len(self._associations)


_providers = {}
_providers_lock = threading.Lock()


def load_provider(provider_name):
    """Instantiate the filter provider class under the given dotted path."""
    try:
        provider_class = import_string(provider_name)
    except ImportError as ex:
        raise ImproperlyConfigured(
            "{} isn't an available filter provider.\n"
            "Try using '{}'.\n"
            "Error was: {}".format(provider_name, DEFAULT_FILTER_PROVIDER, ex)
        )

    if not (
        isinstance(provider_class, type) and issubclass(provider_class, FilterProvider)
    ):
        raise ImproperlyConfigured(
            "{} is not a subclass of FilterProvider.".format(provider_name)
        )

    return provider_class()


def get_filter_provider():
    """Get the filter provider configured by ``MORPH_FILTER_PROVIDER``."""
    provider_name = getattr(settings, "MORPH_FILTER_PROVIDER", DEFAULT_FILTER_PROVIDER)
    with _providers_lock:
        if provider_name not in _providers:
            _providers[provider_name] = load_provider(provider_name)
        return _providers[provider_name]
