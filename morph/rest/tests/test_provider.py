# pylint: disable=missing-docstring
import contextvars
import gc
import threading

from django.apps import apps
from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase, override_settings

from morph.exceptions import CorrelationError, UnsupportedFilterLookup
from morph.rest.filters import MorphedResultFilter
from morph.rest.provider import (
    INNER_FILTER_ID,
    OUTER_FILTER_ID,
    ContainerShape,
    FilteredResultProvider,
    PrimaryResultAssociations,
    container_shape,
    get_current_session,
    get_filter_provider,
)
from morph.rest.result import MorphedResult
from morph.test import MorphTestCase


class Account:
    def __init__(self, username, password):
        self.username = username
        self.password = password


class ContainerShapeTest(SimpleTestCase):
    def test_container_shape(self):
        self.assertEqual(container_shape([1, 2]), ContainerShape.INDEXED)
        self.assertEqual(container_shape((1, 2)), ContainerShape.INDEXED)
        self.assertEqual(container_shape({1, 2}), ContainerShape.COLLECTION)
        self.assertEqual(container_shape(frozenset()), ContainerShape.COLLECTION)
        self.assertEqual(container_shape({"a": 1}), ContainerShape.SCALAR)
        self.assertEqual(container_shape("abc"), ContainerShape.SCALAR)
        self.assertEqual(container_shape(b"abc"), ContainerShape.SCALAR)
        self.assertEqual(container_shape(42), ContainerShape.SCALAR)
        self.assertEqual(container_shape(Account("bob", "pw")), ContainerShape.SCALAR)


class PrimaryResultAssociationsTest(SimpleTestCase):
    def test_put_take(self):
        associations = PrimaryResultAssociations()
        account = Account("bob", "pw")
        result = MorphedResult(account)

        associations.put(account, result)
        self.assertEqual(len(associations), 1)
        self.assertIs(associations.take(account), result)
        self.assertEqual(len(associations), 0)
        self.assertIsNone(associations.take(account))

    def test_identity(self):
        associations = PrimaryResultAssociations()
        first = {"username": "bob"}
        second = {"username": "bob"}
        result = MorphedResult(first)

        associations.put(first, result)
        self.assertIsNone(associations.take(second))
        self.assertIs(associations.take(first), result)

    def test_order(self):
        associations = PrimaryResultAssociations()
        account = Account("bob", "pw")
        first = MorphedResult(account)
        second = MorphedResult(account)

        associations.put(account, first)
        associations.put(account, second)
        self.assertEqual(len(associations), 2)
        self.assertIs(associations.take(account), first)
        self.assertIs(associations.take(account), second)
        self.assertIsNone(associations.take(account))

    def test_collected_value(self):
        associations = PrimaryResultAssociations()
        account = Account("bob", "pw")
        result = MorphedResult(account)
        associations.put(account, result)

        del account, result
        gc.collect()
        self.assertEqual(len(associations), 0)

    def test_collected_result(self):
        associations = PrimaryResultAssociations()
        # Dicts can not be weakly referenced.
        user = {"username": "bob"}
        result = MorphedResult(user)
        associations.put(user, result)

        del result
        gc.collect()
        self.assertEqual(len(associations), 0)
        self.assertIsNone(associations.take(user))

    def test_clear(self):
        associations = PrimaryResultAssociations()
        user = {"username": "bob"}
        result = MorphedResult(user)
        associations.put(user, result)

        associations.clear()
        self.assertEqual(len(associations), 0)


class FilteredResultProviderTest(MorphTestCase):
    def setUp(self):
        super().setUp()
        self.account = Account("bob", "pw")
        self.result = MorphedResult(self.account)

    def test_outer_then_inner(self):
        with self.provider.session() as session:
            self.assertIsNone(
                self.provider.find_property_filter(OUTER_FILTER_ID, self.result)
            )
            self.assertEqual(self.provider.pending(session), 1)

            property_filter = self.provider.find_property_filter(
                INNER_FILTER_ID, self.account
            )
            self.assertIsInstance(property_filter, MorphedResultFilter)
            self.assertIs(property_filter.morphed_result, self.result)
            self.assertEqual(self.provider.pending(), 0)

    def test_inner_filter_predicate(self):
        self.result.allow_attributes("username", "password", "role")
        self.result.exclude_attribute("role")
        self.result.replace_attribute("password", "***")

        with self.provider.session():
            self.provider.find_property_filter(OUTER_FILTER_ID, self.result)
            property_filter = self.provider.find_property_filter(
                INNER_FILTER_ID, self.account
            )

        self.assertTrue(property_filter.include("username"))
        self.assertTrue(property_filter("username"))
        self.assertFalse(property_filter.include("password"))
        self.assertFalse(property_filter.include("role"))
        self.assertFalse(property_filter.include("email"))

    def test_inner_without_outer(self):
        with self.provider.session():
            with self.assertLogs("morph.rest.provider", level="ERROR"):
                with self.assertRaises(CorrelationError):
                    self.provider.find_property_filter(INNER_FILTER_ID, self.account)

    def test_inner_consumes(self):
        with self.provider.session():
            self.provider.find_property_filter(OUTER_FILTER_ID, self.result)
            self.provider.find_property_filter(INNER_FILTER_ID, self.account)
            with self.assertRaises(CorrelationError):
                self.provider.find_property_filter(INNER_FILTER_ID, self.account)

    def test_inner_other_session(self):
        with self.provider.session():
            self.provider.find_property_filter(OUTER_FILTER_ID, self.result)
            with self.provider.session():
                with self.assertRaises(CorrelationError):
                    self.provider.find_property_filter(INNER_FILTER_ID, self.account)
            # Still registered in the enclosing session.
            self.assertIsNotNone(
                self.provider.find_property_filter(INNER_FILTER_ID, self.account)
            )

    def test_unsupported(self):
        with self.provider.session() as session:
            self.assertIsNone(self.provider.find_property_filter("other", self.result))
            self.assertIsNone(
                self.provider.find_property_filter(OUTER_FILTER_ID, self.account)
            )
            self.assertEqual(self.provider.pending(session), 0)

    def test_find_filter(self):
        with self.assertRaises(UnsupportedFilterLookup):
            self.provider.find_filter(OUTER_FILTER_ID)
        with self.assertRaises(NotImplementedError):
            self.provider.find_filter(INNER_FILTER_ID)

    def test_register_sequence(self):
        accounts = [Account("bob", "pw"), Account("alice", "pw")]
        result = MorphedResult(accounts)
        with self.provider.session() as session:
            self.provider.find_property_filter(OUTER_FILTER_ID, result)
            self.assertEqual(self.provider.pending(session), 2)
            for account in reversed(accounts):
                property_filter = self.provider.find_property_filter(
                    INNER_FILTER_ID, account
                )
                self.assertIs(property_filter.morphed_result, result)
            with self.assertRaises(CorrelationError):
                self.provider.find_property_filter(INNER_FILTER_ID, accounts)

    def test_register_collection(self):
        accounts = {Account("bob", "pw"), Account("alice", "pw")}
        result = MorphedResult(accounts)
        with self.provider.session() as session:
            self.provider.find_property_filter(OUTER_FILTER_ID, result)
            self.assertEqual(self.provider.pending(session), 2)
            for account in accounts:
                self.provider.find_property_filter(INNER_FILTER_ID, account)
            self.assertEqual(self.provider.pending(session), 0)

    def test_register_mapping(self):
        user = {"username": "bob", "password": "pw"}
        result = MorphedResult(user)
        with self.provider.session() as session:
            self.provider.find_property_filter(OUTER_FILTER_ID, result)
            self.assertEqual(self.provider.pending(session), 1)
            with self.assertRaises(CorrelationError):
                self.provider.find_property_filter(INNER_FILTER_ID, "username")
            self.provider.find_property_filter(INNER_FILTER_ID, user)

    def test_register_same_instance_twice(self):
        result = MorphedResult([self.account, self.account])
        with self.provider.session():
            self.provider.find_property_filter(OUTER_FILTER_ID, result)
            self.provider.find_property_filter(INNER_FILTER_ID, self.account)
            self.provider.find_property_filter(INNER_FILTER_ID, self.account)
            with self.assertRaises(CorrelationError):
                self.provider.find_property_filter(INNER_FILTER_ID, self.account)

    def test_release_abandoned(self):
        user = {"username": "bob"}
        result = MorphedResult(user)
        with self.assertLogs("morph.rest.provider", level="WARNING") as logs:
            with self.provider.session():
                self.provider.find_property_filter(OUTER_FILTER_ID, result)
                self.assertEqual(len(self.provider), 1)

        self.assertIn("1 abandoned", logs.output[0])
        self.assertEqual(len(self.provider), 0)

    def test_release_consumed(self):
        with self.provider.session() as session:
            self.provider.find_property_filter(OUTER_FILTER_ID, self.result)
            self.provider.find_property_filter(INNER_FILTER_ID, self.account)
        self.assertEqual(len(self.provider), 0)
        self.assertEqual(self.provider.pending(session), 0)

    def test_implicit_session(self):
        def register():
            with self.assertLogs("morph.rest.provider", level="WARNING") as logs:
                self.provider.find_property_filter(OUTER_FILTER_ID, self.result)
            self.assertIn("outside of a filter session", logs.output[0])
            self.assertEqual(len(self.provider), 1)
            self.assertEqual(self.provider.pending(), 1)

        contextvars.Context().run(register)
        gc.collect()
        # The session died with its context.
        self.assertEqual(len(self.provider), 0)

    def test_implicit_session_isolation(self):
        def register():
            with self.assertLogs("morph.rest.provider", level="WARNING"):
                self.provider.find_property_filter(OUTER_FILTER_ID, self.result)

        def consume():
            self.provider.find_property_filter(INNER_FILTER_ID, self.account)

        context = contextvars.Context()
        context.run(register)
        with self.assertRaises(CorrelationError):
            contextvars.Context().run(consume)
        context.run(consume)

    def test_implicit_session_worker_thread(self):
        users = [{"username": "user{}".format(index)} for index in range(3)]
        results = [MorphedResult(user) for user in users]
        sessions = []

        def register():
            for result in results:
                self.provider.find_property_filter(OUTER_FILTER_ID, result)
            sessions.append(get_current_session())

        with self.assertLogs("morph.rest.provider", level="WARNING"):
            worker = threading.Thread(target=register)
            worker.start()
            worker.join()

        # Dicts can not be weakly referenced, they stay until released.
        session = sessions[0]
        self.assertTrue(session.implicit)
        self.assertEqual(self.provider.pending(session), 3)

        with self.assertLogs("morph.rest.provider", level="WARNING") as logs:
            self.provider.release(session)
        self.assertIn("3 abandoned", logs.output[0])
        self.assertEqual(self.provider.pending(session), 0)

    def test_pending_without_session(self):
        def count():
            self.assertEqual(self.provider.pending(), 0)
            self.assertIsNone(get_current_session(create=False))

        contextvars.Context().run(count)
        self.assertEqual(len(self.provider), 0)

    def test_explicit_session(self):
        with self.provider.session() as session:
            self.assertFalse(session.implicit)
            self.assertIs(get_current_session(), session)

    def test_abandoned_value_collected(self):
        with self.provider.session() as session:
            account = Account("alice", "pw")
            result = MorphedResult(account)
            self.provider.find_property_filter(OUTER_FILTER_ID, result)
            self.assertEqual(self.provider.pending(session), 1)

            del account, result
            gc.collect()
            self.assertEqual(self.provider.pending(session), 0)


class FilterProviderConfigurationTest(SimpleTestCase):
    def test_default_provider(self):
        provider = get_filter_provider()
        self.assertIsInstance(provider, FilteredResultProvider)
        self.assertIs(get_filter_provider(), provider)

    @override_settings(MORPH_FILTER_PROVIDER="morph.rest.missing.Provider")
    def test_missing_provider(self):
        with self.assertRaisesRegex(ImproperlyConfigured, "isn't an available"):
            get_filter_provider()

    @override_settings(MORPH_FILTER_PROVIDER="morph.rest.result.MorphedResult")
    def test_invalid_provider(self):
        with self.assertRaisesRegex(ImproperlyConfigured, "not a subclass"):
            get_filter_provider()

    @override_settings(MORPH_FILTER_PROVIDER="morph.rest.missing.Provider")
    def test_app_ready(self):
        with self.assertRaises(ImproperlyConfigured):
            apps.get_app_config("morph").ready()
