import unittest
from unittest import mock

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import create_async_engine

from slotbook.core.db import async_database_url, datastore_errors, get_session
from slotbook.core.errors import (
    AlreadyCancelledError,
    ConflictError,
    InvalidStateError,
    UnavailableError,
)
from slotbook.core.security import create_access_token, decode_access_token, generate_booking_token


class TestDatabaseUrl(unittest.TestCase):
    def test_postgres_uses_asyncpg_without_psycopg_params(self):
        url = async_database_url("postgresql://u:p@db.example.com/app?sslmode=require&channel_binding=require")
        self.assertEqual(url, "postgresql+asyncpg://u:p@db.example.com/app")

    def test_sqlite_uses_aiosqlite(self):
        self.assertEqual(async_database_url("sqlite:///./local.db"), "sqlite+aiosqlite:///./local.db")

    def test_sqlite_keeps_authority_separator(self):
        """The empty authority in sqlite URLs must survive the rewrite."""
        self.assertEqual(async_database_url("sqlite:///slotbook.db"), "sqlite+aiosqlite:///slotbook.db")
        self.assertEqual(async_database_url("sqlite:////var/lib/slotbook.db"), "sqlite+aiosqlite:////var/lib/slotbook.db")

    def test_async_sqlite_url_unchanged(self):
        self.assertEqual(async_database_url("sqlite+aiosqlite://"), "sqlite+aiosqlite://")

    def test_other_query_params_kept(self):
        url = async_database_url("postgresql://u:p@db/app?sslmode=require&application_name=slotbook")
        self.assertEqual(url, "postgresql+asyncpg://u:p@db/app?application_name=slotbook")

    def test_rewritten_url_builds_an_engine(self):
        engine = create_async_engine(async_database_url("sqlite:///./local.db"))
        self.assertEqual(engine.dialect.driver, "aiosqlite")
        self.assertEqual(engine.url.database, "./local.db")


class TestGetSession(unittest.IsolatedAsyncioTestCase):
    def _session_maker(self, session):
        maker = mock.MagicMock()
        maker.return_value.__aenter__.return_value = session
        return maker

    async def test_commit_failure_becomes_unavailable(self):
        session = mock.AsyncMock()
        session.commit.side_effect = OperationalError("COMMIT", {}, Exception("server closed the connection"))
        with mock.patch("slotbook.core.db.async_session_maker", self._session_maker(session)):
            gen = get_session()
            self.assertIs(await gen.__anext__(), session)
            with self.assertRaises(UnavailableError):
                await gen.__anext__()
        session.rollback.assert_awaited_once()

    async def test_successful_request_commits(self):
        session = mock.AsyncMock()
        with mock.patch("slotbook.core.db.async_session_maker", self._session_maker(session)):
            gen = get_session()
            await gen.__anext__()
            with self.assertRaises(StopAsyncIteration):
                await gen.__anext__()
        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()


class TestDatastoreErrors(unittest.TestCase):
    def test_driver_error_becomes_unavailable(self):
        cause = OperationalError("SELECT 1", {}, Exception("connection refused"))
        with self.assertRaises(UnavailableError) as ctx:
            with datastore_errors("test"):
                raise cause
        self.assertIs(ctx.exception.__cause__, cause)

    def test_integrity_error_passes_through(self):
        with self.assertRaises(IntegrityError):
            with datastore_errors("test"):
                raise IntegrityError("INSERT", {}, Exception("unique"))


class TestErrors(unittest.TestCase):
    def test_status_codes(self):
        self.assertEqual(ConflictError().status_code, 409)
        self.assertEqual(UnavailableError().status_code, 503)
        self.assertEqual(AlreadyCancelledError().status_code, 400)

    def test_already_cancelled_is_invalid_state(self):
        self.assertIsInstance(AlreadyCancelledError(), InvalidStateError)

    def test_custom_message(self):
        self.assertEqual(InvalidStateError("nope").message, "nope")


class TestSecurity(unittest.TestCase):
    def test_access_token_round_trip(self):
        token, expires_in = create_access_token(42)
        self.assertEqual(decode_access_token(token), "42")
        self.assertGreater(expires_in, 0)

    def test_garbage_token(self):
        self.assertIsNone(decode_access_token("not.a.jwt"))

    def test_booking_tokens_are_unguessable(self):
        tokens = {generate_booking_token() for _ in range(100)}
        self.assertEqual(len(tokens), 100)
        self.assertTrue(all(len(t) >= 43 for t in tokens))
