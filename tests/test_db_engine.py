"""Tests for the database module: lazy Redis client and session dependency."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import src.db.engine as db_engine


@pytest.fixture(autouse=True)
def _no_shared_redis():
    db_engine._redis_client = None
    yield
    db_engine._redis_client = None


# ── Redis ────────────────────────────────────────────────────────────


class TestRedisClient:
    def test_not_created_on_import(self):
        assert db_engine._redis_client is None

    def test_created_once_on_first_use(self):
        with patch("src.db.engine.aioredis.from_url") as mock_from_url:
            first = db_engine.get_redis()
            second = db_engine.get_redis()

        assert first is second
        mock_from_url.assert_called_once()
        assert mock_from_url.call_args.kwargs["decode_responses"] is True

    @pytest.mark.asyncio
    async def test_close_without_client_is_noop(self):
        with patch("src.db.engine.aioredis.from_url") as mock_from_url:
            await db_engine.close_redis()
        mock_from_url.assert_not_called()

    @pytest.mark.asyncio
    async def test_close_releases_client(self):
        client = MagicMock()
        client.aclose = AsyncMock()
        with patch("src.db.engine.aioredis.from_url", return_value=client):
            db_engine.get_redis()
            await db_engine.close_redis()

        client.aclose.assert_awaited_once()
        assert db_engine._redis_client is None


# ── Sessions ─────────────────────────────────────────────────────────


class TestGetSession:
    @staticmethod
    def _factory(session: MagicMock) -> MagicMock:
        factory = MagicMock()
        factory.return_value.__aenter__ = AsyncMock(return_value=session)
        factory.return_value.__aexit__ = AsyncMock(return_value=False)
        return factory

    @pytest.mark.asyncio
    async def test_yields_session(self):
        session = MagicMock()
        session.rollback = AsyncMock()
        with patch("src.db.engine.async_session_factory", self._factory(session)):
            gen = db_engine.get_session()
            assert await gen.__anext__() is session
            with pytest.raises(StopAsyncIteration):
                await gen.__anext__()
        session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rolls_back_on_error(self):
        session = MagicMock()
        session.rollback = AsyncMock()
        with patch("src.db.engine.async_session_factory", self._factory(session)):
            gen = db_engine.get_session()
            await gen.__anext__()
            with pytest.raises(RuntimeError):
                await gen.athrow(RuntimeError("query failed"))
        session.rollback.assert_awaited_once()
