"""Tests for logging setup and feed log context."""

import asyncio
import logging

import pytest
import structlog

from subway_api.config import Settings
from subway_api.logging import feed_log_context, setup_logging


def test_feed_context_binds_and_restores() -> None:
    structlog.contextvars.clear_contextvars()

    with feed_log_context("ace", "abcd1234"):
        bound = structlog.contextvars.get_contextvars()
        assert bound == {"feed_id": "ace", "cycle_id": "abcd1234"}

    assert structlog.contextvars.get_contextvars() == {}


@pytest.mark.asyncio
async def test_feed_context_isolated_between_tasks() -> None:
    seen: dict[str, str] = {}

    async def refresh(feed_id: str) -> None:
        with feed_log_context(feed_id, "cycle"):
            await asyncio.sleep(0.01)
            seen[feed_id] = structlog.contextvars.get_contextvars()["feed_id"]

    await asyncio.gather(refresh("ace"), refresh("nqrw"))

    assert seen == {"ace": "ace", "nqrw": "nqrw"}


def test_setup_logging_json_quiets_http_loggers() -> None:
    settings = Settings(environment="development", log_format="json", debug=False)

    setup_logging(settings)

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)
    assert logging.getLogger("httpx").level == logging.WARNING
