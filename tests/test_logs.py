from collections.abc import Iterator
from typing import Any

import pytest
from loguru import logger

from ipverify.logs import log_decorator


@pytest.fixture
def records() -> Iterator[list[dict[str, Any]]]:
    captured: list[dict[str, Any]] = []
    handler_id = logger.add(lambda message: captured.append(message.record), level="DEBUG")
    yield captured
    logger.remove(handler_id)


@log_decorator
def add(a: int, b: int) -> int:
    return a + b


@log_decorator
async def lookup(state: str, client_ip: str) -> str:
    return state.upper()


@log_decorator
async def broken(state: str) -> str:
    raise RuntimeError("boom")


def test_sync_function_is_logged(records: list[dict[str, Any]]):
    assert add(1, 2) == 3

    messages = [r["message"] for r in records]
    assert messages == ["Starting add", "Finished add"]
    assert records[1]["extra"]["args"] == {"a": "1", "b": "2"}
    assert "duration_sec" in records[1]["extra"]


@pytest.mark.asyncio
async def test_async_function_redacts_client_ip(records: list[dict[str, Any]]):
    assert await lookup("pa", "203.0.113.7") == "PA"

    for record in records:
        assert record["extra"]["args"] == {"state": "pa"}
        assert record["extra"]["decorator_log"] is True


@pytest.mark.asyncio
async def test_exceptions_are_logged_and_reraised(records: list[dict[str, Any]]):
    with pytest.raises(RuntimeError, match="boom"):
        await broken("pa")

    assert records[-1]["message"] == "Exception raised in broken"
    assert records[-1]["extra"]["error"] == "boom"
