"""Shared pytest fixtures for the crawler test suite."""

from pathlib import Path
from typing import Callable, Iterable

import httpx
import orjson
import pytest

from apps.crawler.fetcher import NOT_FOUND_MESSAGE, RecordFetcher, build_client
from utils.schemas import UserRecord

API_URL_TEMPLATE = "https://api.test/users/by-id/{id}"


def make_record(user_id: int, address: str | None = None) -> UserRecord:
    """Build a UserRecord with predictable field values."""
    return UserRecord(
        id=user_id,
        address=address or f"0x{user_id:040x}",
        twitterUsername=f"user{user_id}",
        twitterName=f"User {user_id}",
    )


def user_payload(user_id: int) -> dict:
    record = make_record(user_id)
    return {
        "id": user_id,
        "address": record.address,
        "twitterUsername": record.twitterUsername,
        "twitterName": record.twitterName,
        "holderCount": 3,
    }


def id_from_request(request: httpx.Request) -> int:
    return int(request.url.path.rsplit("/", 1)[-1])


def fake_api(existing: Iterable[int]) -> Callable[[httpx.Request], httpx.Response]:
    """MockTransport handler serving users for the given ids, not-found otherwise."""
    existing = set(existing)

    def handler(request: httpx.Request) -> httpx.Response:
        user_id = id_from_request(request)
        if user_id in existing:
            return httpx.Response(200, content=orjson.dumps(user_payload(user_id)))
        return httpx.Response(404, content=orjson.dumps({"message": NOT_FOUND_MESSAGE}))

    return handler


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Not-yet-created data directory inside the test's tmp path."""
    return tmp_path / "data"


@pytest.fixture
def state_path(data_dir: Path) -> Path:
    return data_dir / "state.json"


@pytest.fixture
def archive_path(data_dir: Path) -> Path:
    return data_dir / "users.json"


@pytest.fixture
def make_fetcher():
    """Factory building a RecordFetcher on top of a MockTransport handler."""

    def _make(handler, max_attempts: int = 3, retry_delay: float = 0.0) -> RecordFetcher:
        client = build_client(transport=httpx.MockTransport(handler))
        return RecordFetcher(
            client,
            url_template=API_URL_TEMPLATE,
            max_attempts=max_attempts,
            retry_delay=retry_delay,
        )

    return _make
