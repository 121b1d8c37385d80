"""Unit tests for utils.schemas."""

import pytest
from pydantic import ValidationError

from tests.conftest import make_record
from utils.schemas import BatchResult, CrawlState, FetchOutcome, UserRecord


class TestUserRecord:
    def test_address_is_stripped(self):
        user = UserRecord(id=1, address="  0xAbC  ")

        assert user.address == "0xAbC"
        assert user.dedup_key == "0xabc"

    def test_blank_address_rejected(self):
        with pytest.raises(ValidationError, match="non-empty"):
            UserRecord(id=1, address="   ")

    def test_twitter_fields_optional(self):
        user = UserRecord(id=1, address="0x1", twitterUsername=None)

        assert user.twitterName is None


class TestCrawlState:
    def test_last_found_id_defaults_to_none(self):
        assert CrawlState(lastProcessedId=10).lastFoundId is None

    def test_negative_ids_rejected(self):
        with pytest.raises(ValidationError):
            CrawlState(lastProcessedId=10, lastFoundId=-1)


def test_batch_result_keeps_absent_and_failed_apart():
    result = BatchResult(
        ids=[1, 2, 3],
        outcomes=[
            FetchOutcome.found(make_record(1)),
            FetchOutcome.absent(2),
            FetchOutcome.failed(3, "timeout", attempts=3),
        ],
    )

    assert [r.id for r in result.records] == [1]
    assert result.absent_ids == [2]
    assert result.failed_ids == [3]
