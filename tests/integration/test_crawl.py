"""End-to-end crawl against a fake API served through httpx.MockTransport."""

import httpx
import orjson
import pytest

import apps.crawler.scheduler as scheduler_module
from apps.crawler.fetcher import build_client
from tests.conftest import fake_api
from utils.config import settings


@pytest.fixture
def configured(monkeypatch, data_dir, state_path, archive_path):
    monkeypatch.setattr(settings, "DATA_DIR", str(data_dir))
    monkeypatch.setattr(settings, "STATE_FILE", str(state_path))
    monkeypatch.setattr(settings, "ARCHIVE_FILE", str(archive_path))
    monkeypatch.setattr(settings, "API_BASE_URL", "https://api.test")
    monkeypatch.setattr(settings, "CRAWL_RETRY_DELAY", 0.0)

    def use_fake_api(existing):
        def factory():
            return build_client(transport=httpx.MockTransport(fake_api(existing)))

        monkeypatch.setattr(scheduler_module, "build_client", factory)

    return use_fake_api


@pytest.mark.asyncio
async def test_crawl_until_exhausted(configured, state_path, archive_path):
    configured(range(11, 151))

    summary = await scheduler_module.run_crawl()

    archived = orjson.loads(archive_path.read_bytes())
    assert sorted(r["id"] for r in archived) == list(range(11, 151))
    assert summary.appended == 140
    # 11-110 and 111-210 find users, then three empty batches
    assert summary.batches == 5
    assert orjson.loads(state_path.read_bytes()) == {"lastProcessedId": 510, "lastFoundId": 150}


@pytest.mark.asyncio
async def test_restart_resumes_and_does_not_duplicate(configured, state_path, archive_path):
    configured(range(11, 151))
    await scheduler_module.run_crawl()

    # New users appear beyond the old frontier; old ones are served again too
    configured(list(range(11, 151)) + list(range(511, 531)))
    summary = await scheduler_module.run_crawl()

    archived = orjson.loads(archive_path.read_bytes())
    ids = [r["id"] for r in archived]
    assert len(ids) == len(set(ids)) == 160
    assert summary.start_id == 511
    assert summary.appended == 20


@pytest.mark.asyncio
async def test_rewound_checkpoint_refetch_is_deduplicated(configured, state_path, archive_path):
    configured(range(11, 61))
    await scheduler_module.run_crawl()

    # Simulate a crash after the archive write but before the checkpoint write
    state_path.write_text('{"lastProcessedId": 10}')
    summary = await scheduler_module.run_crawl()

    assert summary.found == 50
    assert summary.appended == 0
    assert len(orjson.loads(archive_path.read_bytes())) == 50


@pytest.mark.asyncio
async def test_rescan_picks_up_users_created_inside_trailing_gap(configured, state_path, archive_path):
    configured(range(11, 151))
    await scheduler_module.run_crawl()

    # 151-170 land inside the empty batches the first run already walked past
    configured(range(11, 171))
    summary = await scheduler_module.run_crawl(rescan_from_last_found=True)

    archived = orjson.loads(archive_path.read_bytes())
    ids = [r["id"] for r in archived]
    assert sorted(ids) == list(range(11, 171))
    assert len(ids) == len(set(ids))
    assert summary.start_id == 151
    assert summary.appended == 20
    assert summary.last_found_id == 170
    # 151-250 finds users, then 251-550 are empty; the checkpoint never moves back
    assert orjson.loads(state_path.read_bytes()) == {"lastProcessedId": 550, "lastFoundId": 170}


@pytest.mark.asyncio
async def test_plain_rerun_skips_trailing_gap(configured, state_path, archive_path):
    configured(range(11, 151))
    await scheduler_module.run_crawl()

    configured(range(11, 171))
    summary = await scheduler_module.run_crawl()

    assert summary.start_id == 511
    assert summary.appended == 0
