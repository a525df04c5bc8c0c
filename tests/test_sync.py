import pytest

from conftest import BASE_URL, DummyResponse
from nuzlocke_tracker.pokedex.progress import SyncProgress
from nuzlocke_tracker.pokedex.sync import (
    NARROW_RANGE,
    SYNC_PRESETS,
    WIDE_RANGE,
    sync_gif_sprites,
    sync_narrow_range,
    sync_range,
    sync_wide_range,
)


def _seed(fake_api, ids):
    for pokedex_id in ids:
        fake_api.add_pokemon(pokedex_id, f"mon{pokedex_id}", ["normal"], [50, 50, 50, 50, 50, 50])


def test_range_beyond_valid_ids_stops_after_twenty(cache, fake_api):
    sleeps = []
    result = sync_range(cache, 5000, 5030, sleep=sleeps.append)

    assert result.species == []
    assert result.attempted == 20
    assert result.not_found == list(range(5000, 5020))
    assert result.stopped_early is True
    assert len(fake_api.calls) == 20
    assert len(sleeps) == 19


def test_transient_error_does_not_trigger_early_stop(cache, fake_api):
    _seed(fake_api, [1, 2, 3, 4, 5])
    fake_api.fail(f"{BASE_URL}/pokemon/3")

    result = sync_range(cache, 1, 5, delay=0)

    assert [s.pokedex_id for s in result.species] == [1, 2, 4, 5]
    assert result.failed == [3]
    assert result.stopped_early is False
    assert result.attempted == 5


def test_transient_error_resets_not_found_streak(cache, fake_api):
    fake_api.fail(f"{BASE_URL}/pokemon/10")

    result = sync_range(cache, 1, 25, delay=0, not_found_threshold=10)

    # 1-9 missing, 10 transient, then ten more missing
    assert result.attempted == 20
    assert result.failed == [10]
    assert result.stopped_early is True


def test_threshold_is_configurable(cache, fake_api):
    result = sync_range(cache, 100, 130, delay=0, not_found_threshold=3)
    assert result.attempted == 3


def test_delay_between_attempts_only(cache, fake_api):
    _seed(fake_api, [1, 2, 3])
    sleeps = []

    sync_range(cache, 1, 3, delay=0.1, sleep=sleeps.append)

    assert sleeps == [0.1, 0.1]


def test_progress_callback_and_token(cache, fake_api):
    _seed(fake_api, [1, 2, 3, 4])
    fake_api.fail(f"{BASE_URL}/pokemon/2")
    progress = SyncProgress()
    seen = []

    def on_progress(current, total):
        snap = progress.snapshot()
        seen.append((current, total, snap.current, snap.is_running))

    before = progress.snapshot()
    result = sync_range(cache, 1, 4, on_progress=on_progress, progress=progress, delay=0)
    after = progress.snapshot()

    assert before.is_running is False
    assert [entry[:2] for entry in seen] == [(1, 4), (2, 4), (3, 4), (4, 4)]
    assert [entry[2] for entry in seen] == [1, 2, 3, 4]
    assert all(entry[3] for entry in seen)
    assert after.is_running is False
    assert after.current == after.total == 4
    assert result.progress is progress


def test_progress_is_monotonic(cache, fake_api):
    _seed(fake_api, range(1, 11))
    progress = SyncProgress()
    currents = [progress.snapshot().current]

    sync_range(cache, 1, 10, on_progress=lambda c, t: currents.append(progress.snapshot().current), progress=progress, delay=0)
    currents.append(progress.snapshot().current)

    assert currents[0] == 0
    assert currents[-1] == 10
    assert currents == sorted(currents)


def test_cancel_stops_before_next_attempt(cache, fake_api):
    _seed(fake_api, range(1, 11))
    progress = SyncProgress()

    def on_progress(current, total):
        if current == 3:
            progress.cancel()

    result = sync_range(cache, 1, 10, on_progress=on_progress, progress=progress, delay=0)

    assert result.cancelled is True
    assert result.attempted == 3
    assert cache.count() == 3


def test_max_consecutive_errors_aborts(cache, fake_api):
    for pokedex_id in range(1, 31):
        fake_api.fail(f"{BASE_URL}/pokemon/{pokedex_id}")

    result = sync_range(cache, 1, 30, delay=0, max_consecutive_errors=5)

    assert result.attempted == 5
    assert result.stopped_early is True


def test_all_transient_without_limit_scans_whole_range(cache, fake_api):
    for pokedex_id in range(1, 31):
        fake_api.fail(f"{BASE_URL}/pokemon/{pokedex_id}")

    result = sync_range(cache, 1, 30, delay=0)

    assert result.attempted == 30
    assert result.species == []
    assert len(result.failed) == 30


def test_cached_ids_are_not_refetched(cache, fake_api):
    _seed(fake_api, [1, 2])
    cache.ensure_cached(1)
    fake_api.calls.clear()

    sync_range(cache, 1, 2, delay=0)

    assert fake_api.calls == [f"{BASE_URL}/pokemon/2", f"{BASE_URL}/pokemon-species/2"]


def test_invalid_bounds():
    with pytest.raises(ValueError):
        sync_range(None, 0, 10)
    with pytest.raises(ValueError):
        sync_range(None, 10, 5)


def test_presets(cache, monkeypatch):
    assert NARROW_RANGE == (1, 493)
    assert WIDE_RANGE == (1, 1050)
    assert set(SYNC_PRESETS) == {"narrow", "wide"}

    seen = []

    def fake_sync_range(cache_arg, start_id, end_id, **kwargs):
        seen.append((start_id, end_id, kwargs))

    monkeypatch.setattr("nuzlocke_tracker.pokedex.sync.sync_range", fake_sync_range)
    sync_narrow_range(cache, delay=0)
    sync_wide_range(cache)

    assert seen == [(1, 493, {"delay": 0}), (1, 1050, {})]


def test_gif_sprite_backfill(cache, fake_api):
    _seed(fake_api, [1, 2, 3])
    cache.ensure_many([1, 2, 3])
    sprites = fake_api.routes[f"{BASE_URL}/pokemon/1"]["sprites"]
    sprites["other"]["showdown"] = {"front_default": "https://img.test/1.gif"}
    cache.client._head_requester = lambda url, **kw: DummyResponse(status_code=200 if url.endswith("/2.gif") else 404)
    fake_api.fail(f"{BASE_URL}/pokemon/3")
    progress = []
    sleeps = []

    result = sync_gif_sprites(cache, on_progress=lambda *args: progress.append(args), sleep=sleeps.append)

    assert (result.total, result.updated) == (3, 2)
    assert cache.get(1).sprite_gif_url == "https://img.test/1.gif"
    assert cache.get(2).sprite_gif_url.endswith("/showdown/2.gif")
    assert cache.get(3).sprite_gif_url is None
    assert progress == [(1, 3, 1), (2, 3, 2), (3, 3, 2)]
    assert sleeps == [0.15, 0.15]


def test_started_token_keeps_early_cancel(cache, fake_api):
    _seed(fake_api, [1, 2, 3])
    progress = SyncProgress()
    progress.start(3)
    progress.cancel()

    result = sync_range(cache, 1, 3, progress=progress, delay=0)

    assert result.cancelled is True
    assert result.attempted == 0
    assert fake_api.calls == []
    assert progress.snapshot().is_running is False


def test_gif_backfill_skips_bad_items(cache, fake_api, monkeypatch):
    _seed(fake_api, [1, 2, 3])
    cache.ensure_many([1, 2, 3])
    fake_api.routes[f"{BASE_URL}/pokemon/1"]["sprites"] = ["not", "a", "mapping"]
    cache.client._head_requester = lambda url, **kw: DummyResponse(status_code=200)
    real_upsert = cache.store.upsert

    def flaky_upsert(species):
        if species.pokedex_id == 2:
            raise OSError("disk full")
        return real_upsert(species)

    monkeypatch.setattr(cache.store, "upsert", flaky_upsert)

    result = sync_gif_sprites(cache, delay=0)

    assert (result.total, result.updated) == (3, 1)
    assert cache.get(1).sprite_gif_url is None
    assert cache.get(2).sprite_gif_url is None
    assert cache.get(3).sprite_gif_url.endswith("/showdown/3.gif")
