import pytest

from async_operation import AsyncStatus
from conftest import FakeTransport, image_bytes
from media_kinds import COVER, MEDIA_KINDS, SCREENSHOT
from media_resolve import ResolveOrchestrator, enumerate_assets
from scraper_data import NormalizedResult


def only(*kinds):
    return {k: k in kinds for k in MEDIA_KINDS}


@pytest.fixture
def result():
    r = NormalizedResult("thegamesdb", "1234")
    r.set_field("name", "Sonic The Hedgehog")
    r.set_media(COVER, "https://cdn/boxart/front/1234.jpg")
    r.set_media(SCREENSHOT, "https://cdn/screenshots/1234.png", "png")
    return r


def test_single_enabled_kind_spawns_one_task(result, game, config):
    t = FakeTransport(delay=2)
    t.add("boxart", image_bytes(fmt="JPEG"))
    cfg = config.with_changes(media_enabled=only(COVER))

    resolve = ResolveOrchestrator(result, game, cfg, t)
    assert len(resolve.tasks) == 1
    (task,) = resolve.tasks

    for _ in range(10):
        status = resolve.poll()
        assert (status == AsyncStatus.DONE) == (task.status == AsyncStatus.DONE)
        if status == AsyncStatus.DONE:
            break
    assert resolve.result() is result
    assert game.media_path(COVER, ".jpg").exists()
    assert t.issued == ["https://cdn/boxart/front/1234.jpg"]


def test_kinds_without_url_are_not_enumerated(result, game, config):
    kinds = [a.kind for a in enumerate_assets(result, game, config)]
    assert kinds == [COVER, SCREENSHOT]


def test_existing_media_kept_when_not_overwriting(result, game, config, transport):
    existing = game.media_path(COVER, ".png")
    existing.parent.mkdir(parents=True)
    existing.write_bytes(b"old")
    cfg = config.with_changes(media_enabled=only(COVER), overwrite_existing=False)

    resolve = ResolveOrchestrator(result, game, cfg, transport)
    assert resolve.tasks == []
    assert resolve.poll() == AsyncStatus.DONE
    assert existing.read_bytes() == b"old"
    assert transport.issued == []


def test_child_error_fails_resolution_without_rollback(result, game, config):
    t = FakeTransport()
    t.add("boxart", image_bytes(fmt="JPEG"))
    # Screenshot URL is unknown to the fake transport: 404.
    resolve = ResolveOrchestrator(result, game, config, t)
    assert resolve.poll() == AsyncStatus.ERROR
    assert "404" in resolve.message()
    assert game.media_path(COVER, ".jpg").exists()
    with pytest.raises(RuntimeError):
        resolve.result()


def test_cached_preview_is_written_inline(result, game, config, transport):
    data = image_bytes(fmt="JPEG")
    result.thumbnail_url = result.media_url(COVER)
    result.thumbnail_data = data
    cfg = config.with_changes(media_enabled=only(COVER))

    resolve = ResolveOrchestrator(result, game, cfg, transport)
    assert resolve.tasks == []
    assert game.media_path(COVER, ".jpg").read_bytes() == data
    assert result.saved_new_media
    assert resolve.poll() == AsyncStatus.DONE
    assert transport.issued == []


def test_result_while_running_raises(result, game, config):
    t = FakeTransport(delay=5)
    t.add("cdn", image_bytes())
    resolve = ResolveOrchestrator(result, game, config, t)
    resolve.poll()
    with pytest.raises(RuntimeError):
        resolve.result()


def test_format_hint_decides_extension(result, game, config):
    t = FakeTransport()
    t.add("screenshots", image_bytes())
    cfg = config.with_changes(media_enabled=only(SCREENSHOT))
    resolve = ResolveOrchestrator(result, game, cfg, t)
    assert resolve.tasks[0].asset.destination == game.media_path(SCREENSHOT, ".png")
    assert resolve.poll() == AsyncStatus.DONE
    assert game.media_path(SCREENSHOT, ".png").exists()
