import asyncio
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from canvas_api.src.config import CanvasConfig
from canvas_api.src.models.errors import InvalidArgumentError
from canvas_api.src.services import channel_registry
from canvas_api.src.services.channel_registry import ChannelRegistry
from canvas_api.src.services.command_router import CommandRouter


def test_get_creates_router_once_per_channel(registry):
    first = registry.get("main")
    again = registry.get("main")
    other = registry.get("room-2")

    assert first is again
    assert first is not other
    assert registry.channels() == ["main", "room-2"]


@pytest.mark.parametrize("name", ["", "Main", "-lead", "a b", "x" * 65, "room/1", "main\n"])
def test_invalid_channel_names_are_rejected(registry, name):
    with pytest.raises(InvalidArgumentError):
        registry.get(name)

    assert registry.channels() == []


def test_channels_do_not_share_session_state(registry):
    async def scenario():
        await registry.get("alpha").start("ml-clustering")
        await registry.get("alpha").add_point(1, 2)

    asyncio.run(scenario())

    assert len(registry.get("alpha").snapshot().points) == 1
    assert registry.get("beta").snapshot().points == []
    assert registry.get("beta").snapshot().is_running is False


def test_from_config_applies_clustering_settings(demos):
    settings = CanvasConfig(
        version="test",
        clustering={"default_k": 2, "processing_delay_seconds": "0.5", "seed": 7},
        demos=[{"id": "ml-clustering", "name": "ML", "description": "demo"}],
    )

    registry = ChannelRegistry.from_config(settings)
    router = registry.get("main")

    assert router.processing_delay == 0.5
    assert [demo.id for demo in registry.demos] == ["ml-clustering"]


def test_concurrent_first_requests_share_one_router(registry, monkeypatch):
    # Arrange
    class SlowRouter(CommandRouter):
        def __init__(self, *args, **kwargs):
            time.sleep(0.05)
            super().__init__(*args, **kwargs)

    monkeypatch.setattr(channel_registry, "CommandRouter", SlowRouter)

    # Act
    with ThreadPoolExecutor(max_workers=4) as pool:
        routers = list(pool.map(lambda _: registry.get("fresh"), range(4)))

    # Assert
    assert len({id(router) for router in routers}) == 1
    assert routers[0] is registry.get("fresh")
    assert registry.channels() == ["fresh"]
