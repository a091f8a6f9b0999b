import pytest
from fastapi.testclient import TestClient

from canvas_api.src.app import create_app
from canvas_api.src.config import DemoDefinition
from canvas_api.src.services.channel_registry import ChannelRegistry
from canvas_api.src.services.command_router import CommandRouter

DEMOS = [
    DemoDefinition(
        id="ml-clustering",
        name="Interactive ML Clustering",
        description="Place points and watch groups form",
        type="clustering",
        default_params={"k": 3},
    ),
    DemoDefinition(
        id="theft-pattern-map",
        name="Theft Pattern Map",
        description="Hourly theft patterns",
        type="clustering",
        default_params={"k": 3, "show_training": True},
    ),
]


@pytest.fixture
def demos():
    return list(DEMOS)


@pytest.fixture
def command_router(demos):
    return CommandRouter("main", demos, processing_delay=0.0)


@pytest.fixture
def registry(demos):
    return ChannelRegistry(demos, processing_delay=0.0)


@pytest.fixture
def client(registry):
    with TestClient(create_app(registry=registry)) as test_client:
        yield test_client
