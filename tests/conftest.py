import pytest

from facesignal.config import Settings
from facesignal.model_provider import ModelProvider
from helpers import dummy_model_set


@pytest.fixture
def settings():
    return Settings(SAMPLE_INTERVAL_MS=10, MESH_ENABLED=True)


@pytest.fixture
def provider(settings):
    return ModelProvider(settings, loader=lambda s: dummy_model_set())
