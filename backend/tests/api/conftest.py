"""API test fixtures — in-process app over httpx.ASGITransport with a mock model.

Invariants:
    - Each test installs its own Runtime (fresh cache, breakers, monitor,
      stores) and the singleton is restored afterwards
    - Routing to the lite model is disabled: the routed model is predictable
"""

import httpx
import pytest

from chatrelay.config import get_settings
from chatrelay.infrastructure import runtime as runtime_module
from chatrelay.main import app

from tests.services.mock_anthropic import MockAnthropicClient


@pytest.fixture
async def install_runtime(monkeypatch):
    installed = []

    def _install(responses=(), **overrides):
        settings = get_settings().model_copy(update={
            "routing_lite_enabled": False, "retry_jitter": 0, "retry_base_delay_ms": 1,
            **overrides,
        })
        runtime = runtime_module.build_runtime(settings, client=MockAnthropicClient(list(responses)))
        monkeypatch.setattr(runtime_module, "runtime", runtime)
        installed.append(runtime)
        return runtime

    yield _install
    for runtime in installed:
        await runtime.http.aclose()


@pytest.fixture
async def api():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
