from __future__ import annotations

import json
from collections.abc import AsyncIterator, Iterator

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from apm_demo.agent import AgentConfig, Application, InMemorySink
from apm_demo.config import get_settings
from apm_demo.main import create_app
from apm_demo.services.external import set_http_client

LICENSE_KEY = "0123456789abcdef0123456789abcdef01234567"


class MockExternalApi:
    """Stands in for the third-party API the /external demo calls."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.fail_with: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        return httpx.Response(
            200,
            content=json.dumps({"login": "defunkt", "id": 2}).encode(),
            headers={"content-type": "application/json"},
        )


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("APM_LICENSE_KEY", LICENSE_KEY)
    monkeypatch.setenv("APM_SINK", "memory")
    monkeypatch.setenv("EXTERNAL_URL", "https://api.example.test/users/defunkt")
    get_settings.cache_clear()
    yield
    set_http_client(None)
    get_settings.cache_clear()


@pytest.fixture
def sink() -> InMemorySink:
    return InMemorySink()


@pytest.fixture
def agent_config() -> AgentConfig:
    return AgentConfig(app_name="POC", license_key=LICENSE_KEY, browser_application_id="601234")


@pytest.fixture
def application(agent_config: AgentConfig, sink: InMemorySink) -> Application:
    return Application(agent_config, sink)


@pytest.fixture
def external_api() -> MockExternalApi:
    api = MockExternalApi()
    set_http_client(httpx.AsyncClient(transport=httpx.MockTransport(api)))
    return api


@pytest.fixture
async def api_client(application: Application, external_api: MockExternalApi) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=create_app(application))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
