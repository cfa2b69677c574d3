"""
Global pytest configuration for ftproxy
"""

import asyncio
import json

import httpx
import pytest

from ftproxy.core.config import ProxySettings
from ftproxy.core.http_client import HTTPClient

TEST_ENV = {
    "FINTECHOS_BASE_URL": "https://engine.test",
    "FINTECHOS_USER_NAME": "proxy-user",
    "FINTECHOS_PASSWORD": "proxy-pass",
    "FINTECHOS_CLIENT_ID": "client",
    "FINTECHOS_CLIENT_SECRET": "secret",
    "FINTECHOS_CULTURE": "en-US",
    "FINTECHOS_START_ENDPOINT": "/journey/start",
    "FINTECHOS_LOAD_METADATA_ENDPOINT": "/journey/metadata",
    "FINTECHOS_LOAD_STEP_ENDPOINT": "/journey/step",
    "FINTECHOS_NEXT_ENDPOINT": "/journey/next",
    "FINTECHOS_PREVIOUS_ENDPOINT": "/journey/previous",
    "FINTECHOS_CALL_STEP_ACTION_ENDPOINT": "/journey/action",
    "FINTECHOS_CALL_VIEW_ITEM": "/journey/view-item",
    "FINTECHOS_PFAPI_BASE_URL": "https://pfapi.test",
    "FINTECHOS_AVAILABLE_OFFERS": "/pfapi/api/v1/product/offer",
    "ENVIRONMENT": "test",
}


def pytest_addoption(parser):
    """Add integration test option to pytest"""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests against the engine configured in .env"
    )


def pytest_configure(config):
    """Configure pytest for integration tests"""
    config.addinivalue_line("markers", "integration: mark test as integration test")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to handle integration tests"""
    if config.getoption("--integration"):
        # Only run integration tests
        skip_unit = pytest.mark.skip(reason="running integration tests only")
        for item in items:
            if "integration" not in item.keywords:
                item.add_marker(skip_unit)
    else:
        # Skip integration tests by default
        skip_integration = pytest.mark.skip(reason="use --integration to run integration tests")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


@pytest.fixture
def settings(tmp_path):
    """Fully configured settings pointing at a (missing) override file under tmp_path"""
    env = dict(TEST_ENV, STEP_OVERRIDES_PATH=str(tmp_path / "step-overrides.json"))
    return ProxySettings.from_env(env)


class RecordingTransport(httpx.AsyncBaseTransport):
    """
    httpx transport answering from a route table and recording every request

    Routes map (METHOD, path) to a response or a list of responses consumed in
    order (the last one repeats). A response is (status, body) or a callable
    taking the request and returning one (or a coroutine resolving to one).
    """

    def __init__(self, routes):
        self.routes = {key: (list(value) if isinstance(value, list) else [value]) for key, value in routes.items()}
        self.requests = []

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == path]

    async def handle_async_request(self, request):
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"message": f"no route for {key}"})

        queue = self.routes[key]
        answer = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(answer):
            answer = answer(request)
        if asyncio.iscoroutine(answer):
            answer = await answer

        status, body = answer
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, content=json.dumps(body).encode(), headers={"content-type": "application/json"})


@pytest.fixture
def transport_factory():
    def build(routes):
        transport = RecordingTransport(routes)
        return transport, HTTPClient(timeout=5, transport=transport)
    return build
