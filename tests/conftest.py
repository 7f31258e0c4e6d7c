import httpx
import pytest
from fastapi.testclient import TestClient

from fake_backend import create_app
from notes_client import ApiClient, MemorySessionStore, NotesAPI, ResponseInterceptor


@pytest.fixture
def redirects():
    return []


@pytest.fixture
def store():
    return MemorySessionStore()


@pytest.fixture
def backend():
    return create_app()


@pytest.fixture
def api(backend, store, redirects):
    interceptor = ResponseInterceptor(store, redirect=redirects.append, login_path="/login")
    with TestClient(backend) as http:
        yield NotesAPI(ApiClient(store, interceptor, http=http))


@pytest.fixture
def alice(api):
    api.register("alice", "alice@example.com", "pw123456")
    api.login("alice", "pw123456")
    return api


@pytest.fixture
def make_client(store, redirects):
    """Build an ApiClient whose requests are answered by `handler` instead of the network."""
    def build(handler):
        http = httpx.Client(transport=httpx.MockTransport(handler), base_url="http://api.test")
        interceptor = ResponseInterceptor(store, redirect=redirects.append, login_path="/login")
        return ApiClient(store, interceptor, http=http)
    return build
