"""Integration tests for the hello endpoint through the routing table."""

import pytest
from fastapi.testclient import TestClient

from minimal_server.app import create_app
from minimal_server.routes.hello import hello


@pytest.fixture
def client():
    """Create TestClient for each test."""
    with TestClient(create_app()) as c:
        yield c


class TestHelloDirect:
    """Call the handler without the router."""

    @pytest.mark.asyncio
    async def test_hello_direct(self):
        response = await hello("Testing")
        assert response.status_code == 200
        assert response.headers["content-type"] == "text/plain; charset=utf-8"
        assert response.body == b"Hello Testing\n"


class TestHelloRoute:
    """Test GET /hello/{name} through the app."""

    def test_hello_returns_greeting(self, client):
        response = client.get("/hello/Ada")
        assert response.status_code == 200
        assert response.headers["content-type"] == "text/plain; charset=utf-8"
        assert response.text == "Hello Ada\n"

    def test_name_inserted_verbatim(self, client):
        """No HTML escaping is applied to the name."""
        response = client.get("/hello/<Ada&Bob>")
        assert response.text == "Hello <Ada&Bob>\n"

    def test_percent_encoded_name_is_decoded(self, client):
        response = client.get("/hello/Ada%20Lovelace")
        assert response.text == "Hello Ada Lovelace\n"

    def test_missing_name_is_not_found(self, client):
        assert client.get("/hello/").status_code == 404

    def test_extra_segment_is_not_found(self, client):
        assert client.get("/hello/Ada/Lovelace").status_code == 404

    def test_other_methods_not_allowed(self, client):
        assert client.post("/hello/Ada").status_code == 405

    def test_no_other_routes(self, client):
        assert client.get("/").status_code == 404
        assert client.get("/docs").status_code == 404
        assert client.get("/openapi.json").status_code == 404
