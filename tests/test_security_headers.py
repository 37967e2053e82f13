"""Tests for security headers middleware.

Verifies that the required security headers are present on API and page
responses.
"""

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from storefront.middleware.security_headers import API_CSP, SecurityHeadersMiddleware


def build_app(production: bool = False) -> FastAPI:
    app = FastAPI()
    app.add_middleware(SecurityHeadersMiddleware, production=production)

    @app.get("/api/items")
    async def items():
        return {"items": []}

    @app.get("/products")
    async def products():
        return {"page": "products"}

    @app.get("/checkout/review")
    async def checkout():
        return {"page": "checkout"}

    @app.get("/nonce")
    async def nonce(request: Request):
        return {"nonce": request.state.csp_nonce}

    return app


@pytest.fixture
def client():
    return TestClient(build_app())


class TestSecurityHeaders:
    """Tests for SecurityHeadersMiddleware."""

    @pytest.mark.parametrize("path", ["/api/items", "/products"])
    def test_baseline_headers(self, client, path):
        response = client.get(path)
        assert response.headers.get("X-Content-Type-Options") == "nosniff"
        assert response.headers.get("X-Frame-Options") == "DENY"
        assert response.headers.get("X-XSS-Protection") == "1; mode=block"
        assert response.headers.get("Referrer-Policy") == "strict-origin-when-cross-origin"

    def test_api_csp(self, client):
        response = client.get("/api/items")
        assert response.headers["Content-Security-Policy"] == API_CSP
        assert "geolocation=()" in response.headers["Permissions-Policy"]

    def test_page_csp_allows_payment_provider(self, client):
        csp = client.get("/products").headers["Content-Security-Policy"]
        assert "script-src 'self' 'nonce-" in csp
        assert "https://js.stripe.com" in csp
        assert "frame-ancestors 'self'" in csp
        assert "object-src 'none'" in csp

    def test_checkout_csp_allows_payment_form_action(self, client):
        csp = client.get("/checkout/review").headers["Content-Security-Policy"]
        assert "form-action 'self' https://api.stripe.com" in csp

    def test_nonce_matches_csp(self, client):
        response = client.get("/nonce")
        nonce = response.json()["nonce"]
        assert f"'nonce-{nonce}'" in response.headers["Content-Security-Policy"]

    def test_nonce_changes_per_request(self, client):
        assert client.get("/nonce").json()["nonce"] != client.get("/nonce").json()["nonce"]

    def test_sensitive_paths_not_cached(self, client):
        for path in ("/api/items", "/checkout/review"):
            response = client.get(path)
            assert response.headers["Cache-Control"] == "no-store, max-age=0"
            assert response.headers["Pragma"] == "no-cache"

    def test_public_pages_cacheable(self, client):
        assert "Cache-Control" not in client.get("/products").headers

    def test_hsts_header_with_https(self, client):
        """Test HSTS header is set when X-Forwarded-Proto is https."""
        response = client.get("/products", headers={"X-Forwarded-Proto": "https"})
        hsts = response.headers.get("Strict-Transport-Security")
        assert hsts == "max-age=63072000; includeSubDomains; preload"

    def test_hsts_header_not_set_for_http(self, client):
        """Test HSTS header is not set for plain HTTP in development."""
        response = client.get("/products")
        assert "Strict-Transport-Security" not in response.headers

    def test_hsts_always_in_production(self):
        client = TestClient(build_app(production=True))
        assert "Strict-Transport-Security" in client.get("/products").headers
