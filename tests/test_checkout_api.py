"""Tests for the checkout verification API."""

from storefront.api.checkout import PAYMENT_FAILURE_BODY

from conftest import TEST_USER_ID, make_access_token


def mint(client, headers) -> dict:
    response = client.post("/api/checkout/payment-token", headers=headers)
    assert response.status_code == 200
    return response.json()


def confirm_body(minted: dict, payload: str) -> dict:
    return {
        "token": minted["token"],
        "issued_at": minted["issued_at"],
        "expires_at": minted["expires_at"],
        "payload": payload,
    }


ORDER = {"amount": 249.5, "currency": "inr", "order_id": "LM-1042"}


class TestPaymentTokenEndpoint:
    """Tests for POST /api/checkout/payment-token."""

    def test_requires_authentication(self, csrf_client):
        response = csrf_client.post("/api/checkout/payment-token")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_rejects_expired_session(self, csrf_client):
        headers = {"Authorization": f"Bearer {make_access_token(expires_in=-60)}"}
        response = csrf_client.post("/api/checkout/payment-token", headers=headers)
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired session"

    def test_requires_csrf_token(self, client, auth_headers):
        response = client.post("/api/checkout/payment-token", headers=auth_headers)
        assert response.status_code == 403

    def test_mints_token(self, csrf_client, auth_headers, clock, security_config, tokenizer):
        minted = mint(csrf_client, auth_headers)
        assert minted["issued_at"] == clock.ms
        assert minted["expires_at"] == clock.ms + security_config.payment_token_ttl_ms
        assert tokenizer.validate(
            minted["token"], TEST_USER_ID, minted["issued_at"], minted["expires_at"]
        )


class TestConfirmEndpoint:
    """Tests for POST /api/checkout/confirm."""

    def test_confirm_success(self, csrf_client, auth_headers, codec):
        minted = mint(csrf_client, auth_headers)
        response = csrf_client.post(
            "/api/checkout/confirm",
            json=confirm_body(minted, codec.encrypt(ORDER)),
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json() == {
            "status": "verified",
            "order_id": "LM-1042",
            "amount": 249.5,
            "currency": "inr",
        }

    def test_forged_token_rejected(self, csrf_client, auth_headers, codec):
        minted = mint(csrf_client, auth_headers)
        minted["token"] = "0" * 64
        response = csrf_client.post(
            "/api/checkout/confirm",
            json=confirm_body(minted, codec.encrypt(ORDER)),
            headers=auth_headers,
        )
        assert response.status_code == 403
        assert response.json() == PAYMENT_FAILURE_BODY

    def test_expired_token_rejected(self, csrf_client, auth_headers, codec, clock, security_config):
        minted = mint(csrf_client, auth_headers)
        clock.advance(security_config.payment_token_ttl_ms + 1)
        response = csrf_client.post(
            "/api/checkout/confirm",
            json=confirm_body(minted, codec.encrypt(ORDER)),
            headers=auth_headers,
        )
        assert response.status_code == 403
        assert response.json() == PAYMENT_FAILURE_BODY

    def test_token_of_another_user_rejected(self, csrf_client, auth_headers, codec, tokenizer):
        other = tokenizer.mint("another-user")
        response = csrf_client.post(
            "/api/checkout/confirm",
            json=confirm_body(
                {"token": other.token, "issued_at": other.issued_at, "expires_at": other.expires_at},
                codec.encrypt(ORDER),
            ),
            headers=auth_headers,
        )
        assert response.status_code == 403

    def test_tampered_payload_rejected(self, csrf_client, auth_headers, codec):
        minted = mint(csrf_client, auth_headers)
        iv_hex, ciphertext = codec.encrypt(ORDER).split(":")
        flipped = ("B" if ciphertext[0] == "A" else "A") + ciphertext[1:]
        response = csrf_client.post(
            "/api/checkout/confirm",
            json=confirm_body(minted, f"{iv_hex}:{flipped}"),
            headers=auth_headers,
        )
        assert response.status_code == 403
        assert response.json() == PAYMENT_FAILURE_BODY

    def test_invalid_amount_rejected(self, csrf_client, auth_headers, codec):
        minted = mint(csrf_client, auth_headers)
        response = csrf_client.post(
            "/api/checkout/confirm",
            json=confirm_body(minted, codec.encrypt({**ORDER, "amount": -5})),
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Invalid payment data")

    def test_non_object_payload_rejected(self, csrf_client, auth_headers, codec):
        minted = mint(csrf_client, auth_headers)
        response = csrf_client.post(
            "/api/checkout/confirm",
            json=confirm_body(minted, codec.encrypt("just a string")),
            headers=auth_headers,
        )
        assert response.status_code == 400


class TestHealth:
    """Tests for GET /health."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["environment_ready"] is True
        assert "version" in data

    def test_docs_hidden_without_debug(self, client):
        assert client.get("/docs").status_code == 404
