"""Tests for payment verification tokens."""

import pytest

from conftest import START_MS, TEST_USER_ID


class TestMint:
    """Tests for PaymentTokenizer.mint."""

    def test_mint_uses_clock_and_default_ttl(self, tokenizer, security_config):
        minted = tokenizer.mint(TEST_USER_ID)
        assert minted.issued_at == START_MS
        assert minted.expires_at == START_MS + security_config.payment_token_ttl_ms
        assert len(minted.token) == 64

    def test_mint_with_explicit_time_and_ttl(self, tokenizer):
        minted = tokenizer.mint(TEST_USER_ID, now=1000, ttl_ms=500)
        assert (minted.issued_at, minted.expires_at) == (1000, 1500)

    def test_mint_is_deterministic_for_same_inputs(self, tokenizer):
        first = tokenizer.mint(TEST_USER_ID, now=1000)
        second = tokenizer.mint(TEST_USER_ID, now=1000)
        assert first == second

    def test_mint_differs_per_user(self, tokenizer):
        assert tokenizer.mint("user-a", now=1000).token != tokenizer.mint("user-b", now=1000).token

    def test_empty_user_rejected(self, tokenizer):
        with pytest.raises(ValueError):
            tokenizer.mint("")

    @pytest.mark.parametrize("ttl_ms", [0, -1])
    def test_non_positive_ttl_rejected(self, tokenizer, ttl_ms):
        with pytest.raises(ValueError):
            tokenizer.mint(TEST_USER_ID, ttl_ms=ttl_ms)


class TestValidate:
    """Tests for PaymentTokenizer.validate."""

    def test_valid_at_issue_time(self, tokenizer):
        minted = tokenizer.mint(TEST_USER_ID, now=1000)
        assert tokenizer.validate(minted.token, TEST_USER_ID, 1000, minted.expires_at, now=1000)

    def test_valid_at_expiry_instant(self, tokenizer):
        minted = tokenizer.mint(TEST_USER_ID, now=1000)
        assert tokenizer.validate(
            minted.token, TEST_USER_ID, 1000, minted.expires_at, now=minted.expires_at
        )

    def test_invalid_after_expiry(self, tokenizer):
        minted = tokenizer.mint(TEST_USER_ID, now=1000)
        assert not tokenizer.validate(
            minted.token, TEST_USER_ID, 1000, minted.expires_at, now=minted.expires_at + 1
        )

    def test_invalid_after_expiry_by_clock(self, tokenizer, clock, security_config):
        minted = tokenizer.mint(TEST_USER_ID)
        clock.advance(security_config.payment_token_ttl_ms + 1)
        assert not tokenizer.validate(
            minted.token, TEST_USER_ID, minted.issued_at, minted.expires_at
        )

    def test_forged_token_rejected(self, tokenizer):
        minted = tokenizer.mint(TEST_USER_ID, now=1000)
        assert not tokenizer.validate("0" * 64, TEST_USER_ID, 1000, minted.expires_at, now=1000)

    def test_other_user_rejected(self, tokenizer):
        minted = tokenizer.mint(TEST_USER_ID, now=1000)
        assert not tokenizer.validate(minted.token, "someone-else", 1000, minted.expires_at, now=1000)

    def test_extended_expiry_rejected(self, tokenizer):
        """Test that moving expires_at out invalidates the token."""
        minted = tokenizer.mint(TEST_USER_ID, now=1000)
        assert not tokenizer.validate(
            minted.token, TEST_USER_ID, 1000, minted.expires_at + 60_000, now=1000
        )

    def test_token_bound_to_payment_secret(self, tokenizer, codec):
        """Test that a token signed with another secret is rejected."""
        minted = tokenizer.mint(TEST_USER_ID, now=1000)
        forged = codec.sign(f"{TEST_USER_ID}-1000-{minted.expires_at}", "guessed-secret")
        assert not tokenizer.validate(forged, TEST_USER_ID, 1000, minted.expires_at, now=1000)

    def test_garbage_never_raises(self, tokenizer):
        assert not tokenizer.validate(None, TEST_USER_ID, 0, 10, now=0)
        assert not tokenizer.validate("tok", "", 0, 10, now=0)
        assert not tokenizer.validate("ü" * 64, TEST_USER_ID, 0, 10, now=0)
