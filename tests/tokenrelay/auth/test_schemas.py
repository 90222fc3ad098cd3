"""Tests for identity provider response schemas."""

import pytest
from pydantic import ValidationError

from tokenrelay.auth.schemas import TokenResponse


class TestTokenResponse:
    def test_parses_known_fields(self):
        response = TokenResponse.model_validate(
            {"id_token": "id", "token_type": "Bearer", "expires_in": "3600"}
        )

        assert response.id_token == "id"
        assert response.access_token is None
        assert response.expires_in == 3600

    def test_keeps_unknown_fields(self):
        response = TokenResponse.model_validate({"access_token": "a", "custom": 1})
        assert response.model_extra == {"custom": 1}

    def test_blank_tokens_become_none(self):
        response = TokenResponse.model_validate({"id_token": "", "access_token": " "})
        assert response.id_token is None
        assert response.access_token is None

    def test_token_preference(self):
        response = TokenResponse(id_token="id", access_token="access")

        assert response.token("access_token", "id_token") == "access"
        assert TokenResponse(id_token="id").token("access_token", "id_token") == "id"
        assert TokenResponse().token("access_token", "id_token") is None

    def test_rejects_wrong_types(self):
        with pytest.raises(ValidationError):
            TokenResponse.model_validate({"expires_in": "soon"})
