"""Tests for auth security functions."""

from datetime import timedelta
from uuid import uuid4

import pytest
from fastapi import HTTPException
from jose import JWTError, jwt
from starlette.requests import Request

from src.auth.dependencies import get_current_user, get_token_from_header
from src.auth.permissions import UserRole
from src.auth.security import create_access_token, decode_access_token
from src.config.settings import get_settings


def _claims(**overrides) -> dict:
    data = {
        "sub": str(uuid4()),
        "email": "marie.joseph@lekol.test",
        "name": "Marie Joseph",
        "role": UserRole.STUDENT.value,
    }
    data.update(overrides)
    return data


def _request(authorization: str | None) -> Request:
    headers = [(b"authorization", authorization.encode())] if authorization else []
    return Request({"type": "http", "headers": headers})


class TestAccessToken:
    """Tests for access token creation and decoding."""

    def test_decode_access_token(self) -> None:
        """Should decode token and return payload."""
        data = _claims()
        token = create_access_token(data)
        payload = decode_access_token(token)

        assert payload["sub"] == data["sub"]
        assert payload["email"] == data["email"]
        assert payload["role"] == "student"
        assert payload["type"] == "access"
        assert "exp" in payload
        assert "iat" in payload

    def test_decode_access_token_expired(self) -> None:
        """Should raise JWTError for expired token."""
        token = create_access_token(_claims(), expires_delta=timedelta(seconds=-1))

        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_decode_access_token_invalid(self) -> None:
        with pytest.raises(JWTError):
            decode_access_token("invalid.token.here")

    def test_decode_access_token_wrong_type(self) -> None:
        """Should raise JWTError if token type is not 'access'."""
        settings = get_settings()
        token = jwt.encode(
            {**_claims(), "type": "refresh"},
            settings.auth_secret_key,
            algorithm=settings.auth_algorithm,
        )

        with pytest.raises(JWTError, match="expected 'access'"):
            decode_access_token(token)

    def test_decode_access_token_wrong_signature(self) -> None:
        settings = get_settings()
        token = jwt.encode(
            {**_claims(), "type": "access"},
            "not-the-secret",
            algorithm=settings.auth_algorithm,
        )

        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_decode_access_token_missing_role(self) -> None:
        data = _claims()
        del data["role"]
        token = create_access_token(data)

        with pytest.raises(JWTError, match="role"):
            decode_access_token(token)


class TestTokenFromHeader:
    """Tests for bearer token extraction."""

    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Bearer abc.def", "abc.def"),
            ("bearer abc.def", "abc.def"),
            ("Basic abc", None),
            ("Bearer", None),
            ("Bearer a b", None),
            (None, None),
        ],
    )
    def test_extraction(self, header, expected) -> None:
        assert get_token_from_header(_request(header)) == expected


class TestGetCurrentUser:
    """Tests for the current user dependency."""

    @pytest.mark.asyncio
    async def test_valid_token(self) -> None:
        data = _claims(role=UserRole.INSTRUCTOR.value)

        user = await get_current_user(create_access_token(data))

        assert str(user.id) == data["sub"]
        assert user.name == "Marie Joseph"
        assert user.role == UserRole.INSTRUCTOR

    @pytest.mark.asyncio
    async def test_missing_token(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(None)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "claims",
        [
            _claims(sub="not-a-uuid"),
            _claims(role="superuser"),
        ],
    )
    async def test_malformed_identity(self, claims) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(create_access_token(claims))

        assert exc_info.value.status_code == 401
