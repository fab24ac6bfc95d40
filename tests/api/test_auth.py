"""Bearer token verification on protected routes."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi.testclient import TestClient

from academy.services import token_service
from tests.conftest import auth, mint_token


def _claims(**overrides) -> dict:
    now = datetime.now(UTC)
    claims = {
        "sub": "student-sam",
        "iss": token_service.ISSUER,
        "aud": token_service.AUDIENCE,
        "iat": now,
        "exp": now + timedelta(minutes=5),
        "roles": ["student"],
    }
    claims.update(overrides)
    return claims


def _sign(claims: dict) -> str:
    return jwt.encode(claims, token_service._private_key, algorithm=token_service.ALGORITHM)


def test_missing_token_is_401(client: TestClient) -> None:
    resp = client.get("/v1/enrollments")
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"


def test_garbage_token_is_401(client: TestClient) -> None:
    resp = client.get("/v1/enrollments", headers=auth("total-garbage"))
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token"


def test_valid_token_is_accepted(client: TestClient) -> None:
    resp = client.get("/v1/enrollments", headers=auth(mint_token()))
    assert resp.status_code == 200


def test_expired_token_is_401(client: TestClient) -> None:
    past = datetime.now(UTC) - timedelta(minutes=10)
    token = _sign(_claims(iat=past, exp=past + timedelta(minutes=1)))

    resp = client.get("/v1/enrollments", headers=auth(token))
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expired"


@pytest.mark.parametrize(
    "overrides",
    [{"iss": "someone-else"}, {"aud": "another-service"}],
    ids=["wrong-issuer", "wrong-audience"],
)
def test_foreign_token_is_401(client: TestClient, overrides: dict) -> None:
    resp = client.get("/v1/enrollments", headers=auth(_sign(_claims(**overrides))))
    assert resp.status_code == 401


def test_token_signed_by_other_key_is_401(client: TestClient) -> None:
    stranger = ec.generate_private_key(ec.SECP256R1())
    token = jwt.encode(_claims(), stranger, algorithm="ES256")

    resp = client.get("/v1/enrollments", headers=auth(token))
    assert resp.status_code == 401


def test_unsigned_token_is_401(client: TestClient) -> None:
    token = jwt.encode(_claims(), key=None, algorithm="none")
    resp = client.get("/v1/enrollments", headers=auth(token))
    assert resp.status_code == 401


def test_decode_round_trip() -> None:
    claims = token_service.decode_access_token(mint_token("instructor-ada", ["instructor"]))
    assert claims["sub"] == "instructor-ada"
    assert claims["roles"] == ["instructor"]
