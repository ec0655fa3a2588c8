"""Login and identity over GraphQL.

Learn: Tests cover:
1. login → token that the token service accepts, with the right sub/role
2. login failures come back in the payload, not as GraphQL errors
3. me — needs a valid token; bad tokens are simply anonymous
4. skip-validation mode (trusting an upstream gateway)
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from orderhub.db.seed import ADMIN_ID, USER_ID

LOGIN = """
mutation($username: String!, $password: String!) {
  login(username: $username, password: $password) {
    token
    user { id username email role }
    errorMessage
    errorCode
  }
}
"""

ME = "{ me { id username email role } }"


# ═══════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "username,password,user_id,role",
    [
        ("admin", "admin123", ADMIN_ID, "Admin"),
        ("user", "user123", USER_ID, "User"),
    ],
)
async def test_login_returns_valid_token(gql, tokens, username, password, user_id, role):
    body = await gql(LOGIN, {"username": username, "password": password})
    payload = body["data"]["login"]
    assert payload["errorMessage"] is None
    assert payload["user"]["id"] == user_id
    assert payload["user"]["role"] == role.upper()

    claims = tokens.validate_token(payload["token"])
    assert claims is not None
    assert claims.subject == user_id
    assert claims.role.value == role


@pytest.mark.asyncio
async def test_login_wrong_password(gql):
    body = await gql(LOGIN, {"username": "admin", "password": "nope"})
    payload = body["data"]["login"]
    assert payload["token"] is None
    assert payload["user"] is None
    assert payload["errorMessage"] == "Invalid username or password"
    assert payload["errorCode"] == "AUTHENTICATION_REQUIRED"
    assert "errors" not in body


@pytest.mark.asyncio
async def test_login_unknown_user_same_message(gql):
    body = await gql(LOGIN, {"username": "ghost", "password": "admin123"})
    assert body["data"]["login"]["errorMessage"] == "Invalid username or password"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "username,password,message",
    [
        ("", "admin123", "Username is required"),
        ("   ", "admin123", "Username is required"),
        ("admin", "", "Password is required"),
    ],
)
async def test_login_validation(gql, username, password, message):
    body = await gql(LOGIN, {"username": username, "password": password})
    payload = body["data"]["login"]
    assert payload["errorMessage"] == message
    assert payload["errorCode"] == "VALIDATION_ERROR"


# ═══════════════════════════════════════════════════════════
# me
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_me_with_token(gql, user_token):
    body = await gql(ME, token=user_token)
    assert body["data"]["me"] == {
        "id": USER_ID,
        "username": "user",
        "email": "user@orderhub.dev",
        "role": "USER",
    }


@pytest.mark.asyncio
async def test_me_anonymous_signals_authentication_required(gql):
    body = await gql(ME)
    assert body["data"] is None
    assert body["errors"][0]["extensions"]["code"] == "AUTHENTICATION_REQUIRED"


@pytest.mark.asyncio
async def test_bad_token_is_anonymous(gql, user_token):
    tampered = user_token[:-2] + ("AA" if not user_token.endswith("AA") else "BB")
    body = await gql(ME, token=tampered)
    assert body["errors"][0]["extensions"]["code"] == "AUTHENTICATION_REQUIRED"


@pytest.mark.asyncio
async def test_expired_token_is_anonymous(gql, tokens, seeded_users):
    stale = tokens.issue_token(
        seeded_users["admin"], now=datetime.now(timezone.utc) - timedelta(hours=2)
    )
    body = await gql(ME, token=stale)
    assert body["errors"][0]["extensions"]["code"] == "AUTHENTICATION_REQUIRED"


@pytest.mark.asyncio
async def test_non_bearer_scheme_is_anonymous(client, user_token):
    r = await client.post(
        "/graphql",
        json={"query": ME},
        headers={"Authorization": f"Token {user_token}"},
    )
    assert r.json()["errors"][0]["extensions"]["code"] == "AUTHENTICATION_REQUIRED"


# ═══════════════════════════════════════════════════════════
# Skip-validation mode
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_skip_validation_accepts_upstream_token(app, tokens, seeded_users):
    """With skip_jwt_validation the API reads claims without verifying them."""
    stale = tokens.issue_token(
        seeded_users["user"], now=datetime.now(timezone.utc) - timedelta(hours=2)
    )
    app.state.settings = app.state.settings.model_copy(update={"skip_jwt_validation": True})

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.post(
            "/graphql",
            json={"query": ME},
            headers={"Authorization": f"Bearer {stale}"},
        )
        garbage = await ac.post(
            "/graphql",
            json={"query": ME},
            headers={"Authorization": "Bearer garbage"},
        )

    assert r.json()["data"]["me"]["id"] == USER_ID
    assert garbage.json()["errors"][0]["extensions"]["code"] == "AUTHENTICATION_REQUIRED"


@pytest.mark.asyncio
async def test_skip_validation_with_malformed_claims_is_anonymous(app, settings):
    """A token whose iat is not a number is unusable, not a server error."""
    bad_iat = jwt.encode(
        {"sub": USER_ID, "role": "User", "iat": "abc"},
        settings.jwt_signing_key,
        algorithm="HS256",
    )
    app.state.settings = app.state.settings.model_copy(update={"skip_jwt_validation": True})

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.post(
            "/graphql",
            json={"query": "{ orders { id } }"},
            headers={"Authorization": f"Bearer {bad_iat}"},
        )

    assert r.status_code == 200
    assert r.json()["errors"][0]["extensions"]["code"] == "AUTHENTICATION_REQUIRED"
