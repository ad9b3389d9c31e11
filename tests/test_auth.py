import pytest

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD
from utils.errors import AuthError, ValidationError
from utils.security import CredentialVerifier, Identity, hash_password


def _verifier(password=ADMIN_PASSWORD, secret="test-secret", ttl_hours=24):
    return CredentialVerifier(Identity(ADMIN_EMAIL, password, "Test Admin", "admin"), secret, ttl_hours)


def test_login_returns_token_for_configured_identity(client):
    r = client.post('/api/auth/login', json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert r.status_code == 200
    body = r.get_json()
    assert body["success"] is True
    assert body["token"]
    assert body["user"] == {"email": ADMIN_EMAIL, "name": "Test Admin", "role": "admin"}
    assert "expiresAt" in body


def test_login_wrong_password_is_rejected(client):
    r = client.post('/api/auth/login', json={"email": ADMIN_EMAIL, "password": "nope"})
    assert r.status_code == 401
    body = r.get_json()
    assert body["success"] is False
    assert body["code"] == "InvalidCredentials"


def test_login_email_is_case_sensitive(client):
    r = client.post('/api/auth/login', json={"email": ADMIN_EMAIL.upper(), "password": ADMIN_PASSWORD})
    assert r.status_code == 401


def test_login_missing_fields(client):
    r = client.post('/api/auth/login', json={"email": ADMIN_EMAIL})
    assert r.status_code == 400
    assert r.get_json()["code"] == "MissingFields"


def test_login_accepts_form_posts(client):
    r = client.post('/api/auth/login', data={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert r.status_code == 200


def test_verify_endpoint_echoes_identity(client, auth_headers):
    r = client.post('/api/auth/verify', headers=auth_headers)
    assert r.status_code == 200
    assert r.get_json()["user"]["email"] == ADMIN_EMAIL


@pytest.mark.parametrize("header", [None, "", "Token abc", "Bearer", "Bearer   "])
def test_guard_rejects_missing_or_malformed_header(client, header):
    headers = {"Authorization": header} if header is not None else {}
    r = client.get('/api/students', headers=headers)
    assert r.status_code == 401
    assert r.get_json()["code"] == "MissingToken"


def test_guard_rejects_forged_token(client):
    forged = _verifier(secret="someone-else").issue_token()
    r = client.get('/api/students', headers={"Authorization": f"Bearer {forged}"})
    assert r.status_code == 401
    assert r.get_json()["code"] == "InvalidToken"


def test_token_expires_after_ttl():
    verifier = _verifier(ttl_hours=24)
    token = verifier.issue_token(now=1_000)
    claims = verifier.verify(token, now=1_000)
    assert claims["email"] == ADMIN_EMAIL
    assert claims["exp"] - claims["iat"] == 24 * 3600
    verifier.verify(token, now=1_000 + 24 * 3600 - 1)
    with pytest.raises(AuthError) as exc:
        verifier.verify(token, now=1_000 + 24 * 3600)
    assert exc.value.code == "InvalidOrExpiredToken"


def test_tampered_token_is_rejected():
    verifier = _verifier()
    token = verifier.issue_token()
    with pytest.raises(AuthError):
        verifier.verify("x" + token)


def test_hashed_admin_password_is_supported():
    verifier = _verifier(password=hash_password("s3cret"))
    token, user = verifier.login(ADMIN_EMAIL, "s3cret")
    assert verifier.verify(token)["role"] == "admin"
    with pytest.raises(AuthError):
        verifier.login(ADMIN_EMAIL, "wrong")


def test_unconfigured_identity_rejects_everything():
    verifier = CredentialVerifier(Identity("", ""), "secret")
    with pytest.raises(AuthError):
        verifier.login("admin@x.com", "x")
    with pytest.raises(ValidationError):
        verifier.login("", "")


def test_signing_requires_a_secret():
    with pytest.raises(ValueError):
        CredentialVerifier(Identity(ADMIN_EMAIL, ADMIN_PASSWORD), "")


def test_health_is_open_and_tagged(client):
    r = client.get('/health')
    assert r.status_code == 200
    assert r.get_json() == {"success": True, "status": "ok"}
    assert len(r.headers["X-Request-ID"]) == 16
    assert r.headers["X-Content-Type-Options"] == "nosniff"


def test_unknown_route_is_json(client):
    r = client.get('/api/nope')
    assert r.status_code == 404
    assert r.get_json()["success"] is False
