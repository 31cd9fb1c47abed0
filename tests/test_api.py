import time

import pyotp
import pytest

from twostep.backend.app import create_app
from twostep.core.authenticator import Authenticator
from twostep.database.db_manager import SqliteCredentialRepository


@pytest.fixture
def sqlite_repository(tmp_path):
    return SqliteCredentialRepository(str(tmp_path / "api.db"))


@pytest.fixture
def app(sqlite_repository):
    auth = Authenticator(credential_repository=sqlite_repository)
    return create_app(auth, {"TESTING": True})


@pytest.fixture
def client(app):
    return app.test_client()


def _register(client, username="alice"):
    resp = client.post("/api/v2/register", json={"username": username})
    assert resp.status_code == 201
    return resp.get_json()


def test_index_lists_endpoints(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert "POST /api/v2/register" in resp.get_json()["endpoints"]


def test_register(client, sqlite_repository):
    data = _register(client)
    assert data["user"] == "alice"
    assert sqlite_repository.get_secret_key("alice") == data["otp_secret"]
    assert len(data["verification_code"]) == 6
    assert len(data["scratch_codes"]) == 5
    assert data["otp_uri"].startswith("otpauth://totp/MyWebApp:alice?secret=")


def test_register_requires_username(client):
    resp = client.post("/api/v2/register", json={})
    assert resp.status_code == 400
    assert "Username" in resp.get_json()["error"]


def test_register_twice_conflicts(client):
    _register(client)
    resp = client.post("/api/v2/register", json={"username": "alice"})
    assert resp.status_code == 409


def test_totp_endpoint(client):
    data = _register(client)
    resp = client.get("/api/v2/totp/alice")
    assert resp.status_code == 200
    body = resp.get_json()
    assert len(body["code"]) == 6
    assert body["period"] == 30
    assert 0 <= body["remaining"] <= 30
    now = int(time.time())
    totp = pyotp.TOTP(data["otp_secret"])
    assert body["code"] in {totp.at(now - 30), totp.at(now), totp.at(now + 30)}


def test_unknown_user_is_404(client):
    assert client.get("/api/v2/totp/nobody").status_code == 404
    resp = client.post("/api/v2/verify_totp/nobody", json={"code": "123456"})
    assert resp.status_code == 404
    assert "not found" in resp.get_json()["error"]


def test_verify_totp(client):
    data = _register(client)
    code = pyotp.TOTP(data["otp_secret"]).now()
    if int(code) == 0:
        pytest.skip("code 000000 is rejected by design")

    resp = client.post("/api/v2/verify_totp/alice", json={"code": code})
    assert resp.status_code == 200
    assert resp.get_json() == {"valid": True, "scratch": False, "user": "alice"}


def test_verify_code_too_long_for_totp_and_scratch(client):
    _register(client)
    resp = client.post("/api/v2/verify_totp/alice", json={"code": "1234567"})
    assert resp.get_json()["valid"] is False


def test_verify_scratch_code_once(client):
    data = _register(client)
    scratch = data["scratch_codes"][0]

    resp = client.post("/api/v2/verify_totp/alice", json={"code": str(scratch)})
    assert resp.get_json() == {"valid": True, "scratch": True, "user": "alice"}

    if data["scratch_codes"].count(scratch) == 1:
        resp = client.post("/api/v2/verify_totp/alice", json={"code": str(scratch)})
        assert resp.get_json()["valid"] is False


@pytest.mark.parametrize("body", [None, {}, {"code": "12ab56"}, {"code": ""}, {"code": "²"}, {"code": "١٢٣٤٥٦"}])
def test_verify_requires_numeric_code(client, body):
    _register(client)
    resp = client.post("/api/v2/verify_totp/alice", json=body)
    assert resp.status_code == 400


def test_otpauth_uri_endpoint(client):
    data = _register(client)
    resp = client.get("/api/v2/otpauth_uri/alice?issuer=Acme")
    uri = resp.get_json()["totp_uri"]
    totp = pyotp.parse_uri(uri)
    assert totp.issuer == "Acme"
    assert totp.secret == data["otp_secret"]


def test_qr_code_endpoint(client):
    _register(client)
    resp = client.get("/api/v2/qr_code/alice")
    assert resp.status_code == 200
    assert resp.get_json()["qr_code"].startswith("data:image/png;base64,")


@pytest.mark.parametrize("method, path, body", [
    ("post", "/api/v2/register", {"username": "alice"}),
    ("get", "/api/v2/totp/alice", None),
    ("post", "/api/v2/verify_totp/alice", {"code": "123456"}),
    ("get", "/api/v2/otpauth_uri/alice", None),
    ("get", "/api/v2/qr_code/alice", None),
])
def test_without_repository_is_501(method, path, body):
    app = create_app(Authenticator(credential_repository=None), {"TESTING": True})
    resp = getattr(app.test_client(), method)(path, json=body)
    assert resp.status_code == 501
    assert resp.get_json() == {"error": "No credential repository configured"}


def test_register_does_not_replace_existing_user(client, sqlite_repository):
    data = _register(client)
    resp = client.post("/api/v2/register", json={"username": "alice"})
    assert resp.status_code == 409
    assert resp.get_json() == {"error": "User already exists"}
    assert sqlite_repository.get_secret_key("alice") == data["otp_secret"]
    assert sqlite_repository.get_scratch_codes("alice") == data["scratch_codes"]
