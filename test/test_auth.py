import jwt
import pytest

from conftest import api
from eshop_api.config import settings
from eshop_api.exceptions import AuthError
from eshop_api.models import User
from eshop_api.services.auth import check_password, create_client_token, hash_password, validate_token


def test_login_returns_user_and_token(client, db, user):
    body = api(client, "login", mobile="9876543210", password="secret", fcm_id="fcm-1").json()

    assert body["message"] == "Login successful"
    data = body["data"][0]
    assert data["id"] == str(user.id)
    assert data["username"] == "Asha Rao"
    assert float(data["balance"]) == 100
    claims = jwt.decode(data["token"], settings.jwt_secret, algorithms=["HS256"])
    assert claims["id"] == user.id
    db.refresh(user)
    assert user.fcm_id == "fcm-1"
    assert user.last_login is not None


def test_login_failures(client, user):
    assert api(client, "login", mobile="9876543210", password="wrong").json()["message"] == "Invalid login credentials"
    assert api(client, "login", mobile="9000000000", password="secret").json()["message"] == "User does not exist!"
    assert api(client, "login").json()["message"] == "Mobile and password are required"


def test_login_inactive_account(client, db, user):
    user.active = 0
    db.commit()

    body = api(client, "login", mobile="9876543210", password="secret").json()

    assert body["error"] is True
    assert body["message"] == "Account is inactive. Please contact administrator."


def test_register(client, db):
    body = api(client, "register", name="Meera Iyer", email="meera@example.com", mobile="9123456789",
               password="pass1234").json()

    assert body["message"] == "Registration successful"
    data = body["data"][0]
    assert float(data["balance"]) == 0
    assert data["token"]
    user = db.query(User).filter_by(mobile="9123456789").one()
    assert user.referral_code.startswith("MEE")
    assert check_password("pass1234", user.password)


def test_register_rejects_duplicates(client, user):
    body = api(client, "register", name="Asha", email="asha@example.com", mobile="9111111111",
               password="x").json()
    assert body["message"] == "The email is already registered. Please login"

    body = api(client, "register", name="Asha", email="other@example.com", mobile="9876543210",
               password="x").json()
    assert body["message"] == "The mobile number is already registered. Please login"

    body = api(client, "register", name="Asha").json()
    assert body["message"] == "email, mobile, password are required"


def test_check_password_accepts_php_hashes():
    php_hash = "$2y$" + hash_password("secret")[4:]
    assert check_password("secret", php_hash) is True
    assert check_password("anything", php_hash) is False
    assert check_password("plain", "plain") is True
    assert check_password("plain", "") is False


def test_validate_token(db, client_key):
    payload = validate_token(db, f"Bearer {create_client_token(client_key)}")
    assert payload["iss"] == settings.jwt_issuer

    with pytest.raises(AuthError, match="Unauthorized access not allowed"):
        validate_token(db, None)
    with pytest.raises(AuthError, match="Signature verification failed"):
        validate_token(db, f"Bearer {create_client_token('someone-else')}")
    with pytest.raises(AuthError, match="Signature has expired"):
        validate_token(db, f"Bearer {create_client_token(client_key, expires_in=-3600)}")


def test_validate_token_without_clients(db):
    with pytest.raises(AuthError, match="No Client\\(s\\) Data Found!"):
        validate_token(db, "Bearer abc")
