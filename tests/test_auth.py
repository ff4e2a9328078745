from datetime import timedelta

import jwt
import pytest

from lifesync import auth
from lifesync.auth import CurrentUser, create_access_token, decode_access_token, hash_password

from .conftest import USER
from .fakes import FakeFirestore


@pytest.fixture
def firestore_client(monkeypatch) -> FakeFirestore:
    client = FakeFirestore()
    monkeypatch.setattr(auth, "get_firestore_client", lambda: client)
    return client


def test_token_round_trip() -> None:
    user = CurrentUser(user_id="sam@example.com", email="sam@example.com", full_name="Sam", role="admin")

    decoded = decode_access_token(create_access_token(user))

    assert decoded == user
    assert decoded.is_admin is True


def test_expired_token_is_rejected(client) -> None:
    token = create_access_token(USER, expires_delta=timedelta(minutes=-1))

    response = client.post("/api/getDashboardStats", headers={"Authorization": f"Bearer {token}"})

    assert decode_access_token(token) is None
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_token_signed_with_another_secret_is_rejected(client) -> None:
    token = jwt.encode({"sub": USER.user_id}, "a-different-secret-than-the-server-uses", algorithm="HS256")

    response = client.post("/api/getDashboardStats", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_token_without_subject_is_rejected() -> None:
    token = jwt.encode({"email": "x@example.com"}, auth.JWT_SECRET, algorithm=auth.JWT_ALGORITHM)

    assert decode_access_token(token) is None


def test_missing_credentials(client, store) -> None:
    response = client.post("/api/checkBadgeProgress")

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_signup_and_login(client, firestore_client) -> None:
    signup = client.post("/auth/signup", data={
        "email": " Sam@Example.com ",
        "password": "secret123",
        "confirm_password": "secret123",
        "full_name": "Sam Reyes",
    })

    assert signup.status_code == 200
    assert signup.json()["success"] is True
    stored = firestore_client.collections[auth.FIRESTORE_USERS_COLLECTION]["sam@example.com"]
    assert stored["role"] == "user"
    assert stored["hashed_password"] != "secret123"

    login = client.post("/auth/login", data={"email": "sam@example.com", "password": "secret123"})

    assert login.status_code == 200
    user = decode_access_token(login.json()["access_token"])
    assert user.user_id == "sam@example.com"
    assert user.full_name == "Sam Reyes"
    assert user.is_admin is False


def test_signup_rejects_mismatched_passwords(client, firestore_client) -> None:
    response = client.post("/auth/signup", data={
        "email": "sam@example.com", "password": "secret123", "confirm_password": "secret456",
    })

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Passwords do not match."}


def test_signup_rejects_existing_account(client, firestore_client) -> None:
    firestore_client.collections[auth.FIRESTORE_USERS_COLLECTION] = {"sam@example.com": {"email": "sam@example.com"}}

    response = client.post("/auth/signup", data={
        "email": "sam@example.com", "password": "secret123", "confirm_password": "secret123",
    })

    assert response.status_code == 400
    assert response.json()["error"] == "An account with this email already exists."


def test_login_with_wrong_password(client, firestore_client) -> None:
    firestore_client.collections[auth.FIRESTORE_USERS_COLLECTION] = {
        "sam@example.com": {"email": "sam@example.com", "hashed_password": hash_password("secret123")}
    }

    response = client.post("/auth/login", data={"email": "sam@example.com", "password": "wrong-pass"})

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid email or password."}


def test_login_without_database(client, monkeypatch) -> None:
    monkeypatch.setattr(auth, "get_firestore_client", lambda: None)

    response = client.post("/auth/login", data={"email": "sam@example.com", "password": "secret123"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Could not connect to database."}
