from datetime import timedelta

import pytest
from jose import jwt

from quirii import auth
from quirii.errors import ConflictError, Unauthorized, ValidationError


def test_password_hash_roundtrip():
    hashed = auth.get_password_hash("s3cret-pass")
    assert hashed != "s3cret-pass"
    assert auth.verify_password("s3cret-pass", hashed)
    assert not auth.verify_password("wrong", hashed)


def test_decode_rejects_expired_and_tampered_tokens():
    token = auth.create_access_token("abc", role="student")
    assert auth.decode_access_token(token).sub == "abc"

    expired = auth.create_access_token("abc", expires_delta=timedelta(seconds=-5))
    with pytest.raises(Unauthorized):
        auth.decode_access_token(expired)
    with pytest.raises(Unauthorized):
        auth.decode_access_token(token + "x")


@pytest.mark.asyncio
async def test_register_derives_hostel(session):
    profile = await auth.register_profile(
        session, name=" Asha ", registration_number=" 23bce8594", email="Asha@Campus.edu", password="hunter22"
    )
    assert profile.name == "Asha"
    assert profile.registration_number == "23BCE8594"
    assert profile.email == "asha@campus.edu"
    assert profile.hostel == "LH1"
    assert profile.role == "student"


@pytest.mark.asyncio
async def test_register_validation(session):
    with pytest.raises(ValidationError):
        await auth.register_profile(session, name="", registration_number="1", email="a@b.c", password="longenough")
    with pytest.raises(ValidationError):
        await auth.register_profile(session, name="A", registration_number="", email="a@b.c", password="longenough")
    with pytest.raises(ValidationError):
        await auth.register_profile(session, name="A", registration_number="1", email="a@campus.edu", password="123")


@pytest.mark.asyncio
async def test_register_auto_admin_email(session):
    profile = await auth.register_profile(
        session, name="Dean", registration_number="STAFF0042", email="dean@campus.edu", password="deanpass"
    )
    assert profile.role == "admin"
    assert profile.hostel is None


@pytest.mark.asyncio
async def test_register_and_login_flow(client):
    r = await client.post(
        "/auth/register",
        json={
            "name": "Ravi",
            "registration_number": "23BCE7808",
            "email": "ravi@campus.edu",
            "password": "ravipass",
        },
    )
    assert r.status_code == 201, r.text
    assert r.json()["hostel"] == "MH2"

    # Same registration number, different email.
    r = await client.post(
        "/auth/register",
        json={
            "name": "Imposter",
            "registration_number": "23bce7808",
            "email": "other@campus.edu",
            "password": "otherpass",
        },
    )
    assert r.status_code == 409

    r = await client.post("/auth/login", data={"username": "ravi@campus.edu", "password": "wrong"})
    assert r.status_code == 401

    r = await client.post("/auth/login", data={"username": "RAVI@campus.edu", "password": "ravipass"})
    assert r.status_code == 200
    token = r.json()["access_token"]

    r = await client.get("/api/v1/profile/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    me = r.json()
    assert me["hostel"] == "MH2"
    assert me["is_admin"] is False
    assert "MH2" in me["accessible_categories"]
    assert "LH1" not in me["accessible_categories"]


@pytest.mark.asyncio
async def test_login_json(client, make_profile):
    await make_profile("23BCE8588", email="priya@campus.edu", password="priyapass")

    r = await client.post("/auth/login-json", json={"username": "priya@campus.edu", "password": "priyapass"})
    assert r.status_code == 200
    assert r.json()["role"] == "student"


@pytest.mark.asyncio
async def test_duplicate_email_conflicts(session, make_profile):
    await make_profile("23BCE8588", email="priya@campus.edu")
    with pytest.raises(ConflictError):
        await auth.register_profile(
            session, name="Priya", registration_number="24NEW0001", email="priya@campus.edu", password="secret1"
        )


@pytest.mark.asyncio
async def test_profile_requires_valid_token(client):
    r = await client.get("/api/v1/profile/me")
    assert r.status_code == 401

    r = await client.get("/api/v1/profile/me", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401

    orphan = auth.create_access_token("no-such-profile")
    r = await client.get("/api/v1/profile/me", headers={"Authorization": f"Bearer {orphan}"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_register_rejects_malformed_email(client, session):
    with pytest.raises(ValidationError, match="Invalid email address"):
        await auth.register_profile(
            session, name="Meera", registration_number="23BCE8588", email="meera.campus.edu", password="meerapass"
        )

    r = await client.post(
        "/auth/register",
        json={
            "name": "Meera",
            "registration_number": "23BCE8588",
            "email": "not an email",
            "password": "meerapass",
        },
    )
    assert r.status_code == 400
    assert r.json()["detail"].startswith("Invalid email address")


@pytest.mark.asyncio
async def test_token_responses_share_one_shape(client):
    r = await client.post(
        "/auth/register",
        json={
            "name": "Kiran",
            "registration_number": "23BCE8612",
            "email": "kiran@campus.edu",
            "password": "kiranpass",
        },
    )
    registered = r.json()
    assert registered["token_type"] == "bearer"
    assert registered["role"] == "student"
    assert registered["hostel"] == "MH3"

    r = await client.post("/auth/login-json", json={"username": "kiran@campus.edu", "password": "kiranpass"})
    body = r.json()
    assert set(body) == {"access_token", "token_type", "id", "role"}
    assert body["id"] == registered["id"]
    assert auth.decode_access_token(body["access_token"]).sub == registered["id"]


@pytest.mark.asyncio
async def test_signed_token_without_subject_is_unauthorized(client):
    token = jwt.encode({"role": "admin"}, auth.SECRET_KEY, algorithm=auth.ALGORITHM)

    with pytest.raises(Unauthorized):
        auth.decode_access_token(token)

    r = await client.get("/api/v1/profile/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
