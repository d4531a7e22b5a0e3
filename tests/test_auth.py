"""Tests for the /api/auth routes: codes, registration, login, reset."""

from datetime import timedelta

from passlib.hash import bcrypt
from sqlalchemy import select, func

from app import email_service
from app.models.user_model import User
from app.models.verification_code import VerificationCode
from conftest import TEST_PASSWORD, auth_headers, make_code, make_user


# ------------------------------
# send-verification
# ------------------------------
async def test_send_register_code_stores_and_emails(client, db_session, sent_codes):
    res = await client.post(
        "/api/auth/send-verification",
        json={"email": "carol@illinois.edu", "type": "register"},
    )
    assert res.status_code == 200
    assert res.json() == {"message": "Verification code sent"}

    assert len(sent_codes) == 1
    to_email, code = sent_codes[0]
    assert to_email == "carol@illinois.edu"
    assert len(code) == 6 and code.isdigit()

    row = (
        await db_session.execute(select(VerificationCode).where(VerificationCode.email == "carol@illinois.edu"))
    ).scalars().one()
    assert row.code == code
    assert row.type == "register"


async def test_send_code_requires_email_and_type(client, sent_codes):
    res = await client.post("/api/auth/send-verification", json={"email": "carol@illinois.edu"})
    assert res.status_code == 400
    assert res.json()["message"] == "Email and type are required"
    assert sent_codes == []


async def test_send_register_code_rejects_other_domains(client, sent_codes):
    res = await client.post(
        "/api/auth/send-verification",
        json={"email": "carol@gmail.com", "type": "register"},
    )
    assert res.status_code == 400
    assert "@illinois.edu" in res.json()["message"]
    assert sent_codes == []


async def test_send_register_code_rejects_existing_email(client, alice, sent_codes):
    res = await client.post(
        "/api/auth/send-verification",
        json={"email": alice.email, "type": "register"},
    )
    assert res.status_code == 400
    assert res.json()["message"] == "Email already registered"


async def test_send_reset_code_requires_existing_user(client, sent_codes):
    res = await client.post(
        "/api/auth/send-verification",
        json={"email": "ghost@illinois.edu", "type": "reset"},
    )
    assert res.status_code == 400
    assert res.json()["message"] == "Email not found"


async def test_send_code_rejects_unknown_type(client, sent_codes):
    res = await client.post(
        "/api/auth/send-verification",
        json={"email": "carol@illinois.edu", "type": "invite"},
    )
    assert res.status_code == 400


async def test_send_code_delivery_failure_is_500_and_drops_code(client, db_session, monkeypatch):
    def broken_send(to_email, code):
        raise OSError("smtp down")

    monkeypatch.setattr(email_service, "send_verification_code", broken_send)

    res = await client.post(
        "/api/auth/send-verification",
        json={"email": "carol@illinois.edu", "type": "register"},
    )
    assert res.status_code == 500
    assert res.json() == {"message": "Failed to send verification email"}

    count = (await db_session.execute(select(func.count(VerificationCode.id)))).scalar_one()
    assert count == 0


# ------------------------------
# verify-code
# ------------------------------
async def test_verify_code_accepts_any_purpose_without_consuming(client, db_session, alice):
    await make_code(db_session, alice.email, "654321", "reset")

    res = await client.post("/api/auth/verify-code", json={"email": alice.email, "code": "654321"})
    assert res.status_code == 200
    assert res.json()["message"] == "Code verified"

    # still there for the actual reset
    res = await client.post("/api/auth/verify-code", json={"email": alice.email, "code": "654321"})
    assert res.status_code == 200


async def test_verify_code_rejects_expired(client, db_session):
    await make_code(db_session, "carol@illinois.edu", "111111", expires_in=timedelta(minutes=-1))

    res = await client.post("/api/auth/verify-code", json={"email": "carol@illinois.edu", "code": "111111"})
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid or expired code"


# ------------------------------
# register
# ------------------------------
async def test_register_then_login(client, db_session):
    await make_code(db_session, "alice@illinois.edu", "123456")

    res = await client.post(
        "/api/auth/register",
        json={
            "username": "alice",
            "email": "alice@illinois.edu",
            "password": "alicepw",
            "verificationCode": "123456",
        },
    )
    assert res.status_code == 201
    assert res.json() == {"message": "Registration successful"}

    user = (await db_session.execute(select(User).where(User.email == "alice@illinois.edu"))).scalars().one()
    assert user.verified is True
    assert user.password != "alicepw"
    assert bcrypt.verify("alicepw", user.password)

    # code consumed
    left = (await db_session.execute(select(func.count(VerificationCode.id)))).scalar_one()
    assert left == 0

    res = await client.post("/api/auth/login", json={"email": "alice@illinois.edu", "password": "alicepw"})
    assert res.status_code == 200
    body = res.json()
    assert body["token"]
    assert body["user"]["username"] == "alice"
    assert body["isManager"] is False


async def test_register_code_cannot_be_reused(client, db_session):
    await make_code(db_session, "alice@illinois.edu", "123456")
    payload = {
        "username": "alice",
        "email": "alice@illinois.edu",
        "password": "alicepw",
        "verificationCode": "123456",
    }
    assert (await client.post("/api/auth/register", json=payload)).status_code == 201

    payload["username"] = "alice2"
    res = await client.post("/api/auth/register", json=payload)
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid or expired verification code"


async def test_register_requires_all_fields(client):
    res = await client.post("/api/auth/register", json={"username": "alice", "email": "alice@illinois.edu"})
    assert res.status_code == 400
    assert res.json()["message"] == "All fields are required"


async def test_register_rejects_short_password(client, db_session):
    await make_code(db_session, "alice@illinois.edu", "123456")
    res = await client.post(
        "/api/auth/register",
        json={"username": "alice", "email": "alice@illinois.edu", "password": "abc", "verificationCode": "123456"},
    )
    assert res.status_code == 400
    assert "at least 6" in res.json()["message"]


async def test_register_rejects_reset_code(client, db_session):
    await make_code(db_session, "alice@illinois.edu", "123456", "reset")
    res = await client.post(
        "/api/auth/register",
        json={"username": "alice", "email": "alice@illinois.edu", "password": "alicepw", "verificationCode": "123456"},
    )
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid or expired verification code"


async def test_register_rejects_taken_username(client, db_session, bob):
    await make_code(db_session, "carol@illinois.edu", "123456")
    res = await client.post(
        "/api/auth/register",
        json={"username": "bob", "email": "carol@illinois.edu", "password": "carolpw", "verificationCode": "123456"},
    )
    assert res.status_code == 400
    assert res.json()["message"] == "Username already taken"


# ------------------------------
# login
# ------------------------------
async def test_login_failures_do_not_reveal_which_part_was_wrong(client, alice):
    wrong_pw = await client.post("/api/auth/login", json={"email": alice.email, "password": "nope-nope"})
    unknown = await client.post("/api/auth/login", json={"email": "ghost@illinois.edu", "password": TEST_PASSWORD})

    assert wrong_pw.status_code == unknown.status_code == 400
    assert wrong_pw.json() == unknown.json() == {"message": "Invalid email or password"}


async def test_login_reports_manager_flag(client, manager):
    res = await client.post("/api/auth/login", json={"email": manager.email, "password": TEST_PASSWORD})
    assert res.status_code == 200
    assert res.json()["isManager"] is True


# ------------------------------
# reset-password
# ------------------------------
async def test_reset_password_replaces_hash(client, db_session, alice):
    await make_code(db_session, alice.email, "222222", "reset")

    res = await client.post(
        "/api/auth/reset-password",
        json={"email": alice.email, "verificationCode": "222222", "newPassword": "brandnew"},
    )
    assert res.status_code == 200

    old = await client.post("/api/auth/login", json={"email": alice.email, "password": TEST_PASSWORD})
    new = await client.post("/api/auth/login", json={"email": alice.email, "password": "brandnew"})
    assert old.status_code == 400
    assert new.status_code == 200

    # consumed
    again = await client.post(
        "/api/auth/reset-password",
        json={"email": alice.email, "verificationCode": "222222", "newPassword": "another1"},
    )
    assert again.status_code == 400


async def test_reset_password_rejects_register_code(client, db_session, alice):
    await make_code(db_session, alice.email, "222222", "register")
    res = await client.post(
        "/api/auth/reset-password",
        json={"email": alice.email, "verificationCode": "222222", "newPassword": "brandnew"},
    )
    assert res.status_code == 400


# ------------------------------
# check-manager
# ------------------------------
async def test_check_manager(client, alice, manager):
    res = await client.get("/api/auth/check-manager", headers=auth_headers(alice))
    assert res.status_code == 200
    assert res.json() == {"isManager": False}

    res = await client.get("/api/auth/check-manager", headers=auth_headers(manager))
    assert res.json() == {"isManager": True}


async def test_missing_token_is_401_and_bad_token_is_403(client):
    missing = await client.get("/api/auth/check-manager")
    bad = await client.get("/api/auth/check-manager", headers={"Authorization": "Bearer not-a-jwt"})

    assert missing.status_code == 401
    assert missing.json() == {"message": "Access token required"}
    assert bad.status_code == 403
    assert bad.json() == {"message": "Invalid or expired token"}


async def test_health(client):
    res = await client.get("/api/health")
    assert res.status_code == 200
