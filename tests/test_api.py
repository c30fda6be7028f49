from sqlalchemy import select

from campus_assistant.db.models import ClientUser
from tests.conftest import mk_user


async def _register(client, email="student@pce.edu", mobile="9000000001", user_type="student"):
    return await client.post(
        "/api/client/register",
        json={"name": " Asha ", "mobile": mobile, "email": email, "userType": user_type},
    )


# ---------- registration ----------
async def test_register_creates_unverified_user(client):
    response = await _register(client, email="Student@PCE.edu")

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["user"]["email"] == "student@pce.edu"
    assert body["user"]["emailVerified"] is False


async def test_register_is_idempotent_per_email(client):
    first = await _register(client)
    second = await _register(client)

    assert second.status_code == 200
    assert second.json()["message"] == "User already registered"
    assert second.json()["user"]["id"] == first.json()["user"]["id"]


async def test_register_validates_fields(client):
    missing = await client.post("/api/client/register", json={"email": "a@pce.edu"})
    bad_email = await _register(client, email="nope")
    bad_type = await _register(client, user_type="teacher")

    assert missing.status_code == 400
    assert bad_email.status_code == 400
    assert bad_type.status_code == 400
    assert "userType" in bad_type.json()["detail"]


async def test_register_rejects_duplicate_mobile(client):
    await _register(client, email="a@pce.edu", mobile="9000000001")

    response = await _register(client, email="b@pce.edu", mobile="9000000001")

    assert response.status_code == 400
    assert "mobile number" in response.json()["detail"]


# ---------- OTP ----------
async def test_send_otp_never_returns_code(client, email_sender):
    response = await client.post("/api/auth/send-otp", json={"email": "student@pce.edu"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "OTP sent successfully to your email"}
    assert email_sender.last_code not in response.text


async def test_send_otp_twice_is_throttled(client):
    await client.post("/api/auth/send-otp", json={"email": "student@pce.edu"})

    response = await client.post("/api/auth/send-otp", json={"email": "student@pce.edu"})

    assert response.status_code == 429
    detail = response.json()["detail"]
    assert detail["code"] == "rate_limited"
    assert 0 < detail["cooldownSeconds"] <= 60


async def test_send_otp_invalid_email_is_400(client):
    response = await client.post("/api/auth/send-otp", json={"email": "bad"})

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "invalid_input"


async def test_non_string_fields_are_400_not_422(client):
    send = await client.post("/api/auth/send-otp", json={"email": 5})
    verify = await client.post("/api/auth/verify-otp", json={"email": "student@pce.edu", "otp": 123456})

    assert send.status_code == 400
    assert send.json()["detail"]["code"] == "invalid_input"
    assert verify.status_code == 400
    assert verify.json()["detail"] == {"error": "OTP is required", "code": "invalid_input"}


async def test_send_otp_delivery_failure_is_500(client, email_sender):
    email_sender.error = RuntimeError("relay down")

    response = await client.post("/api/auth/send-otp", json={"email": "student@pce.edu"})

    assert response.status_code == 500
    assert "relay down" in response.json()["detail"]["error"]


async def test_full_registration_and_verification_flow(client, email_sender, session):
    await _register(client)
    await client.post("/api/auth/send-otp", json={"email": "student@pce.edu"})

    response = await client.post(
        "/api/auth/verify-otp", json={"email": "student@pce.edu", "otp": email_sender.last_code}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Email verified successfully"
    assert body["user"]["emailVerified"] is True
    user = await session.scalar(select(ClientUser).where(ClientUser.email == "student@pce.edu"))
    assert user.email_verified is True


async def test_verify_wrong_code_reports_remaining_attempts(client, session):
    await mk_user(session, "student@pce.edu")
    await client.post("/api/auth/send-otp", json={"email": "student@pce.edu"})

    response = await client.post("/api/auth/verify-otp", json={"email": "student@pce.edu", "otp": "000000"})

    assert response.status_code == 400
    assert response.json()["detail"]["remainingAttempts"] == 2


async def test_verify_status_codes(client, email_sender):
    malformed = await client.post("/api/auth/verify-otp", json={"email": "a@b.com", "otp": "12a456"})
    missing = await client.post("/api/auth/verify-otp", json={"email": "a@b.com", "otp": "123456"})

    await client.post("/api/auth/send-otp", json={"email": "ghost@pce.edu"})
    no_user = await client.post(
        "/api/auth/verify-otp", json={"email": "ghost@pce.edu", "otp": email_sender.last_code}
    )

    assert malformed.status_code == 400
    assert missing.status_code == 404
    assert no_user.status_code == 404
    assert no_user.json()["detail"]["code"] == "user_not_found"


# ---------- health ----------
async def test_health_reports_database_and_table(client):
    response = await client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["tables"]["client_users"] == "exists"


async def test_root(client):
    response = await client.get("/")

    assert response.status_code == 200
