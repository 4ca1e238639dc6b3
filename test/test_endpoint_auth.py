import pytest
from httpx import AsyncClient, ASGITransport

from conftest import TEST_SECRET, apply_overrides, create_user, make_settings, past_clock
from main import create_app
from models.models import User, UserType
from utils.security import verify_password
from utils.tokens import RESET_TTL, VERIFICATION_TTL, TokenCodec, TokenPurpose


def client_for(app):
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def find_user(session, email):
    session.expire_all()
    return session.query(User).filter(User.email == email).first()


@pytest.mark.asyncio
async def test_register_creates_unverified_user(app_with_overrides, session_for_tests, email_sender):
    async with client_for(app_with_overrides) as client:
        response = await client.post("/auth/register", json={
            "email": "alice@example.com",
            "password": "pw123456",
            "type": "buyer",
            "firstName": "Alice",
        })

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert "check your email" in body["message"]

    user = find_user(session_for_tests, "alice@example.com")
    assert user is not None
    assert user.email_verified is False
    assert user.user_type == UserType.BUYER
    assert user.first_name == "Alice"
    assert user.password_hash != "pw123456"

    sent = email_sender.last("verification")
    assert sent["email"] == "alice@example.com"
    assert sent["token"] == user.verification_token


@pytest.mark.asyncio
async def test_register_duplicate_email(app_with_overrides, session_for_tests):
    payload = {"email": "alice@example.com", "password": "pw123456", "type": "BUYER"}

    async with client_for(app_with_overrides) as client:
        first = await client.post("/auth/register", json=payload)
        second = await client.post("/auth/register", json=payload)
        third = await client.post("/auth/register", json={**payload, "email": "ALICE@example.com"})

    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json()["error"] == "Email already registered"
    assert third.status_code == 400
    assert third.json()["error"] == "Email already registered"
    assert session_for_tests.query(User).count() == 1


@pytest.mark.asyncio
async def test_register_rejects_invalid_input(app_with_overrides, session_for_tests):
    async with client_for(app_with_overrides) as client:
        short_password = await client.post("/auth/register", json={
            "email": "bob@example.com", "password": "short", "type": "BUYER",
        })
        bad_email = await client.post("/auth/register", json={
            "email": "not-an-email", "password": "pw123456", "type": "BUYER",
        })
        admin = await client.post("/auth/register", json={
            "email": "root@example.com", "password": "pw123456", "type": "ADMIN",
        })
        missing = await client.post("/auth/register", json={"email": "bob@example.com"})

    assert short_password.status_code == 400
    assert bad_email.status_code == 400
    assert admin.status_code == 400
    assert missing.status_code == 400
    assert "password" in missing.json()["data"]["fields"]
    assert session_for_tests.query(User).count() == 0


@pytest.mark.asyncio
async def test_register_succeeds_when_email_delivery_fails(app_with_overrides, session_for_tests, email_sender):
    email_sender.fail = True

    async with client_for(app_with_overrides) as client:
        response = await client.post("/auth/register", json={
            "email": "carol@example.com", "password": "pw123456", "type": "SUPPLIER",
        })

    assert response.status_code == 200
    user = find_user(session_for_tests, "carol@example.com")
    assert user is not None
    assert user.user_type == UserType.SUPPLIER


@pytest.mark.asyncio
async def test_verify_email_flips_flag_once(app_with_overrides, session_for_tests, email_sender):
    async with client_for(app_with_overrides) as client:
        await client.post("/auth/register", json={
            "email": "alice@example.com", "password": "pw123456", "type": "BUYER",
        })
        token = email_sender.last("verification")["token"]

        response = await client.get("/auth/verify-email", params={"token": token})
        assert response.status_code == 200
        assert response.json()["message"] == "Email verified successfully"

        user = find_user(session_for_tests, "alice@example.com")
        assert user.email_verified is True
        assert user.verification_token is None

        replay = await client.get("/auth/verify-email", params={"token": token})
        assert replay.status_code == 200
        assert replay.json()["status"] == "success"
        assert replay.json()["message"] == "Email already verified"

    assert find_user(session_for_tests, "alice@example.com").email_verified is True


@pytest.mark.asyncio
async def test_verify_email_rejects_bad_tokens(app_with_overrides, codec):
    session_token = codec.issue({"sub": "user-1", "email": "alice@example.com"}, RESET_TTL)

    async with client_for(app_with_overrides) as client:
        missing = await client.get("/auth/verify-email")
        garbage = await client.get("/auth/verify-email", params={"token": "garbage"})
        wrong_purpose = await client.get("/auth/verify-email", params={"token": session_token})

    assert missing.status_code == 400
    assert missing.json()["error"] == "Verification token required"
    assert garbage.status_code == 400
    assert wrong_purpose.status_code == 400


@pytest.mark.asyncio
async def test_expired_verification_token_is_rejected(app_with_overrides, session_for_tests):
    user = create_user(session_for_tests, "ivan@example.com", verified=False)
    expired_token = TokenCodec(TEST_SECRET, clock=past_clock(25)).issue(
        {"sub": user.id, "email": user.email, "purpose": TokenPurpose.EMAIL_VERIFICATION},
        VERIFICATION_TTL,
    )
    user.verification_token = expired_token
    session_for_tests.commit()

    async with client_for(app_with_overrides) as client:
        response = await client.get("/auth/verify-email", params={"token": expired_token})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid verification token"
    assert find_user(session_for_tests, "ivan@example.com").email_verified is False


@pytest.mark.asyncio
async def test_resend_verification_replaces_token(app_with_overrides, session_for_tests, email_sender):
    async with client_for(app_with_overrides) as client:
        await client.post("/auth/register", json={
            "email": "alice@example.com", "password": "pw123456", "type": "BUYER",
        })
        old_token = email_sender.last("verification")["token"]

        response = await client.post("/auth/resend-verification", json={"email": "alice@example.com"})
        assert response.status_code == 200
        new_token = email_sender.last("verification")["token"]
        assert new_token != old_token

        stale = await client.get("/auth/verify-email", params={"token": old_token})
        assert stale.status_code == 400

        fresh = await client.get("/auth/verify-email", params={"token": new_token})
        assert fresh.status_code == 200

        already = await client.post("/auth/resend-verification", json={"email": "alice@example.com"})
        assert already.status_code == 400
        assert already.json()["error"] == "Email already verified"

        unknown = await client.post("/auth/resend-verification", json={"email": "nobody@example.com"})
        assert unknown.status_code == 404


@pytest.mark.asyncio
async def test_login_requires_verified_email(app_with_overrides, session_for_tests):
    create_user(session_for_tests, "dave@example.com", password="pw123456", verified=False)

    async with client_for(app_with_overrides) as client:
        response = await client.post("/auth/login", json={"email": "dave@example.com", "password": "pw123456"})

    assert response.status_code == 403
    assert response.json()["data"]["needsVerification"] is True
    assert "set-cookie" not in response.headers


@pytest.mark.asyncio
async def test_login_rejects_bad_credentials(app_with_overrides, session_for_tests):
    create_user(session_for_tests, "erin@example.com", password="pw123456")

    async with client_for(app_with_overrides) as client:
        wrong_password = await client.post("/auth/login", json={"email": "erin@example.com", "password": "nope12345"})
        unknown = await client.post("/auth/login", json={"email": "ghost@example.com", "password": "pw123456"})
        missing = await client.post("/auth/login", json={"email": "erin@example.com"})

    assert wrong_password.status_code == 400
    assert unknown.status_code == 400
    assert wrong_password.json()["error"] == unknown.json()["error"] == "Invalid email or password"
    assert missing.status_code == 400


@pytest.mark.asyncio
async def test_login_sets_cookie_and_session_checks(app_with_overrides, session_for_tests):
    user = create_user(session_for_tests, "frank@example.com", password="pw123456", user_type=UserType.SUPPLIER)

    async with client_for(app_with_overrides) as client:
        response = await client.post("/auth/login", json={"email": "frank@example.com", "password": "pw123456"})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["userType"] == "SUPPLIER"
        token = data["token"]

        cookies = [value.lower() for value in response.headers.get_list("set-cookie")]
        assert cookies[-1].startswith(f"token={token.lower()}")
        assert "httponly" in cookies[-1]
        assert "samesite=lax" in cookies[-1]
        assert "max-age=86400" in cookies[-1]

        by_header = await client.get("/auth/verify", headers={"Authorization": f"Bearer {token}"})
        by_cookie = await client.get("/auth/verify", headers={"Cookie": f"token={token}"})
        client.cookies.clear()
        anonymous = await client.get("/auth/verify")
        expired = await client.get("/auth/verify", headers={
            "Authorization": "Bearer " + TokenCodec(TEST_SECRET, clock=past_clock(25)).issue(
                {"sub": user.id, "email": user.email, "role": UserType.SUPPLIER}, RESET_TTL
            )
        })

    assert by_header.status_code == 200
    assert by_header.json()["data"]["user"] == {"id": user.id, "email": "frank@example.com", "type": "SUPPLIER"}
    assert by_cookie.status_code == 200
    assert anonymous.status_code == 401
    assert anonymous.json()["data"]["authenticated"] is False
    assert expired.status_code == 401


@pytest.mark.asyncio
async def test_logout_clears_cookie(app_with_overrides):
    async with client_for(app_with_overrides) as client:
        response = await client.post("/auth/logout")

    assert response.status_code == 200
    cookies = [value.lower() for value in response.headers.get_list("set-cookie")]
    assert len(cookies) == 1
    assert cookies[0].startswith("token=")
    assert "max-age=0" in cookies[0]


@pytest.mark.asyncio
async def test_forgot_password_same_response_for_any_email(app_with_overrides, session_for_tests, email_sender):
    create_user(session_for_tests, "grace@example.com")

    async with client_for(app_with_overrides) as client:
        existing = await client.post("/auth/forgot-password", json={"email": "grace@example.com"})
        missing = await client.post("/auth/forgot-password", json={"email": "nobody@example.com"})

    assert existing.status_code == missing.status_code == 200
    assert existing.json() == missing.json()

    assert len(email_sender.sent) == 1
    user = find_user(session_for_tests, "grace@example.com")
    assert email_sender.last("reset")["token"] == user.reset_token


@pytest.mark.asyncio
async def test_forgot_password_same_response_when_delivery_fails(app_with_overrides, session_for_tests, email_sender):
    create_user(session_for_tests, "gwen@example.com")
    email_sender.fail = True

    async with client_for(app_with_overrides) as client:
        existing = await client.post("/auth/forgot-password", json={"email": "gwen@example.com"})
        missing = await client.post("/auth/forgot-password", json={"email": "nobody@example.com"})

    assert existing.status_code == missing.status_code == 200
    assert existing.json() == missing.json()
    assert email_sender.sent == []


@pytest.mark.asyncio
async def test_forgot_password_fails_closed_without_configuration(database, session_for_tests, email_sender):
    app = apply_overrides(
        create_app(make_settings(smtp_host=None), database),
        session_for_tests,
        email_sender,
    )
    create_user(session_for_tests, "grace@example.com")

    async with client_for(app) as client:
        response = await client.post("/auth/forgot-password", json={"email": "grace@example.com"})

    assert response.status_code == 500
    assert response.json()["error"] == "Server configuration error"
    assert email_sender.sent == []
    assert find_user(session_for_tests, "grace@example.com").reset_token is None


@pytest.mark.asyncio
async def test_reset_password_flow(app_with_overrides, session_for_tests, email_sender):
    create_user(session_for_tests, "heidi@example.com", password="pw123456")

    async with client_for(app_with_overrides) as client:
        await client.post("/auth/forgot-password", json={"email": "heidi@example.com"})
        token = email_sender.last("reset")["token"]

        response = await client.post("/auth/reset-password", json={"token": token, "newPassword": "newpass789"})
        assert response.status_code == 200

        user = find_user(session_for_tests, "heidi@example.com")
        assert user.reset_token is None
        assert verify_password("newpass789", user.password_hash)

        replay = await client.post("/auth/reset-password", json={"token": token, "newPassword": "another123"})
        assert replay.status_code == 400

        login = await client.post("/auth/login", json={"email": "heidi@example.com", "password": "newpass789"})
        assert login.status_code == 200


@pytest.mark.asyncio
async def test_second_reset_request_supersedes_first(app_with_overrides, session_for_tests, email_sender):
    create_user(session_for_tests, "ivan@example.com", password="pw123456")

    async with client_for(app_with_overrides) as client:
        await client.post("/auth/forgot-password", json={"email": "ivan@example.com"})
        first = email_sender.last("reset")["token"]
        await client.post("/auth/forgot-password", json={"email": "ivan@example.com"})
        second = email_sender.last("reset")["token"]

        stale = await client.post("/auth/reset-password", json={"token": first, "newPassword": "newpass789"})
        fresh = await client.post("/auth/reset-password", json={"token": second, "newPassword": "newpass789"})

    assert stale.status_code == 400
    assert fresh.status_code == 200


@pytest.mark.asyncio
async def test_expired_reset_token_does_not_change_password(app_with_overrides, session_for_tests):
    user = create_user(session_for_tests, "judy@example.com", password="pw123456")
    expired_token = TokenCodec(TEST_SECRET, clock=past_clock(1.5)).issue(
        {"sub": user.id, "email": user.email, "purpose": TokenPurpose.PASSWORD_RESET},
        RESET_TTL,
    )
    user.reset_token = expired_token
    session_for_tests.commit()
    original_hash = user.password_hash

    async with client_for(app_with_overrides) as client:
        response = await client.post("/auth/reset-password", json={"token": expired_token, "newPassword": "newpass789"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid or expired token"
    user = find_user(session_for_tests, "judy@example.com")
    assert user.password_hash == original_hash
    assert verify_password("pw123456", user.password_hash)


@pytest.mark.asyncio
async def test_reset_password_rejects_invalid_requests(app_with_overrides, session_for_tests, email_sender):
    create_user(session_for_tests, "ken@example.com", password="pw123456")

    async with client_for(app_with_overrides) as client:
        await client.post("/auth/forgot-password", json={"email": "ken@example.com"})
        token = email_sender.last("reset")["token"]

        short = await client.post("/auth/reset-password", json={"token": token, "newPassword": "short"})
        missing = await client.post("/auth/reset-password", json={"token": token})
        garbage = await client.post("/auth/reset-password", json={"token": "garbage", "newPassword": "newpass789"})

    assert short.status_code == 400
    assert missing.status_code == 400
    assert garbage.status_code == 400
    assert verify_password("pw123456", find_user(session_for_tests, "ken@example.com").password_hash)
    assert find_user(session_for_tests, "ken@example.com").reset_token == token


@pytest.mark.asyncio
async def test_session_token_cannot_reset_password(app_with_overrides, session_for_tests):
    user = create_user(session_for_tests, "leo@example.com", password="pw123456")

    async with client_for(app_with_overrides) as client:
        login = await client.post("/auth/login", json={"email": "leo@example.com", "password": "pw123456"})
        token = login.json()["data"]["token"]

        response = await client.post("/auth/reset-password", json={"token": token, "newPassword": "newpass789"})

    assert response.status_code == 400
    assert verify_password("pw123456", find_user(session_for_tests, user.email).password_hash)
