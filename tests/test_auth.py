# JUAKALI/backend/tests/test_auth.py : registration, login and OAuth sessions

import pytest

from juakali.auth import decode_token, hash_password, verify_password
from juakali.models import models
from juakali.services.http import ProviderError
from juakali.services.oauth_service import get_users_service
from juakali.main import app


class FakeUsersService:
    """Users service double answering the OAuth handshake"""

    def __init__(self, fail=False, email="achieng@juakali.co.ke"):
        self.fail = fail
        self.email = email
        self.deleted = []

    async def get_redirect_url(self, provider="google"):
        if self.fail:
            raise ProviderError("users service down")
        return f"https://accounts.example.com/{provider}/auth"

    async def exchange_code(self, code):
        if self.fail:
            raise ProviderError("invalid code")
        return "upstream-session-token"

    async def get_current_user(self, session_token):
        return {
            "id": "usr_42",
            "email": self.email,
            "google_user_data": {"given_name": "Achieng", "family_name": "Odhiambo"},
        }

    async def delete_session(self, session_token):
        self.deleted.append(session_token)


def registration(**overrides):
    payload = {
        "email": "wanjiku@juakali.co.ke",
        "firstName": "Wanjiku",
        "lastName": "Njeri",
        "phoneNumber": "0712345678",
        "companyName": "Njeri Duka",
        "role": "retailer",
        "password": "secret123",
        "businessType": "retail",
        "yearsInBusiness": 3,
    }
    payload.update(overrides)
    return payload


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("secret123")
        assert hashed != "secret123"
        assert verify_password("secret123", hashed)
        assert not verify_password("wrong", hashed)

    def test_user_without_password_never_verifies(self):
        assert not verify_password("anything", None)

    def test_garbage_token_decodes_to_none(self):
        assert decode_token("not-a-jwt") is None


class TestRegistration:
    def test_register_retailer_creates_all_records(self, client, db):
        response = client.post("/api/users/register", json=registration())
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Registration successful"

        user = db.query(models.User).filter(models.User.id == body["data"]["userId"]).first()
        assert user.role == "retailer"
        assert user.is_active is True
        assert user.security_level == 1
        assert user.profile.business_type == "retail"
        assert user.profile.verification_status == "pending"
        assert user.security_settings.password_expiry_days == 90
        assert user.preferences.language == "en"
        assert user.credit_profile.credit_score == 500

        retailer = db.query(models.Retailer).filter(models.Retailer.user_id == user.id).first()
        assert retailer.business_name == "Njeri Duka"

    def test_register_duplicate_email(self, client):
        assert client.post("/api/users/register", json=registration()).status_code == 201

        response = client.post("/api/users/register", json=registration(firstName="Other"))
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "User already exists with this email"}

    def test_admin_registration_waits_for_approval(self, client, db):
        response = client.post("/api/users/register", json=registration(email="boss@juakali.co.ke", role="admin"))
        assert response.status_code == 201

        user = db.query(models.User).filter(models.User.email == "boss@juakali.co.ke").first()
        assert user.is_active is False
        assert user.status == "pending"
        assert user.security_level == 3
        assert user.credit_profile is None
        assert user.profile.verification_status == "manual_review"
        assert user.security_settings.password_expiry_days == 30
        assert user.security_settings.admin_approval_required is True

    def test_invalid_body_returns_400_with_details(self, client):
        payload = registration(role="banker")
        del payload["lastName"]

        response = client.post("/api/users/register", json=payload)
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Validation failed"
        fields = {detail["field"] for detail in body["details"]}
        assert "lastName" in fields
        assert "role" in fields

    def test_role_cannot_be_changed_on_the_model(self, make_user):
        user = make_user("lender")
        with pytest.raises(ValueError):
            user.role = "admin"


class TestLogin:
    def test_login_sets_session_cookie(self, client, make_user):
        make_user("lender", email="kamau@juakali.co.ke")

        response = client.post("/api/users/login", json={"email": "kamau@juakali.co.ke", "password": "secret123"})
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["data"]["role"] == "lender"
        assert "juakali_session_token" in response.cookies

        # The cookie alone authenticates the next request
        me = client.get("/api/users/me")
        assert me.status_code == 200
        assert me.json()["data"]["email"] == "kamau@juakali.co.ke"

    def test_login_wrong_password(self, client, make_user):
        make_user(email="kamau@juakali.co.ke")
        response = client.post("/api/users/login", json={"email": "kamau@juakali.co.ke", "password": "nope"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid email or password"

    def test_login_unknown_email(self, client):
        response = client.post("/api/users/login", json={"email": "ghost@juakali.co.ke", "password": "secret123"})
        assert response.status_code == 400

    def test_login_inactive_account(self, client, make_user):
        make_user(email="off@juakali.co.ke", is_active=False)
        response = client.post("/api/users/login", json={"email": "off@juakali.co.ke", "password": "secret123"})
        assert response.status_code == 403

    def test_me_requires_authentication(self, client):
        response = client.get("/api/users/me")
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Unauthorized"}

    def test_deactivated_user_is_forbidden(self, client, login_as):
        _, headers = login_as("retailer", is_active=False)
        response = client.get("/api/users/me", headers=headers)
        assert response.status_code == 403
        assert response.json()["error"] == "Account is not active"


class TestOAuthSessions:
    def setup_method(self):
        self.users_service = FakeUsersService()
        app.dependency_overrides[get_users_service] = lambda: self.users_service

    def teardown_method(self):
        app.dependency_overrides.pop(get_users_service, None)

    def test_redirect_url(self, client):
        response = client.get("/api/oauth/google/redirect_url")
        assert response.status_code == 200
        assert response.json() == {"redirectUrl": "https://accounts.example.com/google/auth"}

    def test_redirect_url_failure(self, client):
        self.users_service.fail = True
        response = client.get("/api/oauth/google/redirect_url")
        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Failed to get OAuth redirect URL"}

    def test_session_requires_code(self, client):
        response = client.post("/api/sessions", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "No authorization code provided"

    def test_session_creates_verified_customer(self, client, db):
        response = client.post("/api/sessions", json={"code": "oauth-code"})
        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert "juakali_session_token" in response.cookies

        user = db.query(models.User).filter(models.User.email == "achieng@juakali.co.ke").first()
        assert user.role == "customer"
        assert user.is_verified is True
        assert user.external_user_id == "usr_42"
        assert user.first_name == "Achieng"
        assert user.last_login_at is not None

        me = client.get("/api/users/me")
        assert me.json()["data"]["email"] == "achieng@juakali.co.ke"

    def test_second_session_reuses_the_user(self, client, db, make_user):
        make_user("lender", email="achieng@juakali.co.ke")

        response = client.post("/api/sessions", json={"code": "oauth-code"})
        assert response.status_code == 200

        db.expire_all()
        users = db.query(models.User).filter(models.User.email == "achieng@juakali.co.ke").all()
        assert len(users) == 1
        assert users[0].role == "lender"
        assert users[0].external_user_id == "usr_42"

    def test_session_provider_failure(self, client):
        self.users_service.fail = True
        response = client.post("/api/sessions", json={"code": "oauth-code"})
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to create session"

    def test_logout_deletes_upstream_session_and_clears_cookie(self, client):
        client.post("/api/sessions", json={"code": "oauth-code"})

        response = client.get("/api/logout")
        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert self.users_service.deleted == ["upstream-session-token"]
        assert "Max-Age=0" in response.headers["set-cookie"]

    def test_logout_without_session(self, client):
        response = client.get("/api/logout")
        assert response.status_code == 200
        assert self.users_service.deleted == []
