from datetime import datetime, timedelta, timezone

import pytest

from core.errors import AuthFailure
from models.credentials import Credential
from models.refresh_tokens import RefreshToken
from models.sessions import UserSession
from models.users import User
from models.verification_tokens import VerificationToken
from schemas.token_schemas import Registration, SessionUser, TokenPair
from services.auth_service import AuthService
from utils.hashing import SecretHasher
from conftest import TEST_PASSWORD

IP = "127.0.0.1"
AGENT = "pytest"


class CountingHasher(SecretHasher):
    """Records how many bcrypt comparisons a call performed."""

    def __init__(self, rounds: int = 4):
        super().__init__(rounds)
        self.verifications = 0

    def verify(self, secret, hashed):
        self.verifications += 1
        return super().verify(secret, hashed)

    def dummy_verify(self):
        self.verifications += 1
        return super().dummy_verify()


@pytest.fixture
def counting_auth(auth_service, session_factory):
    hasher = CountingHasher()
    service = AuthService(
        session_factory=session_factory,
        password_hasher=hasher,
        tokens=auth_service.tokens,
        sessions=auth_service.sessions,
        verification=auth_service.verification,
    )
    return service, hasher


def test_register_verify_login(auth_service, count_rows):
    registration = auth_service.register("alice@x.io", "Alice", "correct horse battery staple")

    assert isinstance(registration, Registration)
    assert count_rows(User, User.email == "alice@x.io", User.is_verified.is_(False)) == 1
    assert count_rows(Credential, Credential.user_id == registration.user_id) == 1
    assert count_rows(VerificationToken, VerificationToken.user_id == registration.user_id) == 1

    # Unverified users cannot log in yet
    assert auth_service.login("alice@x.io", "correct horse battery staple", IP, AGENT) \
        is AuthFailure.EMAIL_NOT_VERIFIED

    verified = auth_service.verify_email(registration.verification_token)
    assert verified.user_id == registration.user_id

    before = datetime.now(timezone.utc)
    pair = auth_service.login("alice@x.io", "correct horse battery staple", IP, AGENT)

    assert isinstance(pair, TokenPair)
    assert pair.user_id == registration.user_id
    assert before + timedelta(minutes=14) < pair.session_expires_at <= before + timedelta(minutes=15, seconds=5)

    user = auth_service.authenticate(pair.session_token)
    assert isinstance(user, SessionUser)
    assert user.email == "alice@x.io"


def test_register_duplicate_email_is_case_insensitive(auth_service, count_rows):
    auth_service.register("Bob@Example.com", "Bob", TEST_PASSWORD)

    assert auth_service.register("bob@example.com ", "Bobby", TEST_PASSWORD) \
        is AuthFailure.EMAIL_ALREADY_REGISTERED
    assert count_rows(User) == 1


def test_register_stores_password_hash_only(auth_service, session_factory):
    registration = auth_service.register("carol@example.com", "Carol", TEST_PASSWORD)

    with session_factory() as db:
        credential = db.query(Credential).filter(Credential.user_id == registration.user_id).one()

    assert credential.password_hash != TEST_PASSWORD
    assert credential.password_hash.startswith("$2b$")


def test_login_unknown_email_and_wrong_password_look_alike(counting_auth, verified_user):
    service, hasher = counting_auth

    unknown = service.login("nobody@example.com", TEST_PASSWORD, IP, AGENT)
    unknown_cost = hasher.verifications

    hasher.verifications = 0
    wrong = service.login(verified_user.email, "wrong-password", IP, AGENT)
    wrong_cost = hasher.verifications

    assert unknown is wrong is AuthFailure.INVALID_CREDENTIALS
    assert unknown_cost == wrong_cost == 1


def test_login_wrong_password_on_unverified_user(auth_service, make_user):
    user = make_user(email="pending@example.com", verified=False)

    # The verification state is not revealed without the right password
    assert auth_service.login(user.email, "wrong-password", IP, AGENT) is AuthFailure.INVALID_CREDENTIALS


def test_login_normalizes_email(auth_service, verified_user):
    pair = auth_service.login("  VERIFIED@example.com", TEST_PASSWORD, IP, AGENT)

    assert isinstance(pair, TokenPair)


def test_authenticate_without_token(auth_service):
    assert auth_service.authenticate(None) is AuthFailure.UNAUTHENTICATED
    assert auth_service.authenticate("") is AuthFailure.UNAUTHENTICATED


def test_logout_current_session(auth_service, verified_user, count_rows):
    pair = auth_service.login(verified_user.email, TEST_PASSWORD, IP, AGENT)
    other = auth_service.login(verified_user.email, TEST_PASSWORD, IP, AGENT)

    auth_service.logout(pair.session_token, verified_user.id)

    assert auth_service.authenticate(pair.session_token) is AuthFailure.UNAUTHENTICATED
    assert auth_service.refresh(pair.refresh_token, IP, AGENT) is AuthFailure.INVALID_OR_EXPIRED_REFRESH_TOKEN
    assert auth_service.authenticate(other.session_token).id == verified_user.id
    assert count_rows(UserSession) == 1
    assert count_rows(RefreshToken) == 1

    # Idempotent
    auth_service.logout(pair.session_token, verified_user.id)


def test_logout_only_touches_own_tokens(auth_service, verified_user, make_user):
    other = make_user(email="other@example.com")
    other_pair = auth_service.login(other.email, TEST_PASSWORD, IP, AGENT)

    auth_service.logout(other_pair.session_token, verified_user.id)

    assert auth_service.authenticate(other_pair.session_token).id == other.id
    assert isinstance(auth_service.refresh(other_pair.refresh_token, IP, AGENT), TokenPair)


def test_logout_all(auth_service, verified_user, count_rows):
    pairs = [auth_service.login(verified_user.email, TEST_PASSWORD, IP, AGENT) for _ in range(3)]

    auth_service.logout(pairs[0].session_token, verified_user.id, logout_all=True)

    for pair in pairs:
        assert auth_service.authenticate(pair.session_token) is AuthFailure.UNAUTHENTICATED
    assert count_rows(UserSession) == 0
    assert count_rows(RefreshToken) == 0


def test_list_and_revoke_sessions(auth_service, verified_user):
    auth_service.login(verified_user.email, TEST_PASSWORD, IP, "laptop")
    phone = auth_service.login(verified_user.email, TEST_PASSWORD, IP, "phone")

    sessions = auth_service.list_sessions(verified_user.id)
    assert [s.user_agent for s in sessions] == ["phone", "laptop"]

    assert auth_service.revoke_session(sessions[1].id, verified_user.id) is True
    assert auth_service.revoke_session(sessions[1].id, verified_user.id) is False
    assert auth_service.authenticate(phone.session_token).id == verified_user.id
