"""Unit tests for auth/service.py -- registration and login orchestration.

Covers:
- register then login round trip; token subject is the stored user id
- duplicate registration rejected, no second record
- wrong password and unknown email are indistinguishable (type, message, bcrypt work)
- store-level uniqueness wins a check-then-insert race, sequential and threaded
- plaintext passwords never reach the store or the logs
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from auth.errors import EmailAlreadyExistsError, InvalidCredentialsError
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenIssuer, TokenVerifier


class CountingHasher(PasswordHasher):
    """PasswordHasher that records how many verifications ran."""

    def __init__(self) -> None:
        super().__init__(rounds=4)
        self.verify_calls = 0

    def verify(self, plain: str, hashed: str) -> bool:
        self.verify_calls += 1
        return super().verify(plain, hashed)


@pytest.fixture
def service(store, hasher, settings) -> AuthService:
    return AuthService(store, hasher, TokenIssuer(settings))


def _emails(store: UserStore) -> list[str]:
    return [u.email for u in store.list_users()]


def test_register_creates_user_and_session(service, store, settings):
    session = service.register("a@x.com", "secret1", "A")
    assert session.email == "a@x.com"
    assert session.name == "A"
    assert session.token

    stored = store.get_by_email("a@x.com")
    assert stored is not None
    assert stored.password_hash != "secret1"
    assert stored.created_at is not None
    assert stored.created_at.tzinfo is not None

    claims = TokenVerifier(settings).verify(session.token)
    assert claims is not None
    assert claims.user_id == stored.id


def test_register_then_login_yields_token_for_same_user(service, store, settings):
    registered = service.register("b@x.com", "secret1", "B")
    logged_in = service.login("b@x.com", "secret1")

    assert logged_in.token != registered.token
    assert (logged_in.email, logged_in.name) == ("b@x.com", "B")
    claims = TokenVerifier(settings).verify(logged_in.token)
    assert claims.user_id == store.get_by_email("b@x.com").id


def test_session_expiry_matches_configuration(store, hasher, settings_factory):
    service = AuthService(store, hasher, TokenIssuer(settings_factory(jwt_expiration_minutes=5)))
    session = service.register("exp@x.com", "secret1", "Exp")
    claims = TokenVerifier(settings_factory()).verify(session.token)
    assert (claims.expires_at - claims.issued_at).total_seconds() == 5 * 60


def test_duplicate_registration_is_rejected(service, store):
    service.register("dup@x.com", "secret1", "First")
    with pytest.raises(EmailAlreadyExistsError) as excinfo:
        service.register("dup@x.com", "another-password", "Second")
    assert excinfo.value.message == "Email already exists"
    assert _emails(store).count("dup@x.com") == 1
    assert store.get_by_email("dup@x.com").name == "First"


def test_email_comparison_is_case_sensitive(service, store):
    service.register("Case@x.com", "secret1", "Upper")
    service.register("case@x.com", "secret1", "Lower")
    assert len(store.list_users()) == 2
    with pytest.raises(InvalidCredentialsError):
        service.login("CASE@x.com", "secret1")


def test_wrong_password_and_unknown_email_are_indistinguishable(service):
    service.register("c@x.com", "secret1", "C")
    with pytest.raises(InvalidCredentialsError) as wrong_password:
        service.login("c@x.com", "wrong-password")
    with pytest.raises(InvalidCredentialsError) as unknown_email:
        service.login("nobody@x.com", "secret1")
    assert type(wrong_password.value) is type(unknown_email.value)
    assert str(wrong_password.value) == str(unknown_email.value) == "Invalid email or password"


def test_unknown_email_still_runs_one_verification(store, settings):
    counting = CountingHasher()
    service = AuthService(store, counting, TokenIssuer(settings))
    service.register("d@x.com", "secret1", "D")

    counting.verify_calls = 0
    with pytest.raises(InvalidCredentialsError):
        service.login("nobody@x.com", "secret1")
    unknown_calls = counting.verify_calls

    counting.verify_calls = 0
    with pytest.raises(InvalidCredentialsError):
        service.login("d@x.com", "wrong-password")

    assert unknown_calls == counting.verify_calls == 1


def test_insert_race_is_reported_as_duplicate(service, store, monkeypatch):
    """Both requests pass the fast-path check; the UNIQUE constraint decides."""
    service.register("race@x.com", "secret1", "Winner")
    monkeypatch.setattr(store, "get_by_email", lambda email: None)

    with pytest.raises(EmailAlreadyExistsError):
        service.register("race@x.com", "secret1", "Loser")
    monkeypatch.undo()
    assert _emails(store).count("race@x.com") == 1


def test_concurrent_registration_has_single_winner(tmp_path, hasher, settings):
    store = UserStore(f"sqlite:///{tmp_path / 'race.db'}")
    service = AuthService(store, hasher, TokenIssuer(settings))
    barrier = threading.Barrier(2)

    def attempt(_):
        barrier.wait()
        try:
            return service.register("same@x.com", "secret1", "Racer")
        except EmailAlreadyExistsError as exc:
            return exc

    try:
        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(attempt, range(2)))
        failures = [r for r in results if isinstance(r, EmailAlreadyExistsError)]
        assert len(failures) == 1
        assert len(results) - len(failures) == 1
        assert _emails(store) == ["same@x.com"]
    finally:
        store.close()


def test_passwords_never_logged(service, caplog):
    caplog.set_level(logging.DEBUG)
    service.register("log@x.com", "s3cret-value", "Log")
    service.login("log@x.com", "s3cret-value")
    with pytest.raises(InvalidCredentialsError):
        service.login("log@x.com", "wr0ng-value")
    assert "s3cret-value" not in caplog.text
    assert "wr0ng-value" not in caplog.text
