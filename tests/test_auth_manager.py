"""Unit tests for auth/manager.py -- the AuthManager state machine.

Covers:
- setup succeeds exactly once; weak passwords leave the system unconfigured
- password round-trip and change_password semantics
- sessions: issue, verify until expiry, secret rotation, independence from
  password changes
- corrupt / missing / out-of-band credential files
- concurrent setup calls: exactly one writer wins
"""

import json
import threading

import pytest

from auth.errors import AuthNotInitialized, CredentialPersistenceError
from auth.manager import AuthManager
from auth.models import ChangePasswordResult, SetupResult
from auth.passwords import verify_password
from auth.store import CredentialStore

TEST_PASSWORD = "correct-horse-battery"  # matches conftest.configured_manager
NEW_PASSWORD = "tr0ub4dor-and-three"


class TestSetup:
    def test_starts_uninitialized(self, manager: AuthManager) -> None:
        assert not manager.is_configured()

    def test_setup_once(self, manager: AuthManager, credential_store: CredentialStore) -> None:
        assert manager.setup(TEST_PASSWORD) is SetupResult.success
        assert manager.is_configured()
        stored = credential_store.load()
        assert stored is not None
        assert stored.password_hash and stored.session_secret
        assert stored.updated_at is None

    def test_second_setup_is_refused_and_changes_nothing(
        self, configured_manager: AuthManager, credential_store: CredentialStore
    ) -> None:
        before = credential_store.load()
        assert configured_manager.setup("some-other-long-password") is SetupResult.already_configured
        assert credential_store.load() == before
        assert configured_manager.verify_password(TEST_PASSWORD)
        assert not configured_manager.verify_password("some-other-long-password")

    @pytest.mark.parametrize("password", ["", "short", "elevenchars"])
    def test_weak_password(self, manager: AuthManager, credential_store: CredentialStore, password: str) -> None:
        assert manager.setup(password) is SetupResult.weak_password
        assert not manager.is_configured()
        assert not credential_store.exists()

    def test_twelve_characters_is_enough(self, manager: AuthManager) -> None:
        assert manager.setup("x" * 12) is SetupResult.success

    def test_created_at_comes_from_clock(self, configured_manager: AuthManager, credential_store, clock) -> None:
        assert credential_store.load().created_at == clock.now.isoformat()

    def test_persistence_failure_keeps_uninitialized(self, tmp_path, clock) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        manager = AuthManager(CredentialStore(blocker / "config"), bcrypt_rounds=4, clock=clock)
        assert manager.setup(TEST_PASSWORD) is SetupResult.persistence_failure
        assert not manager.is_configured()
        with pytest.raises(AuthNotInitialized):
            manager.create_session()

    def test_chmod_failure_does_not_fail_setup(self, manager: AuthManager, monkeypatch, caplog) -> None:
        def refuse(*args, **kwargs):
            raise PermissionError("operation not permitted")

        monkeypatch.setattr("auth.store.os.chmod", refuse)
        with caplog.at_level("WARNING"):
            assert manager.setup(TEST_PASSWORD) is SetupResult.success
        assert manager.is_configured()
        assert "Failed to restrict permissions" in caplog.text

    def test_passwords_never_logged(self, manager: AuthManager, caplog) -> None:
        with caplog.at_level("DEBUG"):
            manager.setup(TEST_PASSWORD)
            manager.verify_password("wrong-password-attempt")
            manager.change_password(TEST_PASSWORD, NEW_PASSWORD)
        assert TEST_PASSWORD not in caplog.text
        assert NEW_PASSWORD not in caplog.text
        assert "wrong-password-attempt" not in caplog.text


class TestLoading:
    def test_existing_file_is_loaded(self, configured_manager: AuthManager, make_manager) -> None:
        restarted = make_manager()
        assert restarted.is_configured()
        assert restarted.verify_password(TEST_PASSWORD)

    def test_token_survives_restart(self, configured_manager: AuthManager, make_manager) -> None:
        token = configured_manager.create_session()
        assert make_manager().verify_session(token)

    def test_corrupt_file_behaves_as_unconfigured(self, credential_path, make_manager, caplog) -> None:
        credential_path.write_text("{not json", encoding="utf-8")
        with caplog.at_level("ERROR", logger="registry.auth"):
            manager = make_manager()
        assert not manager.is_configured()
        assert "corrupt" in caplog.text

    def test_setup_replaces_corrupt_file(self, credential_path, make_manager, credential_store) -> None:
        credential_path.write_text(json.dumps({"password_hash": "only"}), encoding="utf-8")
        manager = make_manager()
        assert manager.setup(TEST_PASSWORD) is SetupResult.success
        assert credential_store.load() is not None

    def test_setup_rechecks_disk(self, make_manager) -> None:
        first = make_manager()
        second = make_manager()
        assert first.setup(TEST_PASSWORD) is SetupResult.success
        # second was built before the file existed; it must not overwrite it.
        assert second.setup("an-entirely-different-pw") is SetupResult.already_configured
        assert second.is_configured()
        assert second.verify_password(TEST_PASSWORD)

    def test_reload_after_file_removed(self, configured_manager: AuthManager, credential_path) -> None:
        credential_path.unlink()
        assert configured_manager.reload() is False
        assert not configured_manager.is_configured()
        assert not configured_manager.verify_password(TEST_PASSWORD)


class TestVerifyPassword:
    def test_round_trip(self, configured_manager: AuthManager) -> None:
        assert configured_manager.verify_password(TEST_PASSWORD)
        assert not configured_manager.verify_password(TEST_PASSWORD + "!")
        assert not configured_manager.verify_password(TEST_PASSWORD.upper())
        assert not configured_manager.verify_password("")

    def test_false_when_uninitialized(self, manager: AuthManager) -> None:
        assert manager.verify_password(TEST_PASSWORD) is False


class TestChangePassword:
    def test_success(self, configured_manager: AuthManager, credential_store, clock) -> None:
        created_at = credential_store.load().created_at
        clock.advance(hours=1)
        assert configured_manager.change_password(TEST_PASSWORD, NEW_PASSWORD) is ChangePasswordResult.success
        assert not configured_manager.verify_password(TEST_PASSWORD)
        assert configured_manager.verify_password(NEW_PASSWORD)

        stored = credential_store.load()
        assert stored.created_at == created_at
        assert stored.updated_at == clock.now.isoformat()
        assert verify_password(NEW_PASSWORD, stored.password_hash)

    def test_existing_sessions_survive(self, configured_manager: AuthManager) -> None:
        token = configured_manager.create_session()
        assert configured_manager.change_password(TEST_PASSWORD, NEW_PASSWORD) is ChangePasswordResult.success
        assert configured_manager.verify_session(token)

    def test_session_secret_unchanged(self, configured_manager: AuthManager, credential_store) -> None:
        secret = credential_store.load().session_secret
        configured_manager.change_password(TEST_PASSWORD, NEW_PASSWORD)
        assert credential_store.load().session_secret == secret

    def test_not_configured(self, manager: AuthManager) -> None:
        assert manager.change_password(TEST_PASSWORD, NEW_PASSWORD) is ChangePasswordResult.not_configured

    def test_invalid_old_password(self, configured_manager: AuthManager) -> None:
        result = configured_manager.change_password("not-the-password", NEW_PASSWORD)
        assert result is ChangePasswordResult.invalid_old_password
        assert configured_manager.verify_password(TEST_PASSWORD)

    def test_weak_new_password(self, configured_manager: AuthManager) -> None:
        assert configured_manager.change_password(TEST_PASSWORD, "short") is ChangePasswordResult.weak_password
        assert configured_manager.verify_password(TEST_PASSWORD)

    def test_persistence_failure_keeps_old_password(self, configured_manager: AuthManager, credential_path) -> None:
        credential_path.unlink()
        result = configured_manager.change_password(TEST_PASSWORD, NEW_PASSWORD)
        assert result is ChangePasswordResult.persistence_failure
        assert configured_manager.verify_password(TEST_PASSWORD)
        assert not configured_manager.verify_password(NEW_PASSWORD)

    def test_store_error_is_not_raised(self, configured_manager: AuthManager, monkeypatch) -> None:
        def broken_save(self, record):
            raise CredentialPersistenceError("disk full")

        monkeypatch.setattr(CredentialStore, "save", broken_save)
        result = configured_manager.change_password(TEST_PASSWORD, NEW_PASSWORD)
        assert result is ChangePasswordResult.persistence_failure


class TestSessions:
    def test_create_session_requires_setup(self, manager: AuthManager) -> None:
        with pytest.raises(AuthNotInitialized):
            manager.create_session()

    def test_verify_session_false_when_uninitialized(self, manager: AuthManager) -> None:
        assert manager.verify_session("anything") is False

    @pytest.mark.parametrize("token", [None, ""])
    def test_absent_token(self, configured_manager: AuthManager, token) -> None:
        assert configured_manager.verify_session(token) is False

    def test_valid_until_ttl(self, configured_manager: AuthManager, clock) -> None:
        token = configured_manager.create_session()
        assert configured_manager.verify_session(token)
        clock.advance(hours=23, minutes=59, seconds=59)
        assert configured_manager.verify_session(token)
        clock.advance(seconds=1)
        assert not configured_manager.verify_session(token)

    def test_secret_rotation_invalidates_sessions(
        self, configured_manager: AuthManager, credential_path
    ) -> None:
        old_token = configured_manager.create_session()
        credential_path.unlink()
        configured_manager.reload()
        assert not configured_manager.verify_session(old_token)

        assert configured_manager.setup(TEST_PASSWORD) is SetupResult.success
        assert not configured_manager.verify_session(old_token)
        assert configured_manager.verify_session(configured_manager.create_session())

    def test_default_ttl_is_24_hours(self, configured_manager: AuthManager) -> None:
        assert configured_manager.session_ttl.total_seconds() == 24 * 3600


def test_end_to_end_scenario(manager: AuthManager, clock) -> None:
    assert manager.setup("correct-horse-battery") is SetupResult.success
    assert manager.verify_password("correct-horse-battery")
    token = manager.create_session()
    assert manager.verify_session(token)
    clock.advance(hours=24, milliseconds=1)
    assert not manager.verify_session(token)


def test_concurrent_setup_has_one_winner(make_manager, credential_store) -> None:
    manager = make_manager()
    passwords = [f"concurrent-password-{i:02d}" for i in range(8)]
    barrier = threading.Barrier(len(passwords))
    results: dict[str, SetupResult] = {}

    def attempt(password: str) -> None:
        barrier.wait()
        results[password] = manager.setup(password)

    threads = [threading.Thread(target=attempt, args=(p,)) for p in passwords]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    winners = [p for p, r in results.items() if r is SetupResult.success]
    assert len(winners) == 1
    assert all(r is SetupResult.already_configured for p, r in results.items() if p != winners[0])
    assert verify_password(winners[0], credential_store.load().password_hash)
    assert manager.verify_password(winners[0])
