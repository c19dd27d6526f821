"""Unit tests for app.services.session: login, logout, refresh, change and reset password."""

import threading
import unittest
from contextlib import contextmanager
from unittest.mock import MagicMock, patch

from sqlalchemy.exc import OperationalError

from app.core.locks import AccountLocks
from app.core.security import verify_password
from app.models import AccessToken, Authentication, User
from app.services.audit import AuditRecorder, RequestContext
from app.services.errors import StoreError
from app.services.results import ErrorKind
from app.services.session import build_session_service
from tests.factories import make_engine, make_service, make_session_factory, make_settings, make_user

CONTEXT = RequestContext(
    ip_address="10.0.0.7",
    user_agent="pytest-agent/1.0",
    device_info={"platform": "Linux"},
)


class SessionServiceTestCase(unittest.TestCase):
    """Fresh database, one active account a@x.com / secret123, and a service per test."""

    def setUp(self) -> None:
        self.engine = make_engine()
        self.db = make_session_factory(self.engine)()
        self.user = make_user(self.db)
        self.service = make_service(self.db)

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()

    def audit_rows(self) -> list[Authentication]:
        return self.db.query(Authentication).order_by(Authentication.id).all()

    def token_rows(self) -> list[AccessToken]:
        return self.db.query(AccessToken).order_by(AccessToken.id).all()

    def login_token(self, password: str = "secret123") -> str:
        result = self.service.login(self.user.email, password, CONTEXT)
        self.assertTrue(result.success, result.message)
        return result.data["token"]

    @contextmanager
    def reads_fail_after_commit(self):
        """Commit for real, then make every later session query raise OperationalError."""
        original_commit = self.db.commit

        def commit_then_drop() -> None:
            original_commit()
            self.db.execute = MagicMock(
                side_effect=OperationalError("SELECT", {}, Exception("connection dropped"))
            )

        try:
            with patch.object(self.db, "commit", side_effect=commit_then_drop):
                yield
        finally:
            self.db.__dict__.pop("execute", None)


class TestLogin(SessionServiceTestCase):
    def test_success_returns_account_and_bearer_token(self) -> None:
        result = self.service.login("a@x.com", "secret123", CONTEXT)
        self.assertTrue(result.success)
        self.assertEqual(result.message, "Login successful")
        self.assertEqual(result.data["token_type"], "Bearer")
        self.assertEqual(result.data["user"]["email"], "a@x.com")
        self.assertNotIn("password_hash", result.data["user"])
        self.assertEqual(self.service.tokens.validate(result.data["token"]), self.user.id)

    def test_raw_token_is_not_persisted(self) -> None:
        token = self.login_token()
        stored = [row.token_hash for row in self.token_rows()]
        self.assertNotIn(token, stored)

    def test_success_records_last_login_and_audit_entry(self) -> None:
        result = self.service.login("a@x.com", "secret123", CONTEXT)
        self.db.refresh(self.user)
        self.assertIsNotNone(self.user.last_login_at)
        self.assertEqual(self.user.last_login_ip, "10.0.0.7")
        entries = self.audit_rows()
        self.assertEqual(len(entries), 1)
        entry = entries[0]
        self.assertTrue(entry.is_successful)
        self.assertEqual(entry.user_id, self.user.id)
        self.assertEqual(entry.event, "login")
        self.assertEqual(entry.user_agent, "pytest-agent/1.0")
        self.assertEqual(entry.device_info, {"platform": "Linux"})
        self.assertEqual(entry.token_id, self.token_rows()[0].id)
        self.assertIsNotNone(entry.login_at)
        self.assertIsNone(entry.logout_at)
        self.assertTrue(result.success)

    def test_multiple_logins_keep_tokens_concurrently_valid(self) -> None:
        first = self.login_token()
        second = self.login_token()
        self.assertNotEqual(first, second)
        self.assertEqual(self.service.tokens.validate(first), self.user.id)
        self.assertEqual(self.service.tokens.validate(second), self.user.id)
        self.assertEqual(self.service.tokens.count_active(self.user.id), 2)

    def test_wrong_password_and_unknown_email_are_indistinguishable(self) -> None:
        wrong = self.service.login("a@x.com", "wrong-password", CONTEXT)
        unknown = self.service.login("nobody@x.com", "secret123", CONTEXT)
        self.assertFalse(wrong.success)
        self.assertFalse(unknown.success)
        self.assertEqual(wrong.kind, ErrorKind.INVALID_CREDENTIALS)
        self.assertEqual(unknown.kind, ErrorKind.INVALID_CREDENTIALS)
        self.assertEqual(wrong.to_envelope(), unknown.to_envelope())
        self.assertEqual(self.token_rows(), [])

    def test_failed_attempts_are_audited_with_nullable_account(self) -> None:
        self.service.login("a@x.com", "wrong-password", CONTEXT)
        self.service.login("nobody@x.com", "secret123", CONTEXT)
        entries = self.audit_rows()
        self.assertEqual(len(entries), 2)
        self.assertEqual(entries[0].user_id, self.user.id)
        self.assertFalse(entries[0].is_successful)
        self.assertIsNone(entries[1].user_id)
        self.assertFalse(entries[1].is_successful)

    def test_failed_attempts_not_audited_when_disabled_by_setting(self) -> None:
        service = make_service(self.db, make_settings(AUDIT_FAILED_LOGINS=False))
        service.login("nobody@x.com", "secret123", CONTEXT)
        service.login("a@x.com", "wrong-password", CONTEXT)
        self.assertEqual(self.audit_rows(), [])

    def test_email_match_is_case_sensitive(self) -> None:
        result = self.service.login("A@X.COM", "secret123", CONTEXT)
        self.assertEqual(result.kind, ErrorKind.INVALID_CREDENTIALS)

    def test_unknown_email_still_spends_a_verify(self) -> None:
        with patch.object(self.service.hasher, "verify_dummy") as verify_dummy:
            self.service.login("nobody@x.com", "secret123", CONTEXT)
        verify_dummy.assert_called_once_with("secret123")

    def test_disabled_account_never_gets_a_token(self) -> None:
        make_user(self.db, email="off@x.com", password="secret123", is_active=False)
        result = self.service.login("off@x.com", "secret123", CONTEXT)
        self.assertFalse(result.success)
        self.assertEqual(result.kind, ErrorKind.ACCOUNT_DISABLED)
        self.assertEqual(result.message, "Account is disabled")
        self.assertEqual(self.token_rows(), [])

    def test_disabled_account_with_wrong_password_reports_invalid_credentials(self) -> None:
        make_user(self.db, email="off@x.com", password="secret123", is_active=False)
        result = self.service.login("off@x.com", "not-the-password", CONTEXT)
        self.assertEqual(result.kind, ErrorKind.INVALID_CREDENTIALS)

    def test_store_failure_is_internal_and_password_is_not_logged(self) -> None:
        with patch.object(
            self.service.credentials,
            "get_by_email",
            side_effect=StoreError("connection timed out", operation="get_by_email"),
        ):
            with self.assertLogs("app.services.session", level="ERROR") as logs:
                result = self.service.login("a@x.com", "secret123", CONTEXT)
        self.assertFalse(result.success)
        self.assertEqual(result.kind, ErrorKind.INTERNAL)
        self.assertEqual(result.message, "Login failed")
        self.assertEqual(result.errors, {"server": "connection timed out"})
        output = "\n".join(logs.output)
        self.assertIn("a@x.com", output)
        self.assertNotIn("secret123", output)

    def test_audit_failure_does_not_block_login(self) -> None:
        broken_db = MagicMock()
        broken_db.commit.side_effect = OperationalError("INSERT", {}, Exception("disk full"))
        self.service.audit = AuditRecorder(broken_db)
        with self.assertLogs("app.services.audit", level="ERROR"):
            result = self.service.login("a@x.com", "secret123", CONTEXT)
        self.assertTrue(result.success)
        broken_db.rollback.assert_called_once()
        self.assertEqual(self.service.tokens.validate(result.data["token"]), self.user.id)

    def test_store_drop_after_commit_still_returns_token(self) -> None:
        user_id = self.user.id
        with self.reads_fail_after_commit():
            result = self.service.login("a@x.com", "secret123", CONTEXT)
        self.assertTrue(result.success)
        self.assertEqual(result.data["user"]["id"], user_id)
        self.assertEqual(result.data["user"]["last_login_ip"], "10.0.0.7")
        self.assertEqual(self.service.tokens.validate(result.data["token"]), user_id)


class TestLogout(SessionServiceTestCase):
    def test_revokes_every_token(self) -> None:
        tokens = [self.login_token(), self.login_token()]
        result = self.service.logout(self.user, CONTEXT)
        self.assertTrue(result.success)
        self.assertEqual(result.message, "Logout successful")
        self.assertEqual(result.data, {"revoked": 2})
        for token in tokens:
            self.assertIsNone(self.service.tokens.validate(token))

    def test_is_idempotent(self) -> None:
        self.assertTrue(self.service.logout(self.user, CONTEXT).success)
        second = self.service.logout(self.user, CONTEXT)
        self.assertTrue(second.success)
        self.assertEqual(second.data, {"revoked": 0})

    def test_records_logout_audit_entry(self) -> None:
        self.service.logout(self.user, CONTEXT)
        entry = self.audit_rows()[-1]
        self.assertEqual(entry.event, "logout")
        self.assertEqual(entry.user_id, self.user.id)
        self.assertIsNotNone(entry.logout_at)
        self.assertIsNone(entry.login_at)

    def test_store_failure_is_internal(self) -> None:
        with patch.object(
            self.service.tokens, "revoke_all", side_effect=StoreError("gone", operation="revoke_all")
        ):
            with self.assertLogs("app.services.session", level="ERROR"):
                result = self.service.logout(self.user, CONTEXT)
        self.assertEqual(result.kind, ErrorKind.INTERNAL)
        self.assertEqual(result.errors, {"server": "gone"})

    def test_store_drop_after_commit_still_reports_success(self) -> None:
        token = self.login_token()
        self.db.refresh(self.user)
        with self.reads_fail_after_commit():
            result = self.service.logout(self.user, CONTEXT)
        self.assertTrue(result.success)
        self.assertEqual(result.data, {"revoked": 1})
        self.assertIsNone(self.service.tokens.validate(token))
        self.assertEqual(self.audit_rows()[-1].event, "logout")


class TestRefreshToken(SessionServiceTestCase):
    def test_old_tokens_invalid_and_exactly_one_new_valid(self) -> None:
        old = [self.login_token(), self.login_token()]
        result = self.service.refresh_token(self.user)
        self.assertTrue(result.success)
        self.assertEqual(result.message, "Token refreshed")
        self.assertEqual(result.data["token_type"], "Bearer")
        for token in old:
            self.assertIsNone(self.service.tokens.validate(token))
        self.assertEqual(self.service.tokens.validate(result.data["token"]), self.user.id)
        self.assertEqual(self.service.tokens.count_active(self.user.id), 1)

    def test_store_failure_on_issue_rolls_back_revocation(self) -> None:
        token = self.login_token()
        with patch.object(
            self.service.tokens, "issue", side_effect=StoreError("insert failed", operation="issue")
        ):
            with self.assertLogs("app.services.session", level="ERROR"):
                result = self.service.refresh_token(self.user)
        self.assertEqual(result.kind, ErrorKind.INTERNAL)
        self.assertEqual(result.message, "Token refresh failed")
        self.assertEqual(self.service.tokens.validate(token), self.user.id)


class TestConcurrentRefresh(SessionServiceTestCase):
    """Two refreshes of one account on separate sessions, released together."""

    def test_only_one_token_survives(self) -> None:
        old = self.login_token()
        self.db.refresh(self.user)
        factory = make_session_factory(self.engine)
        locks = AccountLocks()
        settings = make_settings()
        barrier = threading.Barrier(2)
        results: list = []
        errors: list[BaseException] = []

        def refresh() -> None:
            db = factory()
            try:
                service = build_session_service(db, settings, locks=locks)
                barrier.wait(timeout=5)
                results.append(service.refresh_token(self.user))
            except BaseException as e:
                errors.append(e)
            finally:
                db.close()

        threads = [threading.Thread(target=refresh) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        self.assertEqual(errors, [])
        self.assertEqual(len(results), 2)
        self.assertTrue(all(r.success for r in results))
        self.assertEqual(self.service.tokens.count_active(self.user.id), 1)
        self.assertIsNone(self.service.tokens.validate(old))
        valid = [r.data["token"] for r in results if self.service.tokens.validate(r.data["token"])]
        self.assertEqual(len(valid), 1)


class TestRefreshOrdering(unittest.TestCase):
    """Revoke precedes issue and both happen while the account lock is held."""

    def test_revoke_then_issue_inside_lock(self) -> None:
        from app.services.session import SessionService

        calls: list[str] = []

        class RecordingLocks:
            @contextmanager
            def hold(self, account_id):
                calls.append(f"acquire:{account_id}")
                yield
                calls.append(f"release:{account_id}")

        db = MagicMock()
        db.commit.side_effect = lambda: calls.append("commit")
        credentials = MagicMock()
        credentials.lock_for_update.side_effect = lambda uid: calls.append("row_lock")
        tokens = MagicMock()
        tokens.revoke_all.side_effect = lambda uid: calls.append("revoke_all") or 1
        tokens.issue.side_effect = lambda uid: calls.append("issue") or MagicMock(
            token_id=9, plain_text="fresh"
        )
        service = SessionService(
            db=db,
            credentials=credentials,
            tokens=tokens,
            audit=MagicMock(),
            hasher=MagicMock(),
            locks=RecordingLocks(),
            settings=make_settings(),
        )
        user = MagicMock(id=42)

        result = service.refresh_token(user)

        self.assertTrue(result.success)
        self.assertEqual(
            calls,
            ["acquire:42", "row_lock", "revoke_all", "issue", "commit", "release:42"],
        )


class TestChangePassword(SessionServiceTestCase):
    def test_wrong_current_password_leaves_hash_untouched(self) -> None:
        before = self.user.password_hash
        result = self.service.change_password(self.user, "not-current", "newpass1")
        self.assertFalse(result.success)
        self.assertEqual(result.kind, ErrorKind.INVALID_CREDENTIALS)
        self.assertEqual(result.message, "Current password is incorrect")
        self.db.refresh(self.user)
        self.assertEqual(self.user.password_hash, before)
        self.assertTrue(self.service.login("a@x.com", "secret123", CONTEXT).success)

    def test_success_swaps_passwords(self) -> None:
        result = self.service.change_password(self.user, "secret123", "newpass1")
        self.assertTrue(result.success)
        self.assertEqual(result.message, "Password changed successfully")
        old = self.service.login("a@x.com", "secret123", CONTEXT)
        self.assertEqual(old.kind, ErrorKind.INVALID_CREDENTIALS)
        self.assertTrue(self.service.login("a@x.com", "newpass1", CONTEXT).success)

    def test_existing_tokens_survive_by_default(self) -> None:
        token = self.login_token()
        self.service.change_password(self.user, "secret123", "newpass1")
        self.assertEqual(self.service.tokens.validate(token), self.user.id)

    def test_existing_tokens_revoked_when_policy_enabled(self) -> None:
        service = make_service(self.db, make_settings(REVOKE_SESSIONS_ON_PASSWORD_CHANGE=True))
        token = self.login_token()
        result = service.change_password(self.user, "secret123", "newpass1")
        self.assertTrue(result.success)
        self.assertIsNone(service.tokens.validate(token))

    def test_stored_value_is_a_hash(self) -> None:
        self.service.change_password(self.user, "secret123", "newpass1")
        stored = self.db.get(User, self.user.id).password_hash
        self.assertNotEqual(stored, "newpass1")
        self.assertTrue(verify_password("newpass1", stored))


class TestResetPassword(SessionServiceTestCase):
    def test_unknown_email_is_not_found_and_leaves_no_trace(self) -> None:
        result = self.service.reset_password("nobody@x.com")
        self.assertFalse(result.success)
        self.assertEqual(result.kind, ErrorKind.NOT_FOUND)
        self.assertEqual(result.message, "User not found")
        self.assertEqual(self.token_rows(), [])
        self.assertEqual(
            [e for e in self.audit_rows() if e.user_id is not None],
            [],
        )

    def test_temporary_password_replaces_old_one(self) -> None:
        result = self.service.reset_password("a@x.com")
        self.assertTrue(result.success)
        self.assertEqual(result.message, "Password reset successful")
        temporary = result.data["temporary_password"]
        self.assertEqual(len(temporary), 12)
        self.assertTrue(temporary.isalnum())
        self.assertFalse(self.service.login("a@x.com", "secret123", CONTEXT).success)
        self.assertTrue(self.service.login("a@x.com", temporary, CONTEXT).success)

    def test_length_follows_settings(self) -> None:
        service = make_service(self.db, make_settings(TEMP_PASSWORD_LENGTH=20))
        result = service.reset_password("a@x.com")
        self.assertEqual(len(result.data["temporary_password"]), 20)


class TestScenarios(SessionServiceTestCase):
    """End-to-end sequences over a single account."""

    def test_login_refresh_logout(self) -> None:
        t1 = self.login_token()

        wrong = self.service.login("a@x.com", "wrong", CONTEXT)
        self.assertEqual(wrong.kind, ErrorKind.INVALID_CREDENTIALS)
        self.assertEqual(len(self.token_rows()), 1)

        refreshed = self.service.refresh_token(self.user)
        t2 = refreshed.data["token"]
        self.assertIsNone(self.service.tokens.validate(t1))
        self.assertEqual(self.service.tokens.validate(t2), self.user.id)

        self.assertTrue(self.service.logout(self.user, CONTEXT).success)
        self.assertIsNone(self.service.tokens.validate(t2))

    def test_change_password_then_login(self) -> None:
        self.assertTrue(self.service.change_password(self.user, "secret123", "newpass1").success)
        self.assertEqual(
            self.service.login("a@x.com", "secret123", CONTEXT).kind,
            ErrorKind.INVALID_CREDENTIALS,
        )
        self.assertTrue(self.service.login("a@x.com", "newpass1", CONTEXT).success)


if __name__ == "__main__":
    unittest.main()
