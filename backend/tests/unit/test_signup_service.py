"""
Unit tests for the signup verification state machine.

Time is simulated by moving the stored timestamps of the pending row.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from core.exceptions import (
    CodeExpired, Conflict, EmailDeliveryFailed, InvalidCode, NotFound, RateLimited, TooManyAttempts,
    ValidationError,
)
from models import Clinic, Identity, Membership, PendingSignup, Profile
from services import ephemeral_cipher
from services.pending_signup_store import insert_pending_signup
from services.signup_service import SignupService, check_code, generate_code, hash_code
from utils.datetime_utils import utc_now


def _pending(db_session, email: str):
    db_session.expire_all()
    return db_session.query(PendingSignup).filter(PendingSignup.email == email).first()


def _wrong_code(code: str) -> str:
    return "100000" if code != "100000" else "100001"


class TestCodeHelpers:
    def test_generate_code_range(self):
        for _ in range(200):
            code = generate_code()
            assert len(code) == 6
            assert 100000 <= int(code) <= 999999

    def test_hash_and_check(self):
        code_hash = hash_code("123456")
        assert code_hash != "123456"
        assert check_code("123456", code_hash) is True
        assert check_code("654321", code_hash) is False

    def test_check_against_missing_hash(self):
        assert check_code("123456", None) is False


class TestInitiate:
    """Test starting a signup."""

    def test_initiate_stores_pending_row(self, db_session, captured_codes):
        email = SignupService.initiate(db_session, " New@Clinic.com ", "password123", "Clínica Nueva")

        assert email == "new@clinic.com"
        row = _pending(db_session, email)
        assert row is not None
        assert row.clinic_name == "Clínica Nueva"
        assert row.attempts == 0
        assert ephemeral_cipher.decrypt(row.encrypted_password) == "password123"
        assert row.code_hash != captured_codes[email][0]
        assert check_code(captured_codes[email][0], row.code_hash)

    def test_initiate_twice_keeps_one_row(self, db_session, captured_codes):
        SignupService.initiate(db_session, "new@clinic.com", "password123", "Clínica Nueva")
        SignupService.initiate(db_session, "new@clinic.com", "password456", "Clínica Nueva")

        rows = db_session.query(PendingSignup).filter(PendingSignup.email == "new@clinic.com").all()
        assert len(rows) == 1
        first_code, second_code = captured_codes["new@clinic.com"]
        assert check_code(second_code, rows[0].code_hash)
        if first_code != second_code:
            assert not check_code(first_code, rows[0].code_hash)

    def test_initiate_keeps_lead_data(self, db_session, captured_codes):
        insert_pending_signup(db_session, "lead@clinic.com", {"source": "landing"})

        SignupService.initiate(db_session, "lead@clinic.com", "password123", "Clínica Lead")

        row = _pending(db_session, "lead@clinic.com")
        assert row.is_started
        assert row.extra_data == {"source": "landing"}

    @pytest.mark.parametrize("email,password,clinic_name", [
        ("", "password123", "Clínica"),
        ("new@clinic.com", "", "Clínica"),
        ("new@clinic.com", "password123", "  "),
        ("not-an-email", "password123", "Clínica"),
        ("new@clinic.com", "short", "Clínica"),
    ])
    def test_initiate_validation(self, db_session, email, password, clinic_name):
        with pytest.raises(ValidationError):
            SignupService.initiate(db_session, email, password, clinic_name)
        assert db_session.query(PendingSignup).count() == 0

    def test_initiate_existing_identity_conflict(self, db_session, make_identity):
        make_identity(email="taken@clinic.com")
        with pytest.raises(Conflict):
            SignupService.initiate(db_session, "TAKEN@clinic.com", "password123", "Clínica Nueva")

    def test_initiate_clinic_name_conflict(self, db_session, make_clinic):
        make_clinic(name="Clínica Sonrisa")
        with pytest.raises(Conflict):
            SignupService.initiate(db_session, "new@clinic.com", "password123", "clínica sonrisa")

    def test_initiate_email_failure_is_fatal(self, db_session):
        with patch("services.email_service.send_signup_code", side_effect=EmailDeliveryFailed()):
            with pytest.raises(EmailDeliveryFailed):
                SignupService.initiate(db_session, "new@clinic.com", "password123", "Clínica Nueva")


class TestResendCode:
    """Test code re-issue and its rate limit."""

    def test_resend_rate_limited(self, db_session, captured_codes):
        SignupService.initiate(db_session, "new@clinic.com", "password123", "Clínica Nueva")
        with pytest.raises(RateLimited):
            SignupService.resend_code(db_session, "new@clinic.com")

    def test_resend_after_interval_invalidates_old_code(self, db_session, captured_codes):
        email = SignupService.initiate(db_session, "new@clinic.com", "password123", "Clínica Nueva")
        row = _pending(db_session, email)
        row.last_code_sent_at = utc_now() - timedelta(seconds=61)
        row.attempts = 3
        db_session.commit()

        SignupService.resend_code(db_session, email)

        row = _pending(db_session, email)
        old_code, new_code = captured_codes[email]
        assert row.attempts == 3
        assert check_code(new_code, row.code_hash)
        if old_code != new_code:
            assert not check_code(old_code, row.code_hash)

    def test_resend_keeps_failed_attempts(self, db_session, captured_codes):
        """Failed attempts carry over a resend, so the ceiling still locks the signup."""
        email = SignupService.initiate(db_session, "new@clinic.com", "password123", "Clínica Nueva")
        first_code = captured_codes[email][-1]
        for _ in range(4):
            with pytest.raises(InvalidCode):
                SignupService.verify_code(db_session, email, _wrong_code(first_code))

        row = _pending(db_session, email)
        row.last_code_sent_at = utc_now() - timedelta(seconds=61)
        db_session.commit()
        SignupService.resend_code(db_session, email)
        assert _pending(db_session, email).attempts == 4

        new_code = captured_codes[email][-1]
        with pytest.raises(TooManyAttempts):
            SignupService.verify_code(db_session, email, _wrong_code(new_code))
        assert _pending(db_session, email) is None

    def test_resend_email_failure_is_not_fatal(self, db_session, captured_codes):
        email = SignupService.initiate(db_session, "new@clinic.com", "password123", "Clínica Nueva")
        row = _pending(db_session, email)
        row.last_code_sent_at = utc_now() - timedelta(seconds=61)
        db_session.commit()

        with patch("services.email_service.send_signup_code", side_effect=EmailDeliveryFailed()):
            SignupService.resend_code(db_session, email)

    def test_resend_unknown_email(self, db_session):
        with pytest.raises(NotFound):
            SignupService.resend_code(db_session, "nobody@clinic.com")

    def test_resend_lead_row_not_found(self, db_session):
        insert_pending_signup(db_session, "lead@clinic.com", {})
        with pytest.raises(NotFound):
            SignupService.resend_code(db_session, "lead@clinic.com")


class TestVerifyCode:
    """Test code verification outcomes."""

    @pytest.fixture
    def pending(self, db_session, captured_codes):
        email = SignupService.initiate(db_session, "new@clinic.com", "password123", "Clínica Nueva")
        return email, captured_codes[email][-1]

    def test_verify_success_provisions_account(self, db_session, pending):
        email, code = pending

        account = SignupService.verify_code(db_session, "NEW@clinic.com", code)

        identity = db_session.query(Identity).filter(Identity.email == email).one()
        assert identity.id == account.user_id
        assert identity.email_confirmed_at is not None
        clinic = db_session.query(Clinic).filter(Clinic.id == account.clinic_id).one()
        assert clinic.name == "Clínica Nueva"
        assert clinic.subscription_status == "pending_payment"
        assert clinic.first_setup_required is True
        profile = db_session.query(Profile).filter(Profile.id == identity.id).one()
        assert profile.roles == ["admin"]
        assert profile.must_change_password is False
        membership = db_session.query(Membership).filter(Membership.user_id == identity.id).one()
        assert membership.role == "admin"
        assert membership.is_active is True
        assert _pending(db_session, email) is None

    def test_wrong_code_increments_attempts(self, db_session, pending):
        email, code = pending
        with pytest.raises(InvalidCode):
            SignupService.verify_code(db_session, email, _wrong_code(code))
        assert _pending(db_session, email).attempts == 1

    def test_lock_after_five_failures(self, db_session, pending):
        email, code = pending
        for _ in range(4):
            with pytest.raises(InvalidCode):
                SignupService.verify_code(db_session, email, _wrong_code(code))

        with pytest.raises(TooManyAttempts):
            SignupService.verify_code(db_session, email, _wrong_code(code))

        assert _pending(db_session, email) is None
        # Once locked the correct code no longer works
        with pytest.raises(NotFound):
            SignupService.verify_code(db_session, email, code)
        assert db_session.query(Identity).count() == 0

    def test_expired_code(self, db_session, pending):
        email, code = pending
        row = _pending(db_session, email)
        row.expires_at = utc_now() - timedelta(seconds=1)
        db_session.commit()

        with pytest.raises(CodeExpired):
            SignupService.verify_code(db_session, email, code)

        assert _pending(db_session, email) is None
        assert db_session.query(Identity).count() == 0

    def test_missing_fields(self, db_session):
        with pytest.raises(ValidationError):
            SignupService.verify_code(db_session, "new@clinic.com", "")

    def test_unknown_email(self, db_session):
        with pytest.raises(NotFound):
            SignupService.verify_code(db_session, "nobody@clinic.com", "123456")

    def test_lead_row_not_found(self, db_session):
        insert_pending_signup(db_session, "lead@clinic.com", {"source": "landing"})
        with pytest.raises(NotFound):
            SignupService.verify_code(db_session, "lead@clinic.com", "123456")
