"""
Unit tests for the account provisioning orchestrator.

Covers the compensating deletes after partial failures and the routing
decision made after a social login.
"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from core.exceptions import ClinicCreateFailed, IdentityCreateFailed, ProfileCreateFailed
from models import Clinic, Identity, Membership, Profile
from services.identity_service import IdentityService
from services.membership_service import MembershipService
from services.provisioning_service import ProvisioningService


class TestProvisionSignupAccount:
    """Test provision_signup_account and its compensation rules."""

    def test_success_creates_all_rows(self, db_session):
        account = ProvisioningService.provision_signup_account(
            db_session, "new@clinic.com", "password123", "Clínica Nueva"
        )

        assert account.membership_created is True
        identity = db_session.query(Identity).one()
        assert identity.id == account.user_id
        assert identity.user_metadata == {"roles": ["admin"]}
        assert IdentityService.authenticate(db_session, "new@clinic.com", "password123") is not None
        clinic = db_session.query(Clinic).one()
        assert clinic.get_schedule().monday[0].start == "09:00"
        assert clinic.get_schedule().sunday == []
        profile = db_session.query(Profile).one()
        assert profile.clinic_id == clinic.id
        assert profile.first_name == ""
        assert db_session.query(Membership).filter_by(clinic_id=clinic.id, user_id=identity.id).count() == 1

    def test_identity_failure(self, db_session, make_identity):
        make_identity(email="taken@clinic.com")

        with pytest.raises(IdentityCreateFailed):
            ProvisioningService.provision_signup_account(db_session, "taken@clinic.com", "password123", "Clínica")

        assert db_session.query(Clinic).count() == 0

    def test_clinic_failure_removes_identity(self, db_session):
        with patch.object(ProvisioningService, "create_clinic", side_effect=SQLAlchemyError("insert failed")):
            with pytest.raises(ClinicCreateFailed):
                ProvisioningService.provision_signup_account(db_session, "new@clinic.com", "password123", "Clínica")

        assert db_session.query(Identity).count() == 0
        assert db_session.query(Profile).count() == 0

    def test_profile_failure_removes_identity_and_clinic(self, db_session):
        with patch.object(ProvisioningService, "create_profile", side_effect=SQLAlchemyError("insert failed")):
            with pytest.raises(ProfileCreateFailed):
                ProvisioningService.provision_signup_account(db_session, "new@clinic.com", "password123", "Clínica")

        assert db_session.query(Identity).count() == 0
        assert db_session.query(Clinic).count() == 0
        assert db_session.query(Membership).count() == 0

    def test_compensation_failure_keeps_original_error(self, db_session):
        with patch.object(ProvisioningService, "create_profile", side_effect=SQLAlchemyError("insert failed")), \
             patch.object(IdentityService, "delete_user", side_effect=SQLAlchemyError("delete failed")):
            with pytest.raises(ProfileCreateFailed):
                ProvisioningService.provision_signup_account(db_session, "new@clinic.com", "password123", "Clínica")

        # The clinic delete still ran even though the identity delete failed
        assert db_session.query(Clinic).count() == 0
        assert db_session.query(Identity).count() == 1

    def test_membership_failure_is_not_rolled_back(self, db_session):
        with patch.object(MembershipService, "upsert_membership", side_effect=SQLAlchemyError("insert failed")):
            account = ProvisioningService.provision_signup_account(
                db_session, "new@clinic.com", "password123", "Clínica"
            )

        assert account.membership_created is False
        assert db_session.query(Identity).count() == 1
        assert db_session.query(Clinic).count() == 1
        assert db_session.query(Profile).count() == 1
        assert db_session.query(Membership).count() == 0


class TestInitAfterSocialLogin:
    """Test the post-social-login routing decision."""

    def test_fast_path_dashboard_without_writes(self, db_session, make_clinic_admin):
        identity, _ = make_clinic_admin()

        with patch.object(ProvisioningService, "create_clinic") as mock_create_clinic, \
             patch.object(ProvisioningService, "upsert_profile") as mock_upsert_profile, \
             patch.object(MembershipService, "upsert_membership") as mock_upsert_membership:
            redirect = ProvisioningService.init_after_social_login(db_session, identity)

        assert redirect == "/dashboard"
        mock_create_clinic.assert_not_called()
        mock_upsert_profile.assert_not_called()
        mock_upsert_membership.assert_not_called()

    def test_fast_path_onboarding_when_setup_pending(self, db_session, make_identity, make_clinic):
        identity = make_identity(email="doc@clinic.com")
        clinic = make_clinic(name="Pendiente", first_setup_required=True)
        db_session.add(Profile(id=identity.id, clinic_id=clinic.id, email=identity.email, roles=["admin"]))
        db_session.commit()

        assert ProvisioningService.init_after_social_login(db_session, identity) == "/onboarding"
        assert db_session.query(Clinic).count() == 1

    def test_new_user_gets_clinic_named_after_them(self, db_session, make_identity):
        identity = make_identity(email="ana@gmail.com", full_name="Ana María Pérez")

        redirect = ProvisioningService.init_after_social_login(db_session, identity)

        assert redirect == "/onboarding"
        clinic = db_session.query(Clinic).one()
        assert clinic.name == "Ana María Pérez"
        assert clinic.first_setup_required is True
        profile = db_session.query(Profile).filter(Profile.id == identity.id).one()
        assert profile.clinic_id == clinic.id
        assert (profile.first_name, profile.last_name) == ("Ana", "María Pérez")
        assert profile.roles == ["admin"]
        assert db_session.query(Membership).filter_by(clinic_id=clinic.id, user_id=identity.id).count() == 1

    def test_clinic_named_from_email_without_full_name(self, db_session, make_identity):
        identity = make_identity(email="dr.house@gmail.com")
        ProvisioningService.init_after_social_login(db_session, identity)
        assert db_session.query(Clinic).one().name == "dr.house"

    def test_long_name_truncated(self, db_session, make_identity):
        identity = make_identity(email="long@gmail.com", full_name="A" * 200)
        ProvisioningService.init_after_social_login(db_session, identity)
        assert len(db_session.query(Clinic).one().name) == 120

    def test_repeat_call_takes_fast_path(self, db_session, make_identity):
        identity = make_identity(email="ana@gmail.com", full_name="Ana Pérez")
        ProvisioningService.init_after_social_login(db_session, identity)
        ProvisioningService.init_after_social_login(db_session, identity)
        assert db_session.query(Clinic).count() == 1

    def test_existing_profile_without_clinic_is_repointed(self, db_session, make_identity):
        identity = make_identity(email="staff@gmail.com", full_name="Luis Gómez")
        db_session.add(Profile(id=identity.id, clinic_id=None, email=identity.email, roles=["doctor"]))
        db_session.commit()

        ProvisioningService.init_after_social_login(db_session, identity)

        db_session.expire_all()
        profile = db_session.query(Profile).filter(Profile.id == identity.id).one()
        assert profile.clinic_id == db_session.query(Clinic).one().id
        assert profile.roles == ["admin"]

    def test_clinic_failure(self, db_session, make_identity):
        identity = make_identity(email="ana@gmail.com")
        with patch.object(ProvisioningService, "create_clinic", side_effect=SQLAlchemyError("insert failed")):
            with pytest.raises(ClinicCreateFailed):
                ProvisioningService.init_after_social_login(db_session, identity)

    def test_profile_failure_is_not_fatal(self, db_session, make_identity):
        identity = make_identity(email="ana@gmail.com")
        with patch.object(ProvisioningService, "upsert_profile", side_effect=SQLAlchemyError("insert failed")):
            assert ProvisioningService.init_after_social_login(db_session, identity) == "/onboarding"
        assert db_session.query(Profile).count() == 0
