"""
Account provisioning orchestrator.

Stands up the durable account state for a verified signup (Identity, Clinic,
Profile, Membership) and resolves the post-social-login routing decision.

Steps are separate single-row commits; partial failures are undone with
explicit compensating deletes:

- Clinic insert fails: delete the Identity.
- Profile insert fails: delete the Identity and the Clinic.
- Membership upsert fails: logged only; nothing is rolled back.

Compensation failures are logged and never change the reported error.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.constants import (
    CLINIC_ADMIN_ROLE, DASHBOARD_PATH, DEFAULT_SUBSCRIPTION_STATUS, FALLBACK_CLINIC_NAME,
    MAX_CLINIC_NAME_LENGTH, ONBOARDING_PATH, SELF_SIGNUP_SUBSCRIPTION_STATUS,
)
from core.exceptions import AuthFlowError, ClinicCreateFailed, IdentityCreateFailed, ProfileCreateFailed
from models import Clinic, Identity, Profile
from models.clinic import default_schedule
from services.identity_service import IdentityService
from services.membership_service import MembershipService
from utils.email_utils import email_local_part, split_full_name
from utils.side_effects import run_non_fatal

logger = logging.getLogger(__name__)


@dataclass
class ProvisionedAccount:
    """Identifiers of the rows created for a new account."""
    user_id: str
    clinic_id: int
    membership_created: bool


class ProvisioningService:
    """Service for creating clinic accounts."""

    @staticmethod
    def clinic_name_taken(db: Session, name: str) -> bool:
        """Case-insensitive clinic name check."""
        normalized = (name or "").strip().lower()
        return db.query(Clinic.id).filter(func.lower(Clinic.name) == normalized).first() is not None

    @staticmethod
    def create_clinic(
        db: Session,
        name: str,
        subscription_status: str = DEFAULT_SUBSCRIPTION_STATUS,
    ) -> Clinic:
        """Insert a clinic with first-setup pending and the default schedule."""
        clinic = Clinic(
            name=name,
            subscription_status=subscription_status,
            first_setup_required=True,
            schedule=default_schedule(),
        )
        try:
            db.add(clinic)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        logger.info(f"Created clinic {clinic.id}")
        return clinic

    @staticmethod
    def delete_clinic(db: Session, clinic_id: int) -> None:
        try:
            db.query(Clinic).filter(Clinic.id == clinic_id).delete()
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        logger.info(f"Deleted clinic {clinic_id}")

    @staticmethod
    def create_profile(
        db: Session,
        user_id: str,
        clinic_id: Optional[int],
        email: Optional[str],
        roles: list[str],
        first_name: str = "",
        last_name: str = "",
    ) -> Profile:
        profile = Profile(
            id=user_id,
            clinic_id=clinic_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            roles=roles,
            must_change_password=False,
        )
        try:
            db.add(profile)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        return profile

    @staticmethod
    def upsert_profile(
        db: Session,
        user_id: str,
        clinic_id: int,
        email: Optional[str],
        roles: list[str],
        first_name: str = "",
        last_name: str = "",
    ) -> Profile:
        """Create the profile or repoint an existing one at ``clinic_id``."""
        profile = db.query(Profile).filter(Profile.id == user_id).first()
        if profile is None:
            return ProvisioningService.create_profile(
                db, user_id, clinic_id, email, roles, first_name, last_name
            )
        try:
            profile.clinic_id = clinic_id
            profile.first_name = first_name
            profile.last_name = last_name
            profile.roles = roles
            if email and not profile.email:
                profile.email = email
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        return profile

    @staticmethod
    def provision_signup_account(db: Session, email: str, password: str, clinic_name: str) -> ProvisionedAccount:
        """
        Create Identity, Clinic, Profile and Membership for a verified signup.

        Raises:
            IdentityCreateFailed: The identity could not be created
            ClinicCreateFailed: The clinic insert failed (identity removed)
            ProfileCreateFailed: The profile insert failed (identity and clinic removed)
        """
        roles = [CLINIC_ADMIN_ROLE]

        try:
            identity = IdentityService.create_user(
                db, email, password, user_metadata={"roles": roles}, email_confirm=True
            )
        except AuthFlowError as e:
            logger.error(f"Identity creation failed during provisioning: {e.detail}")
            raise IdentityCreateFailed()
        user_id = identity.id

        try:
            clinic = ProvisioningService.create_clinic(db, clinic_name, SELF_SIGNUP_SUBSCRIPTION_STATUS)
        except SQLAlchemyError as e:
            logger.exception(f"Clinic creation failed for identity {user_id}: {e}")
            run_non_fatal("delete identity after clinic failure", IdentityService.delete_user, db, user_id)
            raise ClinicCreateFailed()

        try:
            ProvisioningService.create_profile(db, user_id, clinic.id, identity.email, roles)
        except SQLAlchemyError as e:
            logger.exception(f"Profile creation failed for identity {user_id}: {e}")
            run_non_fatal("delete identity after profile failure", IdentityService.delete_user, db, user_id)
            run_non_fatal("delete clinic after profile failure", ProvisioningService.delete_clinic, db, clinic.id)
            raise ProfileCreateFailed()

        membership_created = run_non_fatal(
            "create admin membership",
            MembershipService.upsert_membership, db, clinic.id, user_id, CLINIC_ADMIN_ROLE,
        )

        logger.info(f"Provisioned account user={user_id} clinic={clinic.id}")
        return ProvisionedAccount(user_id=user_id, clinic_id=clinic.id, membership_created=membership_created)

    @staticmethod
    def init_after_social_login(db: Session, identity: Identity) -> str:
        """
        Ensure a social-login user has a clinic and return where to send them.

        An existing profile with a clinic short-circuits without any writes.

        Raises:
            ClinicCreateFailed: The clinic insert failed
        """
        profile = db.query(Profile).filter(Profile.id == identity.id).first()
        if profile is not None and profile.clinic_id is not None:
            clinic = db.query(Clinic).filter(Clinic.id == profile.clinic_id).first()
            if clinic is not None and clinic.first_setup_required:
                return ONBOARDING_PATH
            return DASHBOARD_PATH

        full_name = identity.full_name or (identity.user_metadata or {}).get("full_name") or ""
        clinic_name = (full_name or email_local_part(identity.email) or FALLBACK_CLINIC_NAME)[:MAX_CLINIC_NAME_LENGTH]

        try:
            clinic = ProvisioningService.create_clinic(db, clinic_name)
        except SQLAlchemyError as e:
            logger.exception(f"Clinic creation failed during init for identity {identity.id}: {e}")
            raise ClinicCreateFailed()

        first_name, last_name = split_full_name(full_name)
        roles = [CLINIC_ADMIN_ROLE]
        run_non_fatal(
            "upsert profile after social login",
            ProvisioningService.upsert_profile,
            db, identity.id, clinic.id, identity.email, roles, first_name, last_name,
        )
        run_non_fatal(
            "upsert membership after social login",
            MembershipService.upsert_membership, db, clinic.id, identity.id, CLINIC_ADMIN_ROLE,
        )
        return ONBOARDING_PATH
