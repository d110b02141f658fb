"""
Invite workflow for clinic admins and clinic staff.

Invites are addressed by a UUID4 token, expire after seven days and are kept
after acceptance. Invite emails are a soft dependency: a failed send is
reported back to the inviter together with the link so it can be relayed
by hand.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.constants import (
    CLINIC_ADMIN_ROLE, DEFAULT_INVITE_ROLE, INVITE_TTL_DAYS, MIN_CLINIC_NAME_LENGTH, PASSWORD_MIN_LENGTH,
)
from core.exceptions import (
    AuthFlowError, Conflict, DependencyFailure, IdentityCreateFailed, NotFound, ProfileCreateFailed,
    ValidationError,
)
from models import Clinic, Invite
from services import email_service
from services.identity_service import IdentityService
from services.membership_service import MembershipService
from services.provisioning_service import ProvisioningService
from utils.datetime_utils import is_past, utc_now
from utils.email_utils import email_local_part, is_valid_email, normalize_email
from utils.side_effects import run_non_fatal

logger = logging.getLogger(__name__)


@dataclass
class InviteDispatch:
    """Outcome of creating an invite."""
    token: str
    invite_link: str
    email_sent: bool
    send_error: Optional[str] = None
    clinic_id: Optional[int] = None


def build_invite_link(token: str) -> str:
    return f"{email_service.app_url()}/first-login?invite={token}"


def names_from_email(email: str) -> tuple[str, str]:
    """Guess (first, last) from an email local part such as ``ana.perez``."""
    parts = [p for p in re.split(r"[._]", email_local_part(email)) if p]
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


class InviteService:
    """Service for invite lifecycle operations."""

    @staticmethod
    def _insert_invite(
        db: Session,
        email: str,
        clinic_id: Optional[int],
        inviter_id: Optional[str],
        role: str,
    ) -> Invite:
        invite = Invite(
            token=str(uuid.uuid4()),
            email=email,
            clinic_id=clinic_id,
            inviter_id=inviter_id,
            role=role,
            expires_at=utc_now() + timedelta(days=INVITE_TTL_DAYS),
            accepted=False,
        )
        try:
            db.add(invite)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        return invite

    @staticmethod
    def _dispatch(invite: Invite, clinic_name: Optional[str] = None) -> InviteDispatch:
        link = build_invite_link(invite.token)
        try:
            email_service.send_invite(invite.email, link, clinic_name)
            email_sent, send_error = True, None
        except AuthFlowError as e:
            logger.warning(f"Invite email to {invite.email} not sent: {e.detail}")
            email_sent, send_error = False, e.detail
        return InviteDispatch(
            token=invite.token,
            invite_link=link,
            email_sent=email_sent,
            send_error=send_error,
            clinic_id=invite.clinic_id,
        )

    @staticmethod
    def create_member_invite(
        db: Session,
        email: str,
        clinic_id: Optional[int] = None,
        inviter_id: Optional[str] = None,
        role: Optional[str] = None,
    ) -> InviteDispatch:
        """
        Create an invite and email its activation link.

        Raises:
            ValidationError: Missing or malformed email
            DependencyFailure: The invite could not be stored
        """
        email = normalize_email(email)
        if not email:
            raise ValidationError("Email requerido")
        if not is_valid_email(email):
            raise ValidationError("Email inválido")

        try:
            invite = InviteService._insert_invite(db, email, clinic_id, inviter_id, role or DEFAULT_INVITE_ROLE)
        except SQLAlchemyError as e:
            logger.exception(f"Failed to create invite: {e}")
            raise DependencyFailure("No se pudo crear la invitación")

        clinic_name = None
        if clinic_id is not None:
            clinic = db.query(Clinic).filter(Clinic.id == clinic_id).first()
            clinic_name = clinic.name if clinic else None

        logger.info(f"Created invite for {email} (clinic={clinic_id}, role={invite.role})")
        return InviteService._dispatch(invite, clinic_name)

    @staticmethod
    def create_clinic_invite(
        db: Session,
        clinic_name: str,
        admin_email: str,
        inviter_id: Optional[str] = None,
    ) -> InviteDispatch:
        """
        Create a placeholder clinic and invite its first admin.

        The clinic is deleted again if the invite cannot be stored.

        Raises:
            ValidationError: Clinic name too short or malformed email
            Conflict: Clinic name already in use
            ClinicCreateFailed / DependencyFailure: Store failures
        """
        clinic_name = (clinic_name or "").strip()
        admin_email = normalize_email(admin_email)
        if len(clinic_name) < MIN_CLINIC_NAME_LENGTH:
            raise ValidationError(f"El nombre de la clínica debe tener al menos {MIN_CLINIC_NAME_LENGTH} caracteres")
        if not is_valid_email(admin_email):
            raise ValidationError("Email inválido")
        if ProvisioningService.clinic_name_taken(db, clinic_name):
            raise Conflict("El nombre de la clínica ya está en uso")

        try:
            clinic = ProvisioningService.create_clinic(db, clinic_name)
        except SQLAlchemyError as e:
            logger.exception(f"Failed to create clinic for invite: {e}")
            raise DependencyFailure("No se pudo crear la clínica")

        try:
            invite = InviteService._insert_invite(db, admin_email, clinic.id, inviter_id, CLINIC_ADMIN_ROLE)
        except SQLAlchemyError as e:
            logger.exception(f"Failed to create clinic invite, removing clinic {clinic.id}: {e}")
            run_non_fatal("delete clinic after invite failure", ProvisioningService.delete_clinic, db, clinic.id)
            raise DependencyFailure("No se pudo crear la invitación")

        logger.info(f"Created clinic {clinic.id} and admin invite for {admin_email}")
        return InviteService._dispatch(invite, clinic.name)

    @staticmethod
    def get_invite_by_token(db: Session, token: str) -> Invite:
        """
        Look up an invite. Expiry and acceptance are not checked.

        Raises:
            NotFound: No invite with this token
        """
        invite = db.query(Invite).filter(Invite.token == token).first() if token else None
        if invite is None:
            raise NotFound("Invitación no encontrada")
        return invite

    @staticmethod
    def _mark_accepted(db: Session, invite: Invite) -> None:
        try:
            invite.accepted = True
            invite.accepted_at = utc_now()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to mark invite accepted: {e}")
            raise DependencyFailure("No se pudo aceptar la invitación")

    @staticmethod
    def accept_invite(db: Session, token: str, user_id: str) -> Invite:
        """
        Accept an invite on behalf of an existing identity.

        At most one membership exists per (clinic, user) however often this
        is called.

        Raises:
            ValidationError: Missing token or user id
            NotFound: No invite with this token
            DependencyFailure: Store failure
        """
        if not token or not user_id:
            raise ValidationError("token y userId son requeridos")

        invite = InviteService.get_invite_by_token(db, token)
        InviteService._mark_accepted(db, invite)

        if invite.clinic_id is not None:
            try:
                MembershipService.upsert_membership(db, invite.clinic_id, user_id, invite.role or DEFAULT_INVITE_ROLE)
            except SQLAlchemyError as e:
                logger.exception(f"Failed to create membership for accepted invite: {e}")
                raise DependencyFailure("No se pudo aceptar la invitación")

        logger.info(f"Invite accepted by {user_id} (clinic={invite.clinic_id})")
        return invite

    @staticmethod
    def complete_invite(
        db: Session,
        token: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> str:
        """
        First login for an invited user: create identity, profile and membership.

        Returns:
            The new identity id

        Raises:
            ValidationError: Missing fields, short password, invite already accepted or expired
            NotFound: No invite with this token
            Conflict: An identity already exists for the invited email
            IdentityCreateFailed: Store failure creating the identity
            ProfileCreateFailed: Profile insert failed (identity removed)
        """
        if not token or not password:
            raise ValidationError("Faltan campos")
        if len(password) < PASSWORD_MIN_LENGTH:
            raise ValidationError(f"La contraseña debe tener al menos {PASSWORD_MIN_LENGTH} caracteres")

        invite = InviteService.get_invite_by_token(db, token)
        if invite.accepted:
            raise ValidationError("Invitación ya aceptada")
        if is_past(invite.expires_at):
            raise ValidationError("Invitación expirada")

        guessed_first, guessed_last = names_from_email(invite.email)
        first = first_name if first_name else (invite.first_name or guessed_first)
        last = last_name if last_name else (invite.last_name or guessed_last)
        role = invite.role or DEFAULT_INVITE_ROLE

        try:
            identity = IdentityService.create_user(
                db, invite.email, password,
                full_name=f"{first} {last}".strip(),
                user_metadata={"full_name": f"{first} {last}".strip()},
                email_confirm=True,
            )
        except Conflict:
            raise Conflict("Ya existe un usuario con este correo. Pide restablecer la contraseña o inicia sesión.")
        except DependencyFailure:
            raise IdentityCreateFailed()
        user_id = identity.id

        try:
            ProvisioningService.create_profile(db, user_id, invite.clinic_id, identity.email, [role], first, last)
        except SQLAlchemyError as e:
            logger.exception(f"Profile creation failed for invited user {user_id}: {e}")
            run_non_fatal("delete identity after profile failure", IdentityService.delete_user, db, user_id)
            raise ProfileCreateFailed()

        if invite.clinic_id is not None:
            run_non_fatal(
                "create membership for invited user",
                MembershipService.upsert_membership, db, invite.clinic_id, user_id, role,
            )

        InviteService._mark_accepted(db, invite)
        logger.info(f"Invite completed for new user {user_id} (clinic={invite.clinic_id})")
        return user_id
