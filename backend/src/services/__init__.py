"""
Services package for shared business logic.

This package contains the account workflows (signup verification, invites,
password recovery, provisioning) and the collaborators they share.
"""

from .identity_service import IdentityService
from .signup_service import SignupService
from .invite_service import InviteService
from .password_reset_service import PasswordResetService
from .provisioning_service import ProvisioningService

__all__ = [
    "IdentityService",
    "SignupService",
    "InviteService",
    "PasswordResetService",
    "ProvisioningService",
]
