# Package initialization
# Import all models so every table is registered on Base.metadata
from .identity import Identity
from .clinic import Clinic
from .profile import Profile
from .membership import Membership
from .pending_signup import PendingSignup
from .password_reset import PasswordReset
from .invite import Invite
from .google_integration import GoogleIntegration

__all__ = [
    "Identity",
    "Clinic",
    "Profile",
    "Membership",
    "PendingSignup",
    "PasswordReset",
    "Invite",
    "GoogleIntegration",
]
