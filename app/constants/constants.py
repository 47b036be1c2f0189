"""Constants for identity states, auth methods, roles, and verification challenges."""

from enum import Enum


class AuthMethod(str, Enum):
    """Channel an identity signs in with."""

    email = "email"
    phone = "phone"


class IdentityStatus(str, Enum):
    """Verification state of a registered identity."""

    pending_email_verification = "pending_email_verification"
    pending_phone_verification = "pending_phone_verification"
    verified = "verified"


class UserRole(str, Enum):
    """Enumeration of platform roles."""

    citizen = "citizen"
    staff = "staff"
    admin = "admin"


class ChallengeChannel(str, Enum):
    email = "email"
    phone = "phone"


class ChallengePurpose(str, Enum):
    verification = "verification"
    password_reset = "password_reset"


PENDING_STATUS_FOR_METHOD = {
    AuthMethod.email: IdentityStatus.pending_email_verification,
    AuthMethod.phone: IdentityStatus.pending_phone_verification,
}

PRIVILEGED_ROLES = [UserRole.admin]

AVATAR_FOLDER = "samadhan/avatars"

DEFAULT_COUNTRY = "India"
