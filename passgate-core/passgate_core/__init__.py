"""passgate-core: passkey ceremony orchestration for client applications."""

from .authenticator import (
    AuthenticatorBridge,
    Fido2PlatformAuthenticator,
    PlatformAuthenticator,
    classify_platform_error,
)
from .ceremony import (
    REGISTRATION_NOTICE,
    CeremonyOrchestrator,
    CeremonyState,
    CeremonyStatus,
)
from .errors import (
    AuthenticatorError,
    Busy,
    CeremonyError,
    ErrorKind,
    NetworkError,
    NoCredentialAvailable,
    ServerError,
    ServerRejected,
    UserCancelled,
    ValidationError,
)
from .models import (
    AssertionResponse,
    AttestationResponse,
    AuthenticationChallenge,
    CeremonyResult,
    Identity,
    RegistrationChallenge,
    Session,
    VerificationOutcome,
    is_valid_email,
    normalize_email,
)
from .relying_party import DEFAULT_RP_URL, RelyingPartyClient, validate_base_url
from .session_store import FileSessionStore, MemorySessionStore, SessionStore

__all__ = [
    "DEFAULT_RP_URL",
    "REGISTRATION_NOTICE",
    "AssertionResponse",
    "AttestationResponse",
    "AuthenticationChallenge",
    "AuthenticatorBridge",
    "AuthenticatorError",
    "Busy",
    "CeremonyError",
    "CeremonyOrchestrator",
    "CeremonyResult",
    "CeremonyState",
    "CeremonyStatus",
    "ErrorKind",
    "FileSessionStore",
    "Fido2PlatformAuthenticator",
    "Identity",
    "MemorySessionStore",
    "NetworkError",
    "NoCredentialAvailable",
    "PlatformAuthenticator",
    "RegistrationChallenge",
    "RelyingPartyClient",
    "ServerError",
    "ServerRejected",
    "Session",
    "SessionStore",
    "UserCancelled",
    "ValidationError",
    "VerificationOutcome",
    "classify_platform_error",
    "is_valid_email",
    "normalize_email",
    "validate_base_url",
]
