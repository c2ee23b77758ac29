"""gcauth: server-side verification of Game Center identity signatures."""

__version__ = "0.1.0"

from gcauth.cert_cache import CertificateCache
from gcauth.exceptions import (
    AcquisitionFailedError,
    CryptoMismatchError,
    GameCenterAuthError,
    InvalidCertificateFormatError,
    MalformedInputError,
    UntrustedCertificateError,
    WrongIssuerError,
)
from gcauth.models import ErrorCode, VerificationRequest, VerificationResult, VerifierConfig
from gcauth.verifier import GCAuth

__all__ = [
    "GCAuth",
    "CertificateCache",
    "VerifierConfig",
    "VerificationRequest",
    "VerificationResult",
    "ErrorCode",
    # Errors
    "GameCenterAuthError",
    "MalformedInputError",
    "AcquisitionFailedError",
    "InvalidCertificateFormatError",
    "UntrustedCertificateError",
    "WrongIssuerError",
    "CryptoMismatchError",
]
