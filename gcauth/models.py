"""Data models for Game Center signature verification."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from gcauth.core.config import (
    DEFAULT_EXPIRY_MILLIS,
    PRODUCTION_KEY_HOST,
    SANDBOX_KEY_HOST,
)


class ErrorCode:
    """Failure reasons. Never returned to callers of verify(), logged only."""
    # Request layer
    MALFORMED_INPUT = "MALFORMED_INPUT"

    # Certificate layer
    ACQUISITION_FAILED = "ACQUISITION_FAILED"
    INVALID_CERTIFICATE_FORMAT = "INVALID_CERTIFICATE_FORMAT"
    UNTRUSTED_CERTIFICATE = "UNTRUSTED_CERTIFICATE"
    WRONG_ISSUER = "WRONG_ISSUER"

    # Crypto layer
    CRYPTO_MISMATCH = "CRYPTO_MISMATCH"


@dataclass(frozen=True)
class VerifierConfig:
    """Immutable settings of one verifier instance.

    Attributes:
        bundle_id: Application bundle ID embedded in every signed payload.
        expiry_window_millis: How long after its timestamp a signature is
            accepted.
        key_base_host: Host serving public-key certificates.
        max_future_skew_millis: Optional bound on how far in the future a
            timestamp may lie. None disables the check.
        cache_max_age_seconds: Optional max age of cached certificates.
            None keeps them for the process lifetime.
    """
    bundle_id: str
    expiry_window_millis: int = DEFAULT_EXPIRY_MILLIS
    key_base_host: str = PRODUCTION_KEY_HOST
    max_future_skew_millis: Optional[int] = None
    cache_max_age_seconds: Optional[float] = None

    def __post_init__(self):
        if not isinstance(self.bundle_id, str) or not self.bundle_id:
            raise ValueError("bundle_id must be a non-empty string")
        if self.expiry_window_millis < 0:
            raise ValueError("expiry_window_millis must be >= 0")
        if self.key_base_host not in (PRODUCTION_KEY_HOST, SANDBOX_KEY_HOST):
            raise ValueError(f"unknown key host: {self.key_base_host}")
        if self.max_future_skew_millis is not None and self.max_future_skew_millis < 0:
            raise ValueError("max_future_skew_millis must be >= 0")

    @classmethod
    def create(
        cls,
        bundle_id: str,
        expiry_window_millis: int = DEFAULT_EXPIRY_MILLIS,
        sandbox: bool = False,
        max_future_skew_millis: Optional[int] = None,
        cache_max_age_seconds: Optional[float] = None,
    ) -> "VerifierConfig":
        """Build a config, selecting the key host from the sandbox flag."""
        return cls(
            bundle_id=bundle_id,
            expiry_window_millis=expiry_window_millis,
            key_base_host=SANDBOX_KEY_HOST if sandbox else PRODUCTION_KEY_HOST,
            max_future_skew_millis=max_future_skew_millis,
            cache_max_age_seconds=cache_max_age_seconds,
        )

    @property
    def sandbox(self) -> bool:
        return self.key_base_host == SANDBOX_KEY_HOST


@dataclass(frozen=True)
class VerificationRequest:
    """The five fields returned by fetchItemsForIdentityVerificationSignature.

    Attributes:
        player_id: teamPlayerID / gamePlayerID / legacy playerID.
        public_key_url: URL of the certificate that signed the payload.
        timestamp: Issuance time, milliseconds since epoch.
        salt: Random bytes mixed into the signed payload.
        signature: RSA signature over the payload digest.
    """
    player_id: str
    public_key_url: str
    timestamp: int
    salt: bytes
    signature: bytes


@dataclass
class VerificationResult:
    """Outcome of one verification, with the reason when it failed."""
    valid: bool
    error_code: Optional[str] = None
    message: str = ""
    cert_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "valid": self.valid,
            "error_code": self.error_code,
            "message": self.message,
            "cert_name": self.cert_name,
        }
