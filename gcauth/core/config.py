"""
gcauth configuration constants.

Constants are organized into:
- PROTOCOL: Fixed by Apple's Game Center identity verification scheme
- DEFAULTS: Construction-time defaults for a verifier instance
- OPERATIONAL: Deployment-specific settings (env vars)
"""

import os
from typing import Optional

# =============================================================================
# PROTOCOL CONSTANTS (fixed by the Game Center signature scheme)
# =============================================================================

# Key distribution hosts. The publicKeyURL handed to the game always points
# at one of these; anything else is rejected before a fetch is attempted.
PRODUCTION_KEY_HOST: str = "static.gc.apple.com"
SANDBOX_KEY_HOST: str = "sandbox.gc.apple.com"

PUBLIC_KEY_PATH: str = "/public-key/"
PUBLIC_KEY_PATH_PREFIX: str = "/public-key/gc-"
PUBLIC_KEY_SUFFIX: str = ".cer"

# Certificate file name: one path segment, no dot segments or escapes.
# Matched against the lower-cased URL.
PUBLIC_KEY_NAME_PATTERN: str = r"gc-[a-z0-9_.-]+\.cer"

# RSA-1024/2048/4096/8192 signature sizes in bytes.
# 512 bytes as of 2024 (gc-auth-6 switched to RSA-4096 in 2021).
ALLOWED_SIGNATURE_LENGTHS: frozenset[int] = frozenset({128, 256, 512, 1024})

# Apple uses much smaller salts in practice
MAX_SALT_BYTES: int = 128

MAX_PLAYER_ID_LENGTH: int = 64

# A: gamePlayerID, T: teamPlayerID, G: playerID (deprecated)
PLAYER_ID_PREFIXES: tuple[str, ...] = ("A:", "T:", "G:")

# Signed 64-bit bounds for the big-endian timestamp field
TIMESTAMP_MIN: int = -(2 ** 63)
TIMESTAMP_MAX: int = 2 ** 63 - 1

# Upper bound on leaf -> root path length during chain building
MAX_CHAIN_DEPTH: int = 8

# =============================================================================
# DEFAULTS
# =============================================================================

# How long after issuance a signature is still accepted (2 minutes)
DEFAULT_EXPIRY_MILLIS: int = 120_000


def _parse_optional_int(name: str) -> Optional[int]:
    """Read an optional integer setting; unset or empty means None."""
    value = os.getenv(name, "").strip()
    if not value:
        return None
    return int(value)


def _parse_optional_float(name: str) -> Optional[float]:
    """Read an optional float setting; unset or empty means None."""
    value = os.getenv(name, "").strip()
    if not value:
        return None
    return float(value)


# =============================================================================
# OPERATIONAL SETTINGS (deployment-specific, via environment variables)
# =============================================================================

# Outbound certificate fetch constraints
FETCH_TIMEOUT_SECONDS: float = float(os.getenv("GC_AUTH_FETCH_TIMEOUT", "10"))
MAX_CERTIFICATE_BYTES: int = int(os.getenv("GC_AUTH_MAX_CERT_BYTES", "65536"))

# PEM bundle replacing the host's default root store
CA_BUNDLE_PATH: Optional[str] = os.getenv("GC_AUTH_CA_BUNDLE") or None

# PEM file of extra intermediates offered during chain building
INTERMEDIATES_PATH: Optional[str] = os.getenv("GC_AUTH_INTERMEDIATES_FILE") or None

# Follow Authority Information Access caIssuers URIs when the chain cannot
# be completed locally. Apple's .cer files carry only the leaf.
FETCH_INTERMEDIATES: bool = os.getenv(
    "GC_AUTH_FETCH_INTERMEDIATES", "true"
).lower() == "true"

# Literal that must appear in the leaf subject, rendered most-specific-first
EXPECTED_SUBJECT_MARKER: str = os.getenv("GC_AUTH_EXPECTED_SUBJECT", "CN=Apple Inc.,")

# Optional bound on how far in the future a claimed timestamp may lie.
# Unset keeps the historical behaviour of not checking it.
MAX_FUTURE_SKEW_MILLIS: Optional[int] = _parse_optional_int("GC_AUTH_MAX_FUTURE_SKEW_MS")

# Optional maximum age of a cached certificate. Unset = process lifetime.
CERT_CACHE_MAX_AGE_SECONDS: Optional[float] = _parse_optional_float(
    "GC_AUTH_CERT_CACHE_MAX_AGE"
)
