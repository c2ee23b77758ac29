"""RSA signature verification for Game Center identity signatures.

The signed payload is the concatenation of:
    UTF-8 player ID || UTF-8 bundle ID || 8-byte big-endian timestamp || salt

Apple signs its SHA-256 digest with RSASSA-PKCS1-v1_5. PSS padding would
reject every genuine signature.
"""

import hashlib
import logging
import struct

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from gcauth.exceptions import CryptoMismatchError

log = logging.getLogger("gcauth.signature")


def build_signed_payload(
    player_id: str,
    bundle_id: str,
    timestamp: int,
    salt: bytes,
) -> bytes:
    """Assemble the exact byte sequence Apple signed."""
    return b"".join((
        player_id.encode("utf-8"),
        bundle_id.encode("utf-8"),
        struct.pack(">q", timestamp),
        bytes(salt),
    ))


def verify_signature(
    player_id: str,
    bundle_id: str,
    timestamp: int,
    salt: bytes,
    signature: bytes,
    public_key,
) -> bool:
    """Check signature against the payload digest.

    Returns:
        True only if the PKCS#1 v1.5 / SHA-256 check passes. False for any
        failure, including a non-RSA key or unencodable fields. Never raises.
    """
    if not isinstance(public_key, rsa.RSAPublicKey):
        log.error(f"Certificate key is {type(public_key).__name__}, expected RSA")
        return False

    try:
        payload = build_signed_payload(player_id, bundle_id, timestamp, salt)
    except (struct.error, UnicodeEncodeError, TypeError) as e:
        log.warning(f"Could not build signed payload: {e}")
        return False

    digest = hashlib.sha256(payload).digest()
    try:
        public_key.verify(
            bytes(signature),
            digest,
            padding.PKCS1v15(),
            Prehashed(hashes.SHA256()),
        )
    except (InvalidSignature, ValueError, TypeError):
        return False
    return True


def certificate_public_key(certificate: x509.Certificate):
    """Public key of a validated certificate.

    Raises:
        CryptoMismatchError: The key algorithm is not supported.
    """
    try:
        return certificate.public_key()
    except (ValueError, UnsupportedAlgorithm) as e:
        raise CryptoMismatchError(f"Unsupported certificate key: {e}")


def require_valid_signature(
    player_id: str,
    bundle_id: str,
    timestamp: int,
    salt: bytes,
    signature: bytes,
    public_key,
) -> None:
    """Raising variant of verify_signature, used by the verifier pipeline.

    Raises:
        CryptoMismatchError: Signature does not verify.
    """
    if not verify_signature(player_id, bundle_id, timestamp, salt, signature, public_key):
        raise CryptoMismatchError(
            f"RSA signature verification failed for player_id={player_id[:20]}"
        )
