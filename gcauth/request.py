"""
Verification request validator.

Structural and bounds checks on the five fields handed back by
fetchItemsForIdentityVerificationSignature. Runs before any network or
cryptographic work; pure, no I/O.
"""

import re
from urllib.parse import urlsplit

from gcauth.core.config import (
    ALLOWED_SIGNATURE_LENGTHS,
    MAX_PLAYER_ID_LENGTH,
    MAX_SALT_BYTES,
    PLAYER_ID_PREFIXES,
    PUBLIC_KEY_NAME_PATTERN,
    PUBLIC_KEY_PATH,
    PUBLIC_KEY_PATH_PREFIX,
    PUBLIC_KEY_SUFFIX,
    TIMESTAMP_MAX,
    TIMESTAMP_MIN,
)
from gcauth.exceptions import MalformedInputError
from gcauth.models import VerificationRequest, VerifierConfig

_PUBLIC_KEY_NAME_RE = re.compile(PUBLIC_KEY_NAME_PATTERN)


def validate_request(
    request: VerificationRequest,
    config: VerifierConfig,
    now_millis: int,
) -> str:
    """Validate a verification request.

    Args:
        request: The caller-supplied fields.
        config: Verifier settings (expiry window, key host).
        now_millis: Current time, milliseconds since epoch.

    Returns:
        The certificate name (final path segment of the public key URL).

    Raises:
        MalformedInputError: On the first failed check.
    """
    _validate_types(request)
    _validate_timestamp(request.timestamp, config, now_millis)
    _validate_signature_length(request.signature)
    _validate_salt(request.salt)
    _validate_player_id(request.player_id)
    return _validate_public_key_url(request.public_key_url, config.key_base_host)


def _validate_types(request: VerificationRequest) -> None:
    if not isinstance(request.player_id, str):
        raise MalformedInputError("player_id must be a string")
    if not isinstance(request.public_key_url, str):
        raise MalformedInputError("public_key_url must be a string")
    # bool is a subclass of int in Python, reject it explicitly
    if isinstance(request.timestamp, bool) or not isinstance(request.timestamp, int):
        raise MalformedInputError("timestamp must be an integer")
    if not TIMESTAMP_MIN <= request.timestamp <= TIMESTAMP_MAX:
        raise MalformedInputError("timestamp does not fit in 64 bits")
    for field in ("salt", "signature"):
        if not isinstance(getattr(request, field), (bytes, bytearray, memoryview)):
            raise MalformedInputError(f"{field} must be bytes")


def _validate_timestamp(timestamp: int, config: VerifierConfig, now_millis: int) -> None:
    if timestamp + config.expiry_window_millis < now_millis:
        raise MalformedInputError(
            f"timestamp {timestamp} expired "
            f"(window {config.expiry_window_millis}ms, now {now_millis})"
        )
    skew = config.max_future_skew_millis
    if skew is not None and timestamp > now_millis + skew:
        raise MalformedInputError(
            f"timestamp {timestamp} is in the future beyond {skew}ms skew"
        )


def _validate_signature_length(signature: bytes) -> None:
    if len(signature) not in ALLOWED_SIGNATURE_LENGTHS:
        raise MalformedInputError(f"unexpected signature length {len(signature)}")


def _validate_salt(salt: bytes) -> None:
    if len(salt) > MAX_SALT_BYTES:
        raise MalformedInputError(f"salt length {len(salt)} exceeds {MAX_SALT_BYTES}")


def _validate_player_id(player_id: str) -> None:
    if len(player_id) > MAX_PLAYER_ID_LENGTH:
        raise MalformedInputError(
            f"player_id length {len(player_id)} exceeds {MAX_PLAYER_ID_LENGTH}"
        )
    if not player_id.startswith(PLAYER_ID_PREFIXES):
        raise MalformedInputError("player_id has no known prefix")


def _validate_public_key_url(public_key_url: str, key_base_host: str) -> str:
    """Check host and path of the lower-cased URL, return the certificate name."""
    try:
        parsed = urlsplit(public_key_url.lower())
        host = parsed.hostname
    except ValueError as e:
        raise MalformedInputError(f"public_key_url does not parse: {e}")

    if not parsed.scheme or not host:
        raise MalformedInputError("public_key_url is not an absolute URL")
    if host != key_base_host:
        raise MalformedInputError(f"public_key_url host {host} is not {key_base_host}")

    path = parsed.path
    if not path.startswith(PUBLIC_KEY_PATH_PREFIX) or not path.endswith(PUBLIC_KEY_SUFFIX):
        raise MalformedInputError(f"public_key_url path {path} is not a Game Center key")

    # Exactly one segment below /public-key/, so ".." cannot climb out of it
    name = path[len(PUBLIC_KEY_PATH):]
    if not _PUBLIC_KEY_NAME_RE.fullmatch(name):
        raise MalformedInputError(f"public_key_url path {path} is not a Game Center key")

    return name
