"""Verification failures mapped to error codes.

Every exception here is caught inside GCAuth.check() and reduced to a
false result. The code only reaches logs and diagnostics.
"""

from gcauth.models import ErrorCode


class GameCenterAuthError(Exception):
    """Base exception for verification failures.

    Carries an error code that maps to ErrorCode constants.
    """

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class MalformedInputError(GameCenterAuthError):
    """A request field failed structural or bounds validation.

    Used when:
    - Timestamp is expired (or too far ahead, if bounded)
    - Signature/salt/player ID length or prefix is invalid
    - Public key URL does not point at the configured key host
    """

    def __init__(self, message: str = "Malformed verification request"):
        super().__init__(ErrorCode.MALFORMED_INPUT, message)


class AcquisitionFailedError(GameCenterAuthError):
    """The certificate could not be downloaded.

    Used when:
    - Network timeout or transport error
    - Non-success HTTP status, redirects included
    - Response too large
    """

    def __init__(self, message: str = "Certificate fetch failed"):
        super().__init__(ErrorCode.ACQUISITION_FAILED, message)


class InvalidCertificateFormatError(GameCenterAuthError):
    """Downloaded bytes are not a DER or PEM X.509 certificate."""

    def __init__(self, message: str = "Certificate could not be parsed"):
        super().__init__(ErrorCode.INVALID_CERTIFICATE_FORMAT, message)


class UntrustedCertificateError(GameCenterAuthError):
    """Certificate does not chain to a trusted root, or is not time-valid."""

    def __init__(self, message: str = "Certificate is not trusted"):
        super().__init__(ErrorCode.UNTRUSTED_CERTIFICATE, message)


class WrongIssuerError(GameCenterAuthError):
    """Trusted certificate whose subject is not the expected vendor."""

    def __init__(self, message: str = "Certificate subject mismatch"):
        super().__init__(ErrorCode.WRONG_ISSUER, message)


class CryptoMismatchError(GameCenterAuthError):
    """Signature does not verify against the certificate's public key."""

    def __init__(self, message: str = "Signature verification failed"):
        super().__init__(ErrorCode.CRYPTO_MISMATCH, message)
