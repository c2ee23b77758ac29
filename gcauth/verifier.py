"""Game Center identity signature verifier.

Pipeline per call:
    validate_request -> CertificateAcquirer.acquire -> verify_signature

Each call is independent. The only state shared between calls is the
certificate cache and the immutable VerifierConfig, so one GCAuth instance
is meant to serve every request in the process.
"""

import logging
from typing import Callable, Iterable, Optional

import httpx
from cryptography import x509

from gcauth.cert_cache import CertificateCache
from gcauth.certificates import CertificateAcquirer, current_time_millis
from gcauth.core.config import (
    CERT_CACHE_MAX_AGE_SECONDS,
    DEFAULT_EXPIRY_MILLIS,
    FETCH_INTERMEDIATES,
    MAX_FUTURE_SKEW_MILLIS,
)
from gcauth.exceptions import GameCenterAuthError, MalformedInputError
from gcauth.models import VerificationRequest, VerificationResult, VerifierConfig
from gcauth.request import validate_request
from gcauth.signature import certificate_public_key, require_valid_signature

log = logging.getLogger("gcauth.verifier")


class GCAuth:
    """Verifies Game Center identity signatures for one bundle ID.

    Example:
        auth = GCAuth("com.example.app")
        ok = await auth.verify(player_id, public_key_url, timestamp, salt, signature)
    """

    def __init__(
        self,
        bundle_id: str,
        expiry_time: int = DEFAULT_EXPIRY_MILLIS,
        sandbox: bool = False,
        *,
        cache: Optional[CertificateCache] = None,
        trust_roots: Optional[Iterable[x509.Certificate]] = None,
        intermediates: Optional[Iterable[x509.Certificate]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], int] = current_time_millis,
        max_future_skew_millis: Optional[int] = MAX_FUTURE_SKEW_MILLIS,
        cache_max_age_seconds: Optional[float] = CERT_CACHE_MAX_AGE_SECONDS,
        fetch_intermediates: bool = FETCH_INTERMEDIATES,
    ):
        """Create a verifier.

        Args:
            bundle_id: The application bundle ID to verify signatures for.
            expiry_time: Milliseconds a signature stays valid after its
                timestamp (default 120000 / 2 minutes).
            sandbox: Fetch keys from the sandbox host instead of production.
            cache: Certificate cache to use; a new one is created if None.
            trust_roots: Root store; the host's default store if None.
            intermediates: Extra intermediate CAs for chain building.
            transport: Optional httpx transport for the certificate fetch.
            clock: Current time in milliseconds since epoch.
            max_future_skew_millis: Optional bound on future timestamps.
            cache_max_age_seconds: Optional max age of cached certificates.
            fetch_intermediates: Follow AIA caIssuers links during validation.

        Raises:
            ValueError: Empty bundle ID or negative expiry window.
        """
        self._config = VerifierConfig.create(
            bundle_id=bundle_id,
            expiry_window_millis=expiry_time,
            sandbox=sandbox,
            max_future_skew_millis=max_future_skew_millis,
            cache_max_age_seconds=cache_max_age_seconds,
        )
        self._clock = clock
        self._cache = cache if cache is not None else CertificateCache(
            max_age_seconds=cache_max_age_seconds
        )
        self._acquirer = CertificateAcquirer(
            key_base_host=self._config.key_base_host,
            cache=self._cache,
            trust_roots=trust_roots,
            intermediates=intermediates,
            transport=transport,
            clock=clock,
            fetch_intermediates=fetch_intermediates,
        )

    @property
    def config(self) -> VerifierConfig:
        return self._config

    @property
    def cache(self) -> CertificateCache:
        return self._cache

    async def check(
        self,
        player_id: str,
        public_key_url: str,
        timestamp: int,
        salt: bytes,
        signature: bytes,
    ) -> VerificationResult:
        """Verify a signature and report why it failed, if it did.

        The reason is for logs and operator tooling only. Anything facing
        the client should use verify() and expose nothing but the boolean.
        """
        request = VerificationRequest(
            player_id=player_id,
            public_key_url=public_key_url,
            timestamp=timestamp,
            salt=salt,
            signature=signature,
        )
        cert_name = None
        try:
            cert_name = validate_request(request, self._config, self._clock())
            certificate = await self._acquirer.acquire(cert_name)
            require_valid_signature(
                player_id,
                self._config.bundle_id,
                timestamp,
                salt,
                signature,
                certificate_public_key(certificate),
            )
        except GameCenterAuthError as e:
            level = logging.INFO if isinstance(e, MalformedInputError) else logging.WARNING
            log.log(
                level,
                f"Game Center signature rejected: {e.message}",
                extra={"error_code": e.code, "cert_name": cert_name},
            )
            return VerificationResult(
                valid=False,
                error_code=e.code,
                message=e.message,
                cert_name=cert_name,
            )

        log.debug(
            f"Game Center signature verified with {cert_name}",
            extra={"cert_name": cert_name},
        )
        return VerificationResult(valid=True, message="Signature verified", cert_name=cert_name)

    async def verify(
        self,
        player_id: str,
        public_key_url: str,
        timestamp: int,
        salt: bytes,
        signature: bytes,
    ) -> bool:
        """Verify a Game Center signature for the given player ID.

        Args:
            player_id: The player ID provided by the application.
            public_key_url: The publicKeyURL returned with the signature.
            timestamp: The issuance timestamp, milliseconds since epoch.
            salt: The salt returned with the signature.
            signature: The signature bytes.

        Returns:
            True if the signature is valid, False otherwise. Never raises for
            bad input or network failures.
        """
        result = await self.check(player_id, public_key_url, timestamp, salt, signature)
        return result.valid
