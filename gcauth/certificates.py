"""Public-key certificate acquisition and validation.

A certificate named by a validated publicKeyURL is fetched once from the
configured key host, parsed, checked for a chain of trust to the root store,
checked for the expected vendor subject, and only then cached.

Validation is one fixed pipeline:
    parse_certificate -> validate_certificate (chain, then subject)

Apple's .cer files contain only the leaf, so when the chain cannot be built
from local material the issuer is located through the certificate's
Authority Information Access caIssuers URI.
"""

import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

import httpx
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.x509.oid import AuthorityInformationAccessOID

from gcauth.cert_cache import CertificateCache
from gcauth.core.config import (
    EXPECTED_SUBJECT_MARKER,
    FETCH_INTERMEDIATES,
    FETCH_TIMEOUT_SECONDS,
    INTERMEDIATES_PATH,
    MAX_CERTIFICATE_BYTES,
    MAX_CHAIN_DEPTH,
    PUBLIC_KEY_PATH,
)
from gcauth.exceptions import (
    AcquisitionFailedError,
    GameCenterAuthError,
    InvalidCertificateFormatError,
    UntrustedCertificateError,
    WrongIssuerError,
)
from gcauth.trust_store import CertificatePool, load_default_roots, load_pem_bundle

log = logging.getLogger("gcauth.certificates")


# =============================================================================
# Parsing
# =============================================================================


def parse_certificate(data: bytes) -> x509.Certificate:
    """Parse DER certificate bytes, falling back to PEM.

    Raises:
        InvalidCertificateFormatError: Neither encoding parses, or the
            names or extensions do not decode.
    """
    if not data:
        raise InvalidCertificateFormatError("Certificate response is empty")
    try:
        cert = x509.load_der_x509_certificate(data)
    except Exception:
        try:
            cert = x509.load_pem_x509_certificate(data)
        except Exception as e:
            raise InvalidCertificateFormatError(f"Certificate parse failed: {e}")

    # Names and extensions are decoded lazily; force them here
    try:
        cert.subject
        cert.issuer
        cert.extensions
    except Exception as e:
        raise InvalidCertificateFormatError(f"Certificate fields malformed: {e}")
    return cert


def subject_string(cert: x509.Certificate) -> str:
    """Render the subject most-specific-first, e.g. 'CN=Apple Inc., OU=..., C=US'."""
    return ", ".join(rdn.rfc4514_string() for rdn in reversed(cert.subject.rdns))


# =============================================================================
# Chain of trust
# =============================================================================


def is_time_valid(cert: x509.Certificate, now: datetime) -> bool:
    return cert.not_valid_before_utc <= now <= cert.not_valid_after_utc


def _basic_constraints(cert: x509.Certificate) -> Optional[x509.BasicConstraints]:
    try:
        return cert.extensions.get_extension_for_class(x509.BasicConstraints).value
    except x509.ExtensionNotFound:
        return None


def _may_issue(issuer: x509.Certificate, cas_below: int, require_ca: bool = True) -> bool:
    """Whether issuer may sign a certificate with cas_below CAs under it.

    Checks BasicConstraints (cA flag, pathLenConstraint) and, when present,
    KeyUsage keyCertSign. Trust anchors without BasicConstraints (v1 roots)
    pass with require_ca=False.
    """
    constraints = _basic_constraints(issuer)
    if constraints is None:
        if require_ca:
            return False
    else:
        if not constraints.ca:
            return False
        if constraints.path_length is not None and cas_below > constraints.path_length:
            return False

    try:
        key_usage = issuer.extensions.get_extension_for_class(x509.KeyUsage).value
    except x509.ExtensionNotFound:
        return True
    return key_usage.key_cert_sign


def _directly_issued_by(cert: x509.Certificate, issuer: x509.Certificate) -> bool:
    """Issuer name matches and issuer's key verifies cert's signature."""
    try:
        cert.verify_directly_issued_by(issuer)
    except (ValueError, TypeError, InvalidSignature):
        return False
    return True


def _build_path(
    cert: x509.Certificate,
    roots: CertificatePool,
    intermediates: CertificatePool,
    now: datetime,
    depth: int = 0,
) -> Optional[List[x509.Certificate]]:
    """Depth-first search for a path from cert to a trusted root.

    depth is the number of intermediate CAs already below cert, i.e. the
    count an issuer of cert has to allow in its pathLenConstraint.
    """
    if not is_time_valid(cert, now):
        return None
    if cert in roots:
        return [cert]

    for root in roots.issuers_of(cert):
        if not is_time_valid(root, now) or not _may_issue(root, depth, require_ca=False):
            continue
        if _directly_issued_by(cert, root):
            return [cert, root]

    if depth >= MAX_CHAIN_DEPTH:
        return None

    for candidate in intermediates.issuers_of(cert):
        if candidate == cert or not _may_issue(candidate, depth):
            continue
        if not _directly_issued_by(cert, candidate):
            continue
        path = _build_path(candidate, roots, intermediates, now, depth + 1)
        if path:
            return [cert] + path
    return None


def validate_certificate(
    cert: x509.Certificate,
    roots: CertificatePool,
    intermediates: CertificatePool,
    now: datetime,
    expected_subject: str = EXPECTED_SUBJECT_MARKER,
) -> List[x509.Certificate]:
    """Validate the chain of trust, then the vendor subject.

    Args:
        cert: Leaf certificate served by the key host.
        roots: Trusted root certificates.
        intermediates: Candidate intermediate CAs.
        now: Time at which every certificate in the path must be valid.
        expected_subject: Literal required in the rendered subject.

    Returns:
        The validated path, leaf first.

    Raises:
        UntrustedCertificateError: No time-valid path to a trusted root.
        WrongIssuerError: Trusted, but not issued to the expected vendor.
    """
    if not is_time_valid(cert, now):
        raise UntrustedCertificateError(
            f"Certificate not valid at {now.isoformat()} "
            f"(valid {cert.not_valid_before_utc.isoformat()} to "
            f"{cert.not_valid_after_utc.isoformat()})"
        )

    path = _build_path(cert, roots, intermediates, now)
    if path is None:
        raise UntrustedCertificateError(
            f"No chain to a trusted root for issuer {cert.issuer.rfc4514_string()}"
        )

    subject = subject_string(cert)
    if expected_subject not in subject:
        raise WrongIssuerError(f"Unexpected certificate subject: {subject}")

    return path


def ca_issuer_urls(cert: x509.Certificate) -> List[str]:
    """http(s) caIssuers URIs from the Authority Information Access extension."""
    try:
        aia = cert.extensions.get_extension_for_class(x509.AuthorityInformationAccess)
    except x509.ExtensionNotFound:
        return []
    urls = []
    for desc in aia.value:
        if desc.access_method != AuthorityInformationAccessOID.CA_ISSUERS:
            continue
        if not isinstance(desc.access_location, x509.UniformResourceIdentifier):
            continue
        url = desc.access_location.value
        if url.lower().startswith(("http://", "https://")):
            urls.append(url)
    return urls


# =============================================================================
# Acquisition
# =============================================================================


def current_time_millis() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


class CertificateAcquirer:
    """Returns trusted certificates by name, from cache or the key host."""

    def __init__(
        self,
        key_base_host: str,
        cache: CertificateCache,
        trust_roots: Optional[Iterable[x509.Certificate]] = None,
        intermediates: Optional[Iterable[x509.Certificate]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], int] = current_time_millis,
        fetch_intermediates: bool = FETCH_INTERMEDIATES,
        timeout: float = FETCH_TIMEOUT_SECONDS,
        intermediates_file: Optional[str] = INTERMEDIATES_PATH,
    ):
        """Initialize the acquirer.

        Args:
            key_base_host: Host serving /public-key/<name>.
            cache: Shared cache of validated certificates.
            trust_roots: Root store. Loaded from the host on first use if None,
                in a worker thread.
            intermediates: Extra intermediate CAs offered during chain building.
            transport: Optional httpx transport (tests use httpx.MockTransport).
            clock: Current time in milliseconds since epoch.
            fetch_intermediates: Follow AIA caIssuers when the chain is incomplete.
            timeout: Per-request timeout in seconds.
            intermediates_file: PEM file of extra intermediates, loaded here
                whatever the root source.

        Raises:
            FileNotFoundError, ValueError: intermediates_file is unreadable.
        """
        self._key_base_host = key_base_host
        self._cache = cache
        self._roots = CertificatePool(trust_roots) if trust_roots is not None else None
        self._extra_intermediates = list(intermediates or ())
        if intermediates_file:
            self._extra_intermediates.extend(load_pem_bundle(intermediates_file))
        self._transport = transport
        self._clock = clock
        self._fetch_intermediates = fetch_intermediates
        self._timeout = timeout
        self._roots_lock = threading.Lock()

    @property
    def cache(self) -> CertificateCache:
        return self._cache

    def certificate_url(self, cert_name: str) -> str:
        return f"https://{self._key_base_host}{PUBLIC_KEY_PATH}{cert_name}"

    def _get_roots(self) -> CertificatePool:
        with self._roots_lock:
            if self._roots is None:
                self._roots = CertificatePool(load_default_roots())
            return self._roots

    async def acquire(self, cert_name: str) -> x509.Certificate:
        """Return the validated certificate for cert_name.

        Raises:
            AcquisitionFailedError: Download failed (no retry).
            InvalidCertificateFormatError: Bytes are not a certificate.
            UntrustedCertificateError: No chain to a trusted root.
            WrongIssuerError: Subject is not the expected vendor.
        """
        cached = self._cache.get(cert_name)
        if cached is not None:
            log.debug(f"Certificate cache hit for {cert_name}")
            return cached

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=False,
                transport=self._transport,
            ) as client:
                cert = await self._fetch_and_validate(client, cert_name)
        except GameCenterAuthError:
            raise
        except Exception as e:
            log.exception(f"Unexpected error acquiring {cert_name}")
            raise AcquisitionFailedError(f"Unexpected error acquiring {cert_name}: {e}")

        self._cache.put(cert_name, cert)
        log.info(
            f"Validated and cached certificate {cert_name}",
            extra={"cert_name": cert_name},
        )
        return cert

    async def _fetch_and_validate(
        self, client: httpx.AsyncClient, cert_name: str
    ) -> x509.Certificate:
        data = await self._download(client, self.certificate_url(cert_name))
        cert = parse_certificate(data)

        # First use reads the host CA bundle; keep that off the event loop
        loop = asyncio.get_running_loop()
        roots = await loop.run_in_executor(None, self._get_roots)
        intermediates = CertificatePool(self._extra_intermediates)
        now = datetime.fromtimestamp(self._clock() / 1000, tz=timezone.utc)

        try:
            validate_certificate(cert, roots, intermediates, now)
            return cert
        except UntrustedCertificateError:
            if not self._fetch_intermediates or not is_time_valid(cert, now):
                raise

        await self._discover_intermediates(client, cert, roots, intermediates)
        validate_certificate(cert, roots, intermediates, now)
        return cert

    async def _discover_intermediates(
        self,
        client: httpx.AsyncClient,
        cert: x509.Certificate,
        roots: CertificatePool,
        intermediates: CertificatePool,
    ) -> None:
        """Follow caIssuers links upward, adding each issuer to intermediates.

        An issuer already in the pool is stepped through without a fetch, so
        a configured intermediate can still lead to further AIA hops.
        """
        current = cert
        for _ in range(MAX_CHAIN_DEPTH):
            if roots.issuers_of(current) or current.issuer == current.subject:
                return
            pooled = [
                c for c in intermediates.issuers_of(current)
                if c != current and _directly_issued_by(current, c)
            ]
            if pooled:
                current = pooled[0]
                continue
            urls = ca_issuer_urls(current)
            if not urls:
                return
            issuer = None
            for url in urls:
                try:
                    issuer = parse_certificate(await self._download(client, url))
                    break
                except GameCenterAuthError as e:
                    log.warning(f"Could not fetch issuer from {url}: {e.message}")
            if issuer is None:
                return
            log.debug(f"Discovered intermediate {issuer.subject.rfc4514_string()}")
            intermediates.add(issuer)
            current = issuer

    async def _download(self, client: httpx.AsyncClient, url: str) -> bytes:
        """GET url without following redirects.

        Raises:
            AcquisitionFailedError: On network/timeout/status/size errors.
        """
        try:
            response = await client.get(url)
        except httpx.TimeoutException:
            raise AcquisitionFailedError(f"Timeout after {self._timeout}s fetching {url}")
        except httpx.RequestError as e:
            raise AcquisitionFailedError(f"Request failed for {url}: {e}")

        if not response.is_success:
            raise AcquisitionFailedError(f"HTTP {response.status_code} fetching {url}")

        content = response.content
        if len(content) > MAX_CERTIFICATE_BYTES:
            raise AcquisitionFailedError(
                f"Response size {len(content)} bytes exceeds limit "
                f"of {MAX_CERTIFICATE_BYTES} bytes"
            )
        return content
