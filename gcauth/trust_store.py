"""Root certificate store used for chain-of-trust validation.

By default the host's OpenSSL CA bundle (or CA directory) is loaded, the
same roots TLS clients on the machine trust. When the host has none, the
certifi bundle that ships with httpx is used. GC_AUTH_CA_BUNDLE replaces
both.
"""

import logging
import os
import ssl
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import certifi
from cryptography import x509
from cryptography.hazmat.primitives import hashes

from gcauth.core.config import CA_BUNDLE_PATH

log = logging.getLogger("gcauth.trust_store")


def load_pem_bundle(path: str) -> List[x509.Certificate]:
    """Load every certificate from a PEM file.

    Raises:
        FileNotFoundError: If path does not exist.
        ValueError: If the file holds no parseable certificate.
    """
    data = Path(path).read_bytes()
    return x509.load_pem_x509_certificates(data)


def _load_ca_directory(path: str) -> List[x509.Certificate]:
    """Load an OpenSSL hashed CA directory, skipping unreadable entries."""
    certs: List[x509.Certificate] = []
    for entry in sorted(Path(path).iterdir()):
        if not entry.is_file():
            continue
        try:
            certs.extend(x509.load_pem_x509_certificates(entry.read_bytes()))
        except (OSError, ValueError) as e:
            log.debug(f"Skipping {entry}: {e}")
    return certs


def load_default_roots(ca_bundle: Optional[str] = None) -> List[x509.Certificate]:
    """Load the root store.

    Order of precedence:
    1. ca_bundle argument / GC_AUTH_CA_BUNDLE
    2. Host OpenSSL default CA file, then CA directory
    3. certifi bundle

    Returns:
        List of root certificates (never empty).
    """
    explicit = ca_bundle or CA_BUNDLE_PATH
    if explicit:
        roots = load_pem_bundle(explicit)
        log.info(f"Loaded {len(roots)} trusted roots from {explicit}")
        return roots

    paths = ssl.get_default_verify_paths()
    for cafile in (paths.cafile, paths.openssl_cafile):
        if cafile and os.path.isfile(cafile):
            try:
                roots = load_pem_bundle(cafile)
            except ValueError as e:
                log.warning(f"Could not load CA file {cafile}: {e}")
                continue
            log.info(f"Loaded {len(roots)} trusted roots from {cafile}")
            return roots

    for capath in (paths.capath, paths.openssl_capath):
        if capath and os.path.isdir(capath):
            roots = _load_ca_directory(capath)
            if roots:
                log.info(f"Loaded {len(roots)} trusted roots from {capath}")
                return roots

    roots = load_pem_bundle(certifi.where())
    log.info(f"Loaded {len(roots)} trusted roots from certifi")
    return roots


def _fingerprint(cert: x509.Certificate) -> bytes:
    return cert.fingerprint(hashes.SHA256())


class CertificatePool:
    """Certificates indexed by subject for issuer lookup."""

    def __init__(self, certs: Iterable[x509.Certificate] = ()):
        self._by_subject: Dict[x509.Name, List[x509.Certificate]] = {}
        self._fingerprints: set[bytes] = set()
        for cert in certs:
            self.add(cert)

    def add(self, cert: x509.Certificate) -> None:
        fp = _fingerprint(cert)
        if fp in self._fingerprints:
            return
        self._fingerprints.add(fp)
        self._by_subject.setdefault(cert.subject, []).append(cert)

    def issuers_of(self, cert: x509.Certificate) -> List[x509.Certificate]:
        """Candidates whose subject matches cert's issuer name."""
        return list(self._by_subject.get(cert.issuer, ()))

    def __contains__(self, cert: object) -> bool:
        if not isinstance(cert, x509.Certificate):
            return False
        return _fingerprint(cert) in self._fingerprints

    def __len__(self) -> int:
        return len(self._fingerprints)
