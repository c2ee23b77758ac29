"""Helpers for generating test PKI material and a fake key host.

Certificates are generated with cryptography so no real Apple material
or network access is needed.
"""

import asyncio
import datetime
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

import httpx
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.x509.oid import AuthorityInformationAccessOID, NameOID

# Fixed point in time shared by the scenario tests
TIMESTAMP = 1_700_000_000_000
NOW_MS = TIMESTAMP + 30_000

BUNDLE_ID = "com.example.app"
PLAYER_ID = "T:abc123"
SALT = bytes([0x01, 0x02])
CERT_NAME = "gc-prod-10.cer"
KEY_HOST = "static.gc.apple.com"
SANDBOX_HOST = "sandbox.gc.apple.com"
PUBLIC_KEY_URL = f"https://{KEY_HOST}/public-key/{CERT_NAME}"
CERT_URL = PUBLIC_KEY_URL
AIA_URL = "http://ca.example.test/intermediate.cer"

VALID_FROM = datetime.datetime(2020, 1, 1, tzinfo=datetime.timezone.utc)
VALID_TO = datetime.datetime(2040, 1, 1, tzinfo=datetime.timezone.utc)


def make_name(common_name: str, organization: Optional[str] = None) -> x509.Name:
    """Subject encoded country-first, so it renders 'CN=..., OU=..., ..., C=US'."""
    return x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
        x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, "California"),
        x509.NameAttribute(NameOID.LOCALITY_NAME, "Cupertino"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization or common_name),
        x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, "Game Center"),
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
    ])


APPLE_SUBJECT = make_name("Apple Inc.")


def generate_rsa_key(bits: int = 2048) -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=bits)


@dataclass
class IssuedCert:
    """A certificate and its private key."""

    cert: x509.Certificate
    key: object

    @property
    def der(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.DER)

    @property
    def pem(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.PEM)


def issue_cert(
    subject: x509.Name,
    issuer: Optional[IssuedCert] = None,
    *,
    key=None,
    ca: bool = False,
    not_before: datetime.datetime = VALID_FROM,
    not_after: datetime.datetime = VALID_TO,
    aia_url: Optional[str] = None,
    path_length: Optional[int] = None,
    key_cert_sign: Optional[bool] = None,
) -> IssuedCert:
    """Issue a certificate signed by issuer, or self-signed when issuer is None.

    key_cert_sign adds a KeyUsage extension with that keyCertSign bit; None
    leaves KeyUsage out.
    """
    key = key or generate_rsa_key()
    issuer_name = issuer.cert.subject if issuer else subject
    signing_key = issuer.key if issuer else key

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer_name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=ca, path_length=path_length), critical=True)
    )
    if key_cert_sign is not None:
        builder = builder.add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=key_cert_sign,
                crl_sign=key_cert_sign,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    if aia_url:
        builder = builder.add_extension(
            x509.AuthorityInformationAccess([
                x509.AccessDescription(
                    AuthorityInformationAccessOID.CA_ISSUERS,
                    x509.UniformResourceIdentifier(aia_url),
                )
            ]),
            critical=False,
        )
    return IssuedCert(cert=builder.sign(signing_key, hashes.SHA256()), key=key)


def make_ca(common_name: str, issuer: Optional[IssuedCert] = None, **kwargs) -> IssuedCert:
    return issue_cert(make_name(common_name), issuer, ca=True, **kwargs)


class GameCenterPKI:
    """A small CA hierarchy plus leaves for every rejection path."""

    def __init__(self):
        self.root = make_ca("GC Test Root CA")
        self.intermediate = make_ca("GC Test Intermediate CA", self.root)
        self.leaf = issue_cert(APPLE_SUBJECT, self.root)
        self.leaf_via_intermediate = issue_cert(
            APPLE_SUBJECT, self.intermediate, aia_url=AIA_URL
        )

        self.untrusted_root = make_ca("Untrusted Root CA")
        self.untrusted_leaf = issue_cert(APPLE_SUBJECT, self.untrusted_root)

        self.wrong_subject_leaf = issue_cert(
            make_name("Example Games Ltd.", organization="Apple Inc."), self.root
        )
        self.expired_leaf = issue_cert(
            APPLE_SUBJECT,
            self.root,
            not_before=datetime.datetime(2019, 1, 1, tzinfo=datetime.timezone.utc),
            not_after=datetime.datetime(2021, 1, 1, tzinfo=datetime.timezone.utc),
        )
        self.ec_leaf = issue_cert(
            APPLE_SUBJECT, self.root, key=ec.generate_private_key(ec.SECP256R1())
        )


def build_payload(player_id: str, bundle_id: str, timestamp: int, salt: bytes) -> bytes:
    """Signed payload assembled independently of gcauth."""
    return (
        player_id.encode("utf-8")
        + bundle_id.encode("utf-8")
        + timestamp.to_bytes(8, "big", signed=True)
        + salt
    )


def sign_payload(
    key: rsa.RSAPrivateKey,
    player_id: str = PLAYER_ID,
    bundle_id: str = BUNDLE_ID,
    timestamp: int = TIMESTAMP,
    salt: bytes = SALT,
) -> bytes:
    """Sign like Game Center: RSASSA-PKCS1-v1_5 over SHA-256."""
    return key.sign(
        build_payload(player_id, bundle_id, timestamp, salt),
        padding.PKCS1v15(),
        hashes.SHA256(),
    )


Route = Union[bytes, httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class FakeKeyHost:
    """Serves canned responses through httpx.MockTransport and records requests."""

    def __init__(self, routes: Optional[Dict[str, Route]] = None, delay: float = 0.0):
        self.routes: Dict[str, Route] = dict(routes or {})
        self.requests: List[httpx.Request] = []
        self.delay = delay
        self.transport = httpx.MockTransport(self._handle)

    @property
    def urls(self) -> List[str]:
        return [str(r.url) for r in self.requests]

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404)
        if isinstance(route, Exception):
            raise route
        if isinstance(route, httpx.Response):
            return httpx.Response(
                route.status_code, headers=route.headers, content=route.content
            )
        if callable(route):
            return route(request)
        return httpx.Response(200, content=route)
