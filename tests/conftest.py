"""Root conftest for all tests - provides shared fixtures."""

import logging

import pytest

from gcauth.verifier import GCAuth

from .helpers import (
    BUNDLE_ID,
    CERT_URL,
    NOW_MS,
    FakeKeyHost,
    GameCenterPKI,
)


@pytest.fixture(scope="session")
def pki():
    """Test CA hierarchy. Session scoped: RSA key generation is slow."""
    return GameCenterPKI()


@pytest.fixture
def key_host(pki):
    """Fake key host serving the trusted Apple leaf at CERT_URL."""
    return FakeKeyHost({CERT_URL: pki.leaf.der})


@pytest.fixture
def make_auth(pki):
    """Factory for GCAuth instances wired to a fake key host and fixed clock."""

    def _make(host: FakeKeyHost, **kwargs) -> GCAuth:
        kwargs.setdefault("trust_roots", [pki.root.cert])
        kwargs.setdefault("clock", lambda: NOW_MS)
        kwargs.setdefault("fetch_intermediates", False)
        kwargs.setdefault("max_future_skew_millis", None)
        kwargs.setdefault("cache_max_age_seconds", None)
        return GCAuth(BUNDLE_ID, transport=host.transport, **kwargs)

    return _make


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Undo configure_logging() calls made by a test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
