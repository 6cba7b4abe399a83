"""
Shared fixtures: throwaway self-signed certificates and resolvers.
"""

import datetime
from typing import List, Optional

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID
from lxml import etree


def make_certificate(common_name: str = "certxmlenc test", private_key=None):
    """Create a self-signed certificate. Returns (certificate, private_key)."""
    if private_key is None:
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(private_key, hashes.SHA256())
    )
    return certificate, private_key


class RecordingResolver:
    """Resolver returning queued results (certificates, None or exceptions) in order."""

    def __init__(self, *results):
        self._results: List = list(results)
        self.calls: List[str] = []

    def resolve_certificate(self, thumbprint: str) -> Optional[x509.Certificate]:
        self.calls.append(thumbprint)
        result = self._results.pop(0) if len(self._results) > 1 else self._results[0]
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture(scope="session")
def rsa_pair():
    return make_certificate("certxmlenc primary")


@pytest.fixture(scope="session")
def other_rsa_pair():
    return make_certificate("certxmlenc secondary")


@pytest.fixture(scope="session")
def ec_certificate():
    certificate, _ = make_certificate("certxmlenc ec", private_key=ec.generate_private_key(ec.SECP256R1()))
    return certificate


@pytest.fixture
def plaintext():
    """A key-ring style element, root of its own document."""
    return etree.fromstring(
        b'<key id="80732141-ec8f-4b80-af9c-c4d2d1ff8901" version="1">'
        b"<creationDate>2026-10-18T00:00:00Z</creationDate>"
        b'<descriptor deserializerType="AuthenticatedEncryptorDescriptorDeserializer">'
        b'<masterKey p4:requiresEncryption="true" xmlns:p4="http://schemas.asp.net/2015/03/dataProtection">'
        b"<value>k5Zc1OVk0bYb3nJmV3V5fQ==</value>"
        b"</masterKey>"
        b"</descriptor>"
        b"</key>"
    )
