"""
Decryptor for certificate-encrypted XML.

Reverses CertificateXmlEncryptor output: reads the certificate embedded in
the <EncryptedKey>, asks a PrivateKeyResolver for the matching private key
(by thumbprint) and decrypts the payload. When no certificate is embedded,
the key is located by the X509IssuerSerial pair instead.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional, Protocol, Tuple, runtime_checkable

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa

from certxmlenc.protocol.errors import (
    CertificateNotFoundError,
    InvalidArgumentError,
    XmlDecryptionError,
)
from certxmlenc.utils.logging import get_logger
from certxmlenc.utils.thumbprint import certificate_thumbprint, normalize_thumbprint
from .encrypted_xml import (
    EncryptedXml,
    certificate_from_key_info,
    find_encrypted_key,
    is_encrypted_data,
    issuer_serial_from_key_info,
)


@runtime_checkable
class PrivateKeyResolver(Protocol):
    """Locates the private key belonging to a certificate."""

    def resolve_private_key(self, thumbprint: str) -> Optional[rsa.RSAPrivateKey]:
        ...

    def resolve_private_key_by_issuer_serial(self, issuer: str, serial_number: int) -> Optional[rsa.RSAPrivateKey]:
        ...


class InMemoryPrivateKeyResolver:
    """
    Private keys held in memory, keyed by certificate thumbprint and by
    (issuer, serial number).

    Usage:
        keys = InMemoryPrivateKeyResolver()
        keys.add(certificate, private_key)
    """

    def __init__(self):
        self._keys: Dict[str, rsa.RSAPrivateKey] = {}
        self._keys_by_issuer_serial: Dict[Tuple[str, int], rsa.RSAPrivateKey] = {}
        self._lock = threading.Lock()

    def add(self, certificate: x509.Certificate, private_key: rsa.RSAPrivateKey) -> str:
        thumbprint = certificate_thumbprint(certificate)
        issuer_serial = (certificate.issuer.rfc4514_string(), certificate.serial_number)
        with self._lock:
            keys = dict(self._keys)
            keys[thumbprint] = private_key
            by_issuer_serial = dict(self._keys_by_issuer_serial)
            by_issuer_serial[issuer_serial] = private_key
            self._keys = keys
            self._keys_by_issuer_serial = by_issuer_serial
        return thumbprint

    def resolve_private_key(self, thumbprint: str) -> Optional[rsa.RSAPrivateKey]:
        return self._keys.get(normalize_thumbprint(thumbprint))

    def resolve_private_key_by_issuer_serial(self, issuer: str, serial_number: int) -> Optional[rsa.RSAPrivateKey]:
        return self._keys_by_issuer_serial.get((issuer, serial_number))


class EncryptedXmlDecryptor:
    """
    Decrypts <EncryptedData> elements produced by CertificateXmlEncryptor.
    """

    def __init__(
        self,
        private_key_resolver: PrivateKeyResolver,
        logger: Optional[logging.Logger] = None,
    ):
        if private_key_resolver is None:
            raise InvalidArgumentError("private_key_resolver")
        self._resolver = private_key_resolver
        self._log = logger or get_logger("decryptor")

    def decrypt(self, encrypted_element):
        if encrypted_element is None:
            raise InvalidArgumentError("encrypted_element")
        if not is_encrypted_data(encrypted_element):
            raise XmlDecryptionError("Expected an xenc:EncryptedData element")

        encrypted_key = find_encrypted_key(encrypted_element)
        if encrypted_key is None:
            raise XmlDecryptionError("EncryptedData has no EncryptedKey in its KeyInfo")

        private_key = self._locate_private_key(encrypted_key)
        return EncryptedXml().decrypt_element(encrypted_element, private_key)

    def _locate_private_key(self, encrypted_key) -> rsa.RSAPrivateKey:
        certificate = certificate_from_key_info(encrypted_key)
        if certificate is not None:
            thumbprint = certificate_thumbprint(certificate)
            self._log.debug("Looking up private key for certificate with thumbprint '%s'.", thumbprint)
            private_key = self._resolver.resolve_private_key(thumbprint)
            if private_key is None:
                raise CertificateNotFoundError(thumbprint)
            return private_key

        issuer_serial = issuer_serial_from_key_info(encrypted_key)
        if issuer_serial is None:
            raise XmlDecryptionError("EncryptedKey identifies no certificate")

        issuer, serial_number = issuer_serial
        self._log.debug(
            "Looking up private key for certificate issued by '%s' with serial number %d.",
            issuer,
            serial_number,
        )
        private_key = self._resolver.resolve_private_key_by_issuer_serial(issuer, serial_number)
        if private_key is None:
            raise XmlDecryptionError(
                f"No private key for certificate issued by '{issuer}' with serial number {serial_number}"
            )
        return private_key
