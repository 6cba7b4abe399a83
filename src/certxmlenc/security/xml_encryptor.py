"""
Certificate XML Encryptor
-------------------------

Encrypts an XML element to an X.509 certificate and returns an
EncryptedXmlInfo that pairs the <EncryptedData> element with the decryptor
able to reverse it.

The encryption step is pluggable: pass an EncryptionStep through
XmlEncryptorServices to replace the default (the encryptor itself).

Usage:
    encryptor = CertificateXmlEncryptor.from_thumbprint(thumbprint, resolver)
    info = encryptor.encrypt(key_element)
    store(info.encrypted_element)
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from cryptography import x509
from lxml import etree

from certxmlenc.core.settings import XmlEncryptionSettings, get_settings
from certxmlenc.protocol.errors import InvalidArgumentError, crypto_fail
from certxmlenc.protocol.models import EncryptedXmlInfo
from certxmlenc.utils.logging import get_logger
from certxmlenc.utils.thumbprint import certificate_thumbprint
from certxmlenc.xmlenc.decryptor import EncryptedXmlDecryptor
from certxmlenc.xmlenc.encrypted_xml import EncryptedXml
from .certificates import (
    CertificateBinding,
    CertificateResolver,
    CertificateSource,
    PemDirectoryCertificateResolver,
)

# Wrapper element; the encryption engine cannot replace a tree's root element.
SYNTHETIC_ROOT = "root"


@runtime_checkable
class EncryptionStep(Protocol):
    """Produces the <EncryptedData> for one element of a working tree."""

    def perform_encryption(self, encrypted_xml: EncryptedXml, element_to_encrypt) -> etree._Element:
        ...


@dataclass
class XmlEncryptorServices:
    """
    Optional collaborators for CertificateXmlEncryptor.

    Attributes:
        logger: Logger to use (defaults to "certxmlenc.xml_encryptor")
        encryption_step: Replacement for the built-in encryption step
        settings: Algorithm settings for the EncryptedXml engine
    """
    logger: Optional[logging.Logger] = None
    encryption_step: Optional[EncryptionStep] = None
    settings: Optional[XmlEncryptionSettings] = None


class CertificateXmlEncryptor:
    """
    Encrypts XML elements to an X.509 certificate.
    """

    def __init__(
        self,
        certificate_source: CertificateSource,
        services: Optional[XmlEncryptorServices] = None,
    ):
        if certificate_source is None:
            raise InvalidArgumentError("certificate_source")

        services = services or XmlEncryptorServices()

        self._certificate_source = certificate_source
        self._encryptor: EncryptionStep = services.encryption_step or self
        self._log = services.logger or get_logger("xml_encryptor")
        self._settings = services.settings

    @classmethod
    def from_thumbprint(
        cls,
        thumbprint: str,
        resolver: CertificateResolver,
        services: Optional[XmlEncryptorServices] = None,
    ) -> "CertificateXmlEncryptor":
        """Encrypt to whatever certificate `resolver` returns for `thumbprint` at call time."""
        logger = services.logger if services else None
        return cls(CertificateBinding.lazy(thumbprint, resolver, logger=logger), services)

    @classmethod
    def from_certificate(
        cls,
        certificate: x509.Certificate,
        services: Optional[XmlEncryptorServices] = None,
    ) -> "CertificateXmlEncryptor":
        """Always encrypt to `certificate`."""
        return cls(CertificateBinding.direct(certificate), services)

    # --- Public API --------------------------------------------------

    def encrypt(self, plaintext_element) -> EncryptedXmlInfo:
        """
        Encrypt `plaintext_element` (an lxml element or ElementTree).

        The caller's tree is not modified.
        """
        if plaintext_element is None:
            raise InvalidArgumentError("plaintext_element")
        if isinstance(plaintext_element, etree._ElementTree):
            plaintext_element = plaintext_element.getroot()
        if not isinstance(plaintext_element, etree._Element):
            raise InvalidArgumentError(
                "plaintext_element",
                f"Expected an lxml element, got {type(plaintext_element).__name__}",
            )

        # <EncryptedData Type="http://www.w3.org/2001/04/xmlenc#Element" xmlns="http://www.w3.org/2001/04/xmlenc#">
        #   ...
        # </EncryptedData>

        encrypted_element = self._encrypt_element(plaintext_element)
        return EncryptedXmlInfo(encrypted_element, EncryptedXmlDecryptor)

    def perform_encryption(self, encrypted_xml: EncryptedXml, element_to_encrypt) -> etree._Element:
        """Default EncryptionStep: encrypt to the bound certificate."""
        certificate = self._certificate_source.resolve()
        if certificate is None:
            crypto_fail("Certificate source returned None.")

        thumbprint = certificate_thumbprint(certificate)
        self._log.info("Encrypting to X.509 certificate with thumbprint '%s'.", thumbprint)

        try:
            return encrypted_xml.encrypt(element_to_encrypt, certificate)
        except Exception:
            self._log.error(
                "An error occurred while encrypting to X.509 certificate with thumbprint '%s'.",
                thumbprint,
                exc_info=True,
            )
            raise

    # --- Internals ---------------------------------------------------

    def _encrypt_element(self, plaintext_element):
        # Work on a copy under a throwaway <root/>, so the element to encrypt
        # always has a parent to be replaced in.
        wrapper = etree.Element(SYNTHETIC_ROOT)
        working_copy = copy.deepcopy(plaintext_element)
        working_copy.tail = None
        wrapper.append(working_copy)
        document = etree.ElementTree(wrapper)
        element_to_encrypt = document.getroot()[0]

        encrypted_xml = self._new_encrypted_xml(document)
        encrypted_data = self._encryptor.perform_encryption(encrypted_xml, element_to_encrypt)
        EncryptedXml.replace_element(element_to_encrypt, encrypted_data, content=False)

        # Strip <root/> back off into a standalone tree.
        return etree.fromstring(etree.tostring(document.getroot()[0], with_tail=False))

    def _new_encrypted_xml(self, document) -> EncryptedXml:
        if self._settings is None:
            return EncryptedXml(document)
        return EncryptedXml(
            document,
            content_algorithm=self._settings.content_algorithm,
            key_transport_algorithm=self._settings.key_transport_algorithm,
            include_certificate=self._settings.include_certificate,
        )


def create_encryptor_from_env(
    resolver: Optional[CertificateResolver] = None,
    services: Optional[XmlEncryptorServices] = None,
) -> CertificateXmlEncryptor:
    """
    Factory configuring a thumbprint-bound encryptor from environment variables.

    Environment variables:
        CERTXMLENC_CERTIFICATE_THUMBPRINT=<hex thumbprint>   (required)
        CERTXMLENC_CERTIFICATE_DIR=/path/to/certs            (used when no resolver is passed)
        CERTXMLENC_CONTENT_ALGORITHM=aes256-cbc|aes128-cbc|aes256-gcm|...
        CERTXMLENC_KEY_TRANSPORT_ALGORITHM=rsa-oaep-mgf1p|rsa-1_5
    """
    services = services or XmlEncryptorServices()
    settings = services.settings or get_settings()

    if not settings.certificate_thumbprint:
        raise InvalidArgumentError(
            "certificate_thumbprint",
            "CERTXMLENC_CERTIFICATE_THUMBPRINT is required",
        )

    if resolver is None:
        if not settings.certificate_dir:
            raise InvalidArgumentError(
                "resolver",
                "Pass a resolver or set CERTXMLENC_CERTIFICATE_DIR",
            )
        resolver = PemDirectoryCertificateResolver(settings.certificate_dir, logger=services.logger)

    services = XmlEncryptorServices(
        logger=services.logger,
        encryption_step=services.encryption_step,
        settings=settings,
    )
    return CertificateXmlEncryptor.from_thumbprint(settings.certificate_thumbprint, resolver, services)
