"""
certxmlenc security module

Components:
- certificates: certificate bindings and resolvers
- xml_encryptor: certificate-based XML encryption transform
"""

from .certificates import (
    CertificateResolver,
    CertificateSource,
    CertificateBinding,
    InMemoryCertificateResolver,
    PemDirectoryCertificateResolver,
)
from .xml_encryptor import (
    CertificateXmlEncryptor,
    EncryptionStep,
    XmlEncryptorServices,
    create_encryptor_from_env,
)

__all__ = [
    "CertificateResolver",
    "CertificateSource",
    "CertificateBinding",
    "InMemoryCertificateResolver",
    "PemDirectoryCertificateResolver",
    "CertificateXmlEncryptor",
    "EncryptionStep",
    "XmlEncryptorServices",
    "create_encryptor_from_env",
]
