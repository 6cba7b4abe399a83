from .security.xml_encryptor import (
    CertificateXmlEncryptor,
    EncryptionStep,
    XmlEncryptorServices,
    create_encryptor_from_env,
)
from .security.certificates import (
    CertificateBinding,
    CertificateResolver,
    InMemoryCertificateResolver,
    PemDirectoryCertificateResolver,
)
from .xmlenc import EncryptedXml, EncryptedXmlDecryptor, InMemoryPrivateKeyResolver
from .protocol import (
    EncryptedXmlInfo,
    CertXmlError,
    InvalidArgumentError,
    CertificateNotFoundError,
    XmlEncryptionError,
    XmlDecryptionError,
    InvariantViolationError,
)
from .core.settings import XmlEncryptionSettings, get_settings

__all__ = [
    "CertificateXmlEncryptor",
    "EncryptionStep",
    "XmlEncryptorServices",
    "create_encryptor_from_env",
    "CertificateBinding",
    "CertificateResolver",
    "InMemoryCertificateResolver",
    "PemDirectoryCertificateResolver",
    "EncryptedXml",
    "EncryptedXmlDecryptor",
    "InMemoryPrivateKeyResolver",
    "EncryptedXmlInfo",
    "CertXmlError",
    "InvalidArgumentError",
    "CertificateNotFoundError",
    "XmlEncryptionError",
    "XmlDecryptionError",
    "InvariantViolationError",
    "XmlEncryptionSettings",
    "get_settings",
]
