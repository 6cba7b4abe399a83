from .enums import ErrorCode, BindingKind
from .errors import (
    CertXmlError,
    InvalidArgumentError,
    CertificateNotFoundError,
    XmlEncryptionError,
    XmlDecryptionError,
    InvariantViolationError,
    crypto_fail,
)
from .models import EncryptedXmlInfo

__all__ = [
    "ErrorCode",
    "BindingKind",
    "CertXmlError",
    "InvalidArgumentError",
    "CertificateNotFoundError",
    "XmlEncryptionError",
    "XmlDecryptionError",
    "InvariantViolationError",
    "crypto_fail",
    "EncryptedXmlInfo",
]
