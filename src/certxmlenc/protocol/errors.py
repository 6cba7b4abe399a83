from typing import NoReturn, Optional
from .enums import ErrorCode


class CertXmlError(Exception):
    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        self.code = code or ErrorCode.INTERNAL_ERROR


class InvalidArgumentError(CertXmlError, ValueError):
    """Raised when a required argument is missing or empty."""

    def __init__(self, argument: str, message: Optional[str] = None):
        super().__init__(
            message or f"Argument '{argument}' must not be null or empty.",
            ErrorCode.INVALID_ARGUMENT,
        )
        self.argument = argument


class CertificateNotFoundError(CertXmlError):
    """Raised when no certificate matches a thumbprint."""

    def __init__(self, thumbprint: str):
        super().__init__(
            f"A certificate with the thumbprint '{thumbprint}' could not be found.",
            ErrorCode.CERTIFICATE_NOT_FOUND,
        )
        self.thumbprint = thumbprint


class XmlEncryptionError(CertXmlError):
    """Raised by the XML-Encryption engine."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.XML_ENCRYPTION_ERROR)


class XmlDecryptionError(XmlEncryptionError):
    """Raised when an EncryptedData element cannot be decrypted."""


class InvariantViolationError(CertXmlError):
    """Raised when an internal contract is broken. Never recoverable."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.INVARIANT_VIOLATION)


def crypto_fail(message: str) -> NoReturn:
    raise InvariantViolationError(message)
