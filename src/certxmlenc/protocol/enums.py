from enum import Enum


class ErrorCode(str, Enum):
    INVALID_ARGUMENT = "invalid_argument"
    CERTIFICATE_NOT_FOUND = "certificate_not_found"
    XML_ENCRYPTION_ERROR = "xml_encryption_error"
    INVARIANT_VIOLATION = "invariant_violation"
    INTERNAL_ERROR = "internal_error"


class BindingKind(str, Enum):
    LAZY = "lazy"
    DIRECT = "direct"
