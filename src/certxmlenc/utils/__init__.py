from .logging import get_logger, configure_logging
from .thumbprint import certificate_thumbprint, normalize_thumbprint

__all__ = [
    "get_logger",
    "configure_logging",
    "certificate_thumbprint",
    "normalize_thumbprint",
]
