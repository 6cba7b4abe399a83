from __future__ import annotations

from cryptography import x509
from cryptography.hazmat.primitives import hashes


def certificate_thumbprint(certificate: x509.Certificate) -> str:
    """SHA-1 over the DER encoding, upper-case hex (the usual X.509 thumbprint)."""
    return certificate.fingerprint(hashes.SHA1()).hex().upper()


def normalize_thumbprint(thumbprint: str) -> str:
    """Drop whitespace and ':' separators and upper-case the result."""
    return "".join(ch for ch in thumbprint if not ch.isspace() and ch != ":").upper()
