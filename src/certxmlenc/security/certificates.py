"""
Certificate Resolution
----------------------

Answers "which certificate do we encrypt to?".

CertificateBinding is a tagged variant:
- LAZY:   thumbprint + resolver, re-resolved on every call (no caching)
- DIRECT: a certificate instance fixed at construction

A binding never hands back None: a resolver miss becomes
CertificateNotFoundError, and resolver exceptions are logged and re-raised
unchanged.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Optional, Protocol, runtime_checkable

from cryptography import x509

from certxmlenc.protocol.enums import BindingKind
from certxmlenc.protocol.errors import CertificateNotFoundError, InvalidArgumentError
from certxmlenc.utils.logging import get_logger
from certxmlenc.utils.thumbprint import certificate_thumbprint, normalize_thumbprint

logger = get_logger("certificates")

CERTIFICATE_SUFFIXES = (".pem", ".crt", ".cer")


@runtime_checkable
class CertificateResolver(Protocol):
    """Maps a thumbprint to a certificate, or None when unknown."""

    def resolve_certificate(self, thumbprint: str) -> Optional[x509.Certificate]:
        ...


@runtime_checkable
class CertificateSource(Protocol):
    """Anything that yields the certificate to encrypt to."""

    def resolve(self) -> Optional[x509.Certificate]:
        ...


@dataclass(frozen=True)
class CertificateBinding:
    """
    Deferred or immediate reference to exactly one certificate.

    Build with CertificateBinding.lazy(...) or CertificateBinding.direct(...).
    """
    kind: BindingKind
    thumbprint: Optional[str] = None
    resolver: Optional[CertificateResolver] = field(default=None, repr=False)
    certificate: Optional[x509.Certificate] = field(default=None, repr=False)
    logger: Optional[logging.Logger] = field(default=None, repr=False, compare=False)

    @classmethod
    def lazy(
        cls,
        thumbprint: str,
        resolver: CertificateResolver,
        logger: Optional[logging.Logger] = None,
    ) -> "CertificateBinding":
        if not thumbprint:
            raise InvalidArgumentError("thumbprint")
        if resolver is None:
            raise InvalidArgumentError("resolver")
        return cls(kind=BindingKind.LAZY, thumbprint=thumbprint, resolver=resolver, logger=logger)

    @classmethod
    def direct(cls, certificate: x509.Certificate) -> "CertificateBinding":
        if certificate is None:
            raise InvalidArgumentError("certificate")
        return cls(kind=BindingKind.DIRECT, certificate=certificate)

    def resolve(self) -> x509.Certificate:
        if self.kind is BindingKind.DIRECT:
            return self.certificate
        return self._resolve_lazy()

    def _resolve_lazy(self) -> x509.Certificate:
        log = self.logger or logger
        try:
            certificate = self.resolver.resolve_certificate(self.thumbprint)
            if certificate is None:
                raise CertificateNotFoundError(self.thumbprint)
            return certificate
        except Exception:
            log.error(
                "An exception occurred while trying to resolve certificate with thumbprint '%s'.",
                self.thumbprint,
                exc_info=True,
            )
            raise


class InMemoryCertificateResolver:
    """
    Certificates held in memory, keyed by normalized thumbprint.

    Reads are lock-free; writes swap in a new dict under a lock.
    """

    def __init__(self, certificates: Iterable[x509.Certificate] = ()):
        self._certificates: Dict[str, x509.Certificate] = {}
        self._lock = threading.Lock()
        for certificate in certificates:
            self.add(certificate)

    def add(self, certificate: x509.Certificate) -> str:
        """Register a certificate. Returns its thumbprint."""
        if certificate is None:
            raise InvalidArgumentError("certificate")
        thumbprint = certificate_thumbprint(certificate)
        with self._lock:
            certificates = dict(self._certificates)
            certificates[thumbprint] = certificate
            self._certificates = certificates
        return thumbprint

    def remove(self, thumbprint: str) -> bool:
        key = normalize_thumbprint(thumbprint)
        with self._lock:
            if key not in self._certificates:
                return False
            certificates = dict(self._certificates)
            del certificates[key]
            self._certificates = certificates
        return True

    def resolve_certificate(self, thumbprint: str) -> Optional[x509.Certificate]:
        return self._certificates.get(normalize_thumbprint(thumbprint))

    def __len__(self) -> int:
        return len(self._certificates)


class PemDirectoryCertificateResolver:
    """
    Looks certificates up in a directory of PEM or DER files.

    The directory is scanned on every lookup, so certificates dropped in
    (or rotated out) are picked up without reconstruction.
    """

    def __init__(self, directory: str | Path, logger: Optional[logging.Logger] = None):
        if not directory:
            raise InvalidArgumentError("directory")
        self._directory = Path(directory)
        if not self._directory.is_dir():
            raise InvalidArgumentError("directory", f"Certificate directory does not exist: {self._directory}")
        self._log = logger or get_logger("certificates")

    @property
    def directory(self) -> Path:
        return self._directory

    def resolve_certificate(self, thumbprint: str) -> Optional[x509.Certificate]:
        wanted = normalize_thumbprint(thumbprint)
        for certificate in self._iter_certificates():
            if certificate_thumbprint(certificate) == wanted:
                return certificate
        return None

    def _iter_certificates(self) -> Iterable[x509.Certificate]:
        for path in sorted(self._directory.iterdir()):
            if not path.is_file() or path.suffix.lower() not in CERTIFICATE_SUFFIXES:
                continue
            try:
                data = path.read_bytes()
                if b"-----BEGIN CERTIFICATE-----" in data:
                    certificates = x509.load_pem_x509_certificates(data)
                else:
                    certificates = [x509.load_der_x509_certificate(data)]
            except (OSError, ValueError) as e:
                self._log.warning("Skipping unreadable certificate file %s: %s", path.name, e)
                continue
            yield from certificates
