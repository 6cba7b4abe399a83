"""
Central configuration for certxmlenc.

Settings are read from environment variables (prefix ``CERTXMLENC_``)
using pydantic-settings.

Usage:

    from certxmlenc.core.settings import get_settings

    settings = get_settings()
    encrypted_xml = EncryptedXml(
        content_algorithm=settings.content_algorithm,
        key_transport_algorithm=settings.key_transport_algorithm,
    )
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from certxmlenc.xmlenc.constants import (
    AES256_CBC,
    CONTENT_ALGORITHMS,
    KEY_TRANSPORT_ALGORITHMS,
    RSA_OAEP_MGF1P,
    expand_algorithm,
)

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET")


class XmlEncryptionSettings(BaseSettings):
    """
    Settings for certificate-based XML encryption.
    """

    model_config = SettingsConfigDict(env_prefix="CERTXMLENC_", extra="ignore")

    content_algorithm: str = Field(
        default=AES256_CBC,
        description="Symmetric algorithm for the payload (short name or URI).",
    )
    key_transport_algorithm: str = Field(
        default=RSA_OAEP_MGF1P,
        description="Algorithm used to wrap the session key with the certificate's RSA key.",
    )
    include_certificate: bool = Field(
        default=True,
        description="Embed the full X509Certificate in KeyInfo (issuer/serial is always embedded).",
    )
    certificate_thumbprint: Optional[str] = Field(
        default=None,
        description="Thumbprint of the certificate used by create_encryptor_from_env().",
    )
    certificate_dir: Optional[str] = Field(
        default=None,
        description="Directory of PEM/DER certificates searched by thumbprint.",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level for the certxmlenc logger (DEBUG/INFO/WARNING/ERROR).",
    )

    @field_validator("content_algorithm")
    @classmethod
    def _validate_content_algorithm(cls, v: str) -> str:
        uri = expand_algorithm(v)
        if uri not in CONTENT_ALGORITHMS:
            raise ValueError(f"Unsupported content encryption algorithm: {v}")
        return uri

    @field_validator("key_transport_algorithm")
    @classmethod
    def _validate_key_transport(cls, v: str) -> str:
        uri = expand_algorithm(v)
        if uri not in KEY_TRANSPORT_ALGORITHMS:
            raise ValueError(f"Unsupported key transport algorithm: {v}")
        return uri

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        v = (v or "INFO").strip().upper()
        if v == "WARN":
            v = "WARNING"
        if v not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return v


@lru_cache(maxsize=1)
def get_settings() -> XmlEncryptionSettings:
    """
    Cached accessor for XmlEncryptionSettings.
    """
    return XmlEncryptionSettings()
