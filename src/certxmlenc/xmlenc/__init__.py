from .constants import XMLENC_NS, XMLDSIG_NS, TYPE_ELEMENT, TYPE_CONTENT
from .encrypted_xml import EncryptedXml, ENCRYPTED_DATA, certificate_from_key_info, issuer_serial_from_key_info
from .decryptor import EncryptedXmlDecryptor, PrivateKeyResolver, InMemoryPrivateKeyResolver

__all__ = [
    "XMLENC_NS",
    "XMLDSIG_NS",
    "TYPE_ELEMENT",
    "TYPE_CONTENT",
    "EncryptedXml",
    "ENCRYPTED_DATA",
    "certificate_from_key_info",
    "issuer_serial_from_key_info",
    "EncryptedXmlDecryptor",
    "PrivateKeyResolver",
    "InMemoryPrivateKeyResolver",
]
