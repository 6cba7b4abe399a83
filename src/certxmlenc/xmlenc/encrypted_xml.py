"""
XML-Encryption Engine
---------------------

Hybrid encryption of XML elements to an X.509 certificate, producing the
W3C <EncryptedData> vocabulary.

Features:
- Fresh random session key + IV per call
- AES-CBC (xmlenc 1.0) or AES-GCM (xmlenc 1.1) for the payload
- RSA-OAEP (MGF1/SHA-1) or RSA PKCS#1 v1.5 key transport
- KeyInfo carries X509IssuerSerial and, optionally, the certificate itself
- Element and Content encryption, in-place replacement, document decryption

Output layout (Type=Element):

    <EncryptedData Type="...#Element" xmlns="http://www.w3.org/2001/04/xmlenc#">
      <EncryptionMethod Algorithm="...#aes256-cbc"/>
      <ds:KeyInfo>
        <EncryptedKey>
          <EncryptionMethod Algorithm="...#rsa-oaep-mgf1p">
            <ds:DigestMethod Algorithm="...#sha1"/>
          </EncryptionMethod>
          <ds:KeyInfo>
            <ds:X509Data>...</ds:X509Data>
          </ds:KeyInfo>
          <CipherData><CipherValue>...</CipherValue></CipherData>
        </EncryptedKey>
      </ds:KeyInfo>
      <CipherData><CipherValue>...</CipherValue></CipherData>
    </EncryptedData>
"""

from __future__ import annotations

import base64
import binascii
import os
from typing import Any, Callable, List, Optional, Tuple

from cryptography import x509
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, padding as sym_padding
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.serialization import Encoding
from lxml import etree

from certxmlenc.protocol.errors import (
    InvalidArgumentError,
    XmlDecryptionError,
    XmlEncryptionError,
)
from .constants import (
    AES256_CBC,
    CONTENT_ALGORITHMS,
    GCM_ALGORITHMS,
    KEY_TRANSPORT_ALGORITHMS,
    RSA_1_5,
    RSA_OAEP_MGF1P,
    SHA1,
    TYPE_CONTENT,
    TYPE_ELEMENT,
    XMLDSIG_NS,
    XMLENC_NS,
    NSMAP,
    expand_algorithm,
    qname,
)

ENCRYPTED_DATA = qname(XMLENC_NS, "EncryptedData")
ENCRYPTED_KEY = qname(XMLENC_NS, "EncryptedKey")

_CBC_IV_BYTES = 16
_GCM_IV_BYTES = 12
_GCM_TAG_BYTES = 16
_AES_BLOCK_BITS = 128

KeyLocator = Callable[[Any], Optional[rsa.RSAPrivateKey]]


def _safe_parser() -> etree.XMLParser:
    return etree.XMLParser(resolve_entities=False, no_network=True)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(text: Optional[str]) -> bytes:
    if not text:
        raise XmlDecryptionError("Empty CipherValue")
    try:
        return base64.b64decode("".join(text.split()), validate=True)
    except (binascii.Error, ValueError):
        raise XmlDecryptionError("Invalid base64 in CipherValue")


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA1()),
        algorithm=hashes.SHA1(),
        label=None,
    )


def is_encrypted_data(node: Any) -> bool:
    return isinstance(node, etree._Element) and node.tag == ENCRYPTED_DATA


def find_encrypted_key(encrypted_data) -> Optional[Any]:
    return encrypted_data.find("ds:KeyInfo/xenc:EncryptedKey", NSMAP)


def certificate_from_key_info(encrypted_key) -> Optional[x509.Certificate]:
    """Read the X509Certificate embedded in an <EncryptedKey>, if any."""
    node = encrypted_key.find("ds:KeyInfo/ds:X509Data/ds:X509Certificate", NSMAP)
    if node is None or not node.text:
        return None
    try:
        der = base64.b64decode("".join(node.text.split()), validate=True)
        return x509.load_der_x509_certificate(der)
    except ValueError as e:
        raise XmlDecryptionError(f"Embedded X509Certificate is invalid: {e}")


def issuer_serial_from_key_info(encrypted_key) -> Optional[Tuple[str, int]]:
    """Read the (issuer name, serial number) pair of an <EncryptedKey>, if any."""
    node = encrypted_key.find("ds:KeyInfo/ds:X509Data/ds:X509IssuerSerial", NSMAP)
    if node is None:
        return None
    issuer = node.findtext("ds:X509IssuerName", namespaces=NSMAP)
    serial = node.findtext("ds:X509SerialNumber", namespaces=NSMAP)
    if not issuer or not serial:
        raise XmlDecryptionError("X509IssuerSerial is incomplete")
    try:
        return issuer.strip(), int(serial.strip())
    except ValueError:
        raise XmlDecryptionError(f"X509SerialNumber is not an integer: {serial!r}")


class EncryptedXml:
    """
    Encrypts and decrypts XML elements with X.509 certificates.

    Args:
        document: Tree the instance operates on (needed by decrypt_document)
        content_algorithm: Payload algorithm, short name or URI
        key_transport_algorithm: Session-key wrapping algorithm, short name or URI
        include_certificate: Embed the certificate DER in KeyInfo
    """

    def __init__(
        self,
        document: Any = None,
        content_algorithm: str = AES256_CBC,
        key_transport_algorithm: str = RSA_OAEP_MGF1P,
        include_certificate: bool = True,
    ):
        content_algorithm = expand_algorithm(content_algorithm)
        key_transport_algorithm = expand_algorithm(key_transport_algorithm)

        if content_algorithm not in CONTENT_ALGORITHMS:
            raise XmlEncryptionError(f"Unsupported content encryption algorithm: {content_algorithm}")
        if key_transport_algorithm not in KEY_TRANSPORT_ALGORITHMS:
            raise XmlEncryptionError(f"Unsupported key transport algorithm: {key_transport_algorithm}")

        if isinstance(document, etree._Element):
            document = document.getroottree()

        self.document: Optional[etree._ElementTree] = document
        self.content_algorithm = content_algorithm
        self.key_transport_algorithm = key_transport_algorithm
        self.include_certificate = include_certificate

    # --- Encrypt -----------------------------------------------------

    def encrypt(self, element, certificate: x509.Certificate, content: bool = False):
        """
        Encrypt `element` to `certificate` and return a new <EncryptedData>.

        The input element is not modified; use replace_element() to splice
        the result into the tree.
        """
        if element is None:
            raise InvalidArgumentError("element")
        if certificate is None:
            raise InvalidArgumentError("certificate")

        public_key = certificate.public_key()
        if not isinstance(public_key, rsa.RSAPublicKey):
            raise XmlEncryptionError(
                f"Certificate public key must be RSA, got {type(public_key).__name__}"
            )

        if content:
            plaintext = self._serialize_content(element)
        else:
            plaintext = etree.tostring(element, with_tail=False)

        session_key = os.urandom(CONTENT_ALGORITHMS[self.content_algorithm])
        cipher_value = self._encrypt_payload(session_key, plaintext)
        wrapped_key = self._wrap_key(public_key, session_key)

        return self._build_encrypted_data(
            certificate,
            wrapped_key,
            cipher_value,
            TYPE_CONTENT if content else TYPE_ELEMENT,
        )

    @staticmethod
    def replace_element(original, encrypted_data, content: bool) -> None:
        """
        Put `encrypted_data` where `original` was.

        content=False: the whole element is replaced (same parent, same slot).
        content=True: only the children and text of `original` are replaced.
        """
        if original is None:
            raise InvalidArgumentError("original")
        if encrypted_data is None:
            raise InvalidArgumentError("encrypted_data")

        if content:
            for child in list(original):
                original.remove(child)
            original.text = None
            encrypted_data.set("Type", TYPE_CONTENT)
            encrypted_data.tail = None
            original.append(encrypted_data)
            return

        parent = original.getparent()
        if parent is None:
            raise XmlEncryptionError("Cannot replace an element that has no parent")

        encrypted_data.tail = original.tail
        parent.replace(original, encrypted_data)

    # --- Decrypt -----------------------------------------------------

    def decrypt_data(self, encrypted_data, private_key: rsa.RSAPrivateKey) -> bytes:
        """Return the raw plaintext octets of an <EncryptedData> element."""
        if not is_encrypted_data(encrypted_data):
            raise XmlDecryptionError("Expected an xenc:EncryptedData element")
        if private_key is None:
            raise InvalidArgumentError("private_key")

        encrypted_key = find_encrypted_key(encrypted_data)
        if encrypted_key is None:
            raise XmlDecryptionError("EncryptedData has no EncryptedKey in its KeyInfo")

        session_key = self._unwrap_key(encrypted_key, private_key)

        algorithm = self._algorithm_of(encrypted_data)
        if algorithm not in CONTENT_ALGORITHMS:
            raise XmlDecryptionError(f"Unsupported content encryption algorithm: {algorithm}")
        if len(session_key) != CONTENT_ALGORITHMS[algorithm]:
            raise XmlDecryptionError("Session key length does not match the content algorithm")

        cipher_value = _unb64(encrypted_data.findtext("xenc:CipherData/xenc:CipherValue", namespaces=NSMAP))
        return self._decrypt_payload(algorithm, session_key, cipher_value)

    def decrypt_element(self, encrypted_data, private_key: rsa.RSAPrivateKey):
        """Decrypt an <EncryptedData Type="#Element"> into a standalone element."""
        type_uri = encrypted_data.get("Type", TYPE_ELEMENT)
        if type_uri != TYPE_ELEMENT:
            raise XmlDecryptionError(f"Expected Type={TYPE_ELEMENT}, got {type_uri}")

        plaintext = self.decrypt_data(encrypted_data, private_key)
        try:
            return etree.fromstring(plaintext, _safe_parser())
        except etree.XMLSyntaxError as e:
            raise XmlDecryptionError(f"Decrypted payload is not well-formed XML: {e}")

    def decrypt_document(self, key_locator: KeyLocator) -> None:
        """
        Replace every <EncryptedData> in self.document with its plaintext.

        key_locator receives the <EncryptedKey> element and returns the
        matching RSA private key, or None.
        """
        if self.document is None:
            raise XmlDecryptionError("EncryptedXml has no document to decrypt")

        for encrypted_data in list(self.document.iter(ENCRYPTED_DATA)):
            encrypted_key = find_encrypted_key(encrypted_data)
            if encrypted_key is None:
                raise XmlDecryptionError("EncryptedData has no EncryptedKey in its KeyInfo")

            private_key = key_locator(encrypted_key)
            if private_key is None:
                raise XmlDecryptionError("No private key available for EncryptedKey")

            plaintext = self.decrypt_data(encrypted_data, private_key)
            self._replace_with_plaintext(encrypted_data, plaintext)

    # --- Internals ---------------------------------------------------

    @staticmethod
    def _serialize_content(element) -> bytes:
        parts = [etree.tostring(child) for child in element]
        text = (element.text or "").replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        return text.encode("utf-8") + b"".join(parts)

    @staticmethod
    def _algorithm_of(node) -> str:
        method = node.find("xenc:EncryptionMethod", NSMAP)
        if method is None or not method.get("Algorithm"):
            raise XmlDecryptionError("Missing EncryptionMethod/@Algorithm")
        return method.get("Algorithm")

    def _encrypt_payload(self, key: bytes, plaintext: bytes) -> bytes:
        if self.content_algorithm in GCM_ALGORITHMS:
            iv = os.urandom(_GCM_IV_BYTES)
            return iv + AESGCM(key).encrypt(iv, plaintext, None)

        iv = os.urandom(_CBC_IV_BYTES)
        padder = sym_padding.PKCS7(_AES_BLOCK_BITS).padder()
        padded = padder.update(plaintext) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        return iv + encryptor.update(padded) + encryptor.finalize()

    @staticmethod
    def _decrypt_payload(algorithm: str, key: bytes, data: bytes) -> bytes:
        if algorithm in GCM_ALGORITHMS:
            if len(data) < _GCM_IV_BYTES + _GCM_TAG_BYTES:
                raise XmlDecryptionError("AES-GCM ciphertext is truncated")
            iv, sealed = data[:_GCM_IV_BYTES], data[_GCM_IV_BYTES:]
            try:
                return AESGCM(key).decrypt(iv, sealed, None)
            except InvalidTag:
                raise XmlDecryptionError("AES-GCM authentication failed")

        iv, body = data[:_CBC_IV_BYTES], data[_CBC_IV_BYTES:]
        if not body or len(body) % (_AES_BLOCK_BITS // 8):
            raise XmlDecryptionError("CBC ciphertext length is not a multiple of the block size")

        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(body) + decryptor.finalize()

        # xmlenc padding: only the last octet (pad length) is significant
        pad = padded[-1]
        if pad < 1 or pad > _AES_BLOCK_BITS // 8:
            raise XmlDecryptionError("Invalid CBC padding")
        return padded[:-pad]

    def _wrap_key(self, public_key: rsa.RSAPublicKey, session_key: bytes) -> bytes:
        if self.key_transport_algorithm == RSA_1_5:
            return public_key.encrypt(session_key, padding.PKCS1v15())
        return public_key.encrypt(session_key, _oaep())

    def _unwrap_key(self, encrypted_key, private_key: rsa.RSAPrivateKey) -> bytes:
        algorithm = self._algorithm_of(encrypted_key)
        wrapped = _unb64(encrypted_key.findtext("xenc:CipherData/xenc:CipherValue", namespaces=NSMAP))

        if algorithm == RSA_OAEP_MGF1P:
            digest = encrypted_key.find("xenc:EncryptionMethod/ds:DigestMethod", NSMAP)
            if digest is not None and digest.get("Algorithm") != SHA1:
                raise XmlDecryptionError(f"Unsupported OAEP digest: {digest.get('Algorithm')}")
            scheme = _oaep()
        elif algorithm == RSA_1_5:
            scheme = padding.PKCS1v15()
        else:
            raise XmlDecryptionError(f"Unsupported key transport algorithm: {algorithm}")

        try:
            return private_key.decrypt(wrapped, scheme)
        except ValueError:
            raise XmlDecryptionError("Unable to unwrap the session key (wrong private key or tampered EncryptedKey)")

    def _build_encrypted_data(
        self,
        certificate: x509.Certificate,
        wrapped_key: bytes,
        cipher_value: bytes,
        type_uri: str,
    ):
        E = etree.Element
        S = etree.SubElement

        encrypted_data = E(ENCRYPTED_DATA, nsmap={None: XMLENC_NS, "ds": XMLDSIG_NS}, Type=type_uri)
        S(encrypted_data, qname(XMLENC_NS, "EncryptionMethod"), Algorithm=self.content_algorithm)

        key_info = S(encrypted_data, qname(XMLDSIG_NS, "KeyInfo"))
        encrypted_key = S(key_info, ENCRYPTED_KEY)

        method = S(encrypted_key, qname(XMLENC_NS, "EncryptionMethod"), Algorithm=self.key_transport_algorithm)
        if self.key_transport_algorithm == RSA_OAEP_MGF1P:
            S(method, qname(XMLDSIG_NS, "DigestMethod"), Algorithm=SHA1)

        cert_key_info = S(encrypted_key, qname(XMLDSIG_NS, "KeyInfo"))
        x509_data = S(cert_key_info, qname(XMLDSIG_NS, "X509Data"))
        issuer_serial = S(x509_data, qname(XMLDSIG_NS, "X509IssuerSerial"))
        S(issuer_serial, qname(XMLDSIG_NS, "X509IssuerName")).text = certificate.issuer.rfc4514_string()
        S(issuer_serial, qname(XMLDSIG_NS, "X509SerialNumber")).text = str(certificate.serial_number)
        if self.include_certificate:
            S(x509_data, qname(XMLDSIG_NS, "X509Certificate")).text = _b64(certificate.public_bytes(Encoding.DER))

        key_cipher = S(encrypted_key, qname(XMLENC_NS, "CipherData"))
        S(key_cipher, qname(XMLENC_NS, "CipherValue")).text = _b64(wrapped_key)

        data_cipher = S(encrypted_data, qname(XMLENC_NS, "CipherData"))
        S(data_cipher, qname(XMLENC_NS, "CipherValue")).text = _b64(cipher_value)

        return encrypted_data

    def _replace_with_plaintext(self, encrypted_data, plaintext: bytes) -> None:
        type_uri = encrypted_data.get("Type", TYPE_ELEMENT)
        parent = encrypted_data.getparent()

        if type_uri == TYPE_CONTENT:
            if parent is None:
                raise XmlDecryptionError("Content-type EncryptedData must have a parent")
            text, children = self._parse_fragment(plaintext)
            index = parent.index(encrypted_data)
            previous = encrypted_data.getprevious()
            tail = encrypted_data.tail or ""
            parent.remove(encrypted_data)

            if children:
                children[-1].tail = (children[-1].tail or "") + tail
                leading = text
            else:
                leading = text + tail
            if leading:
                if previous is None:
                    parent.text = (parent.text or "") + leading
                else:
                    previous.tail = (previous.tail or "") + leading
            for offset, child in enumerate(children):
                parent.insert(index + offset, child)
            return

        try:
            element = etree.fromstring(plaintext, _safe_parser())
        except etree.XMLSyntaxError as e:
            raise XmlDecryptionError(f"Decrypted payload is not well-formed XML: {e}")

        if parent is None:
            self.document._setroot(element)
            return

        element.tail = encrypted_data.tail
        parent.replace(encrypted_data, element)

    @staticmethod
    def _parse_fragment(plaintext: bytes) -> Tuple[str, List[Any]]:
        try:
            holder = etree.fromstring(b"<fragment>" + plaintext + b"</fragment>", _safe_parser())
        except etree.XMLSyntaxError as e:
            raise XmlDecryptionError(f"Decrypted content is not well-formed XML: {e}")
        return holder.text or "", list(holder)
