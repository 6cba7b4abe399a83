"""
Tests for the EncryptedXml engine.
"""

import base64

import pytest
from lxml import etree

from certxmlenc.protocol.errors import InvalidArgumentError, XmlDecryptionError, XmlEncryptionError
from certxmlenc.xmlenc.constants import (
    AES256_CBC,
    NSMAP,
    RSA_1_5,
    RSA_OAEP_MGF1P,
    SHA1,
    TYPE_CONTENT,
    TYPE_ELEMENT,
)
from certxmlenc.xmlenc.encrypted_xml import (
    ENCRYPTED_DATA,
    EncryptedXml,
    certificate_from_key_info,
    find_encrypted_key,
)


def _flip_last_byte(node):
    data = bytearray(base64.b64decode(node.text))
    data[-1] ^= 0x01
    node.text = base64.b64encode(bytes(data)).decode("ascii")


class TestEncryptedDataLayout:
    def test_default_layout(self, rsa_pair, plaintext):
        certificate, _ = rsa_pair
        encrypted = EncryptedXml().encrypt(plaintext, certificate)

        assert encrypted.tag == ENCRYPTED_DATA
        assert encrypted.get("Type") == TYPE_ELEMENT
        assert encrypted.find("xenc:EncryptionMethod", NSMAP).get("Algorithm") == AES256_CBC

        encrypted_key = find_encrypted_key(encrypted)
        assert encrypted_key is not None
        assert encrypted_key.find("xenc:EncryptionMethod", NSMAP).get("Algorithm") == RSA_OAEP_MGF1P
        assert encrypted_key.find("xenc:EncryptionMethod/ds:DigestMethod", NSMAP).get("Algorithm") == SHA1
        assert encrypted_key.findtext(
            "ds:KeyInfo/ds:X509Data/ds:X509IssuerSerial/ds:X509SerialNumber", namespaces=NSMAP
        ) == str(certificate.serial_number)
        assert certificate_from_key_info(encrypted_key) == certificate
        assert encrypted.findtext("xenc:CipherData/xenc:CipherValue", namespaces=NSMAP)

    def test_input_element_untouched(self, rsa_pair, plaintext):
        certificate, _ = rsa_pair
        before = etree.tostring(plaintext)

        EncryptedXml().encrypt(plaintext, certificate)

        assert etree.tostring(plaintext) == before

    def test_without_embedded_certificate(self, rsa_pair, plaintext):
        certificate, private_key = rsa_pair
        encrypted = EncryptedXml(include_certificate=False).encrypt(plaintext, certificate)

        assert certificate_from_key_info(find_encrypted_key(encrypted)) is None
        assert EncryptedXml().decrypt_element(encrypted, private_key).tag == "key"

    def test_arguments_required(self, rsa_pair, plaintext):
        with pytest.raises(InvalidArgumentError):
            EncryptedXml().encrypt(None, rsa_pair[0])
        with pytest.raises(InvalidArgumentError):
            EncryptedXml().encrypt(plaintext, None)

    def test_non_rsa_key_rejected(self, ec_certificate, plaintext):
        with pytest.raises(XmlEncryptionError):
            EncryptedXml().encrypt(plaintext, ec_certificate)

    def test_unknown_algorithm_rejected(self):
        with pytest.raises(XmlEncryptionError):
            EncryptedXml(content_algorithm="des-cbc")
        with pytest.raises(XmlEncryptionError):
            EncryptedXml(key_transport_algorithm="rsa-oaep")


class TestAlgorithms:
    @pytest.mark.parametrize("algorithm", ["aes128-cbc", "aes192-cbc", "aes256-cbc", "aes128-gcm", "aes256-gcm"])
    def test_content_algorithms(self, rsa_pair, plaintext, algorithm):
        certificate, private_key = rsa_pair
        encrypted = EncryptedXml(content_algorithm=algorithm).encrypt(plaintext, certificate)

        assert encrypted.find("xenc:EncryptionMethod", NSMAP).get("Algorithm").endswith("#" + algorithm)
        decrypted = EncryptedXml().decrypt_element(encrypted, private_key)
        assert etree.tostring(decrypted) == etree.tostring(plaintext)

    def test_rsa_1_5_key_transport(self, rsa_pair, plaintext):
        certificate, private_key = rsa_pair
        encrypted = EncryptedXml(key_transport_algorithm=RSA_1_5).encrypt(plaintext, certificate)

        method = find_encrypted_key(encrypted).find("xenc:EncryptionMethod", NSMAP)
        assert method.get("Algorithm") == RSA_1_5
        assert len(method) == 0
        assert EncryptedXml().decrypt_element(encrypted, private_key).tag == "key"


class TestReplaceElement:
    def test_whole_element_keeps_slot_and_tail(self, rsa_pair):
        certificate, _ = rsa_pair
        document = etree.fromstring(b"<ring><a/>\n  <key><v>1</v></key>\n  <b/></ring>")
        target = document[1]
        tail = target.tail

        encrypted = EncryptedXml(document).encrypt(target, certificate)
        EncryptedXml.replace_element(target, encrypted, content=False)

        assert document[1] is encrypted
        assert encrypted.tail == tail
        assert [child.tag for child in document] == ["a", ENCRYPTED_DATA, "b"]

    def test_content_only(self, rsa_pair):
        certificate, _ = rsa_pair
        document = etree.fromstring(b"<ring><key>text<v>1</v>more</key></ring>")
        target = document[0]

        encrypted = EncryptedXml(document).encrypt(target, certificate, content=True)
        EncryptedXml.replace_element(target, encrypted, content=True)

        assert target.text is None
        assert list(target) == [encrypted]
        assert encrypted.get("Type") == TYPE_CONTENT

    def test_root_cannot_be_replaced(self, rsa_pair, plaintext):
        certificate, _ = rsa_pair
        encrypted = EncryptedXml().encrypt(plaintext, certificate)

        with pytest.raises(XmlEncryptionError):
            EncryptedXml.replace_element(plaintext, encrypted, content=False)


class TestDecryptDocument:
    def test_restores_every_encrypted_element(self, rsa_pair, other_rsa_pair):
        document = etree.fromstring(b"<ring><key id='1'><v>a</v></key><key id='2'><v>b</v></key></ring>")
        expected = etree.tostring(document)
        keys = {}

        for target, (certificate, private_key) in zip(list(document), [rsa_pair, other_rsa_pair]):
            encrypted = EncryptedXml(document).encrypt(target, certificate)
            EncryptedXml.replace_element(target, encrypted, content=False)
            keys[certificate] = private_key

        assert len(list(document.iter(ENCRYPTED_DATA))) == 2

        EncryptedXml(document).decrypt_document(lambda ek: keys.get(certificate_from_key_info(ek)))

        assert etree.tostring(document) == expected

    def test_restores_content(self, rsa_pair):
        certificate, private_key = rsa_pair
        document = etree.fromstring(b"<ring><key>text &amp; more<v>1</v>tail</key></ring>")
        expected = etree.tostring(document)
        target = document[0]

        encrypted_xml = EncryptedXml(document)
        encrypted = encrypted_xml.encrypt(target, certificate, content=True)
        EncryptedXml.replace_element(target, encrypted, content=True)
        encrypted_xml.decrypt_document(lambda ek: private_key)

        assert etree.tostring(document) == expected

    def test_restores_content_among_siblings(self, rsa_pair):
        certificate, private_key = rsa_pair
        document = etree.fromstring(b"<ring><key>text<v>1</v>more</key></ring>")
        target = document[0]

        encrypted_xml = EncryptedXml(document)
        encrypted = encrypted_xml.encrypt(target, certificate, content=True)
        EncryptedXml.replace_element(target, encrypted, content=True)
        first = etree.Element("first")
        first.tail = "["
        target.insert(0, first)
        encrypted.tail = "]"
        etree.SubElement(target, "last")

        encrypted_xml.decrypt_document(lambda ek: private_key)

        assert etree.tostring(target) == b"<key><first/>[text<v>1</v>more]<last/></key>"

    def test_encrypted_root(self, rsa_pair, plaintext):
        certificate, private_key = rsa_pair
        encrypted = EncryptedXml().encrypt(plaintext, certificate)

        encrypted_xml = EncryptedXml(encrypted)
        encrypted_xml.decrypt_document(lambda ek: private_key)

        assert etree.tostring(encrypted_xml.document.getroot()) == etree.tostring(plaintext)

    def test_missing_key(self, rsa_pair, plaintext):
        encrypted = EncryptedXml().encrypt(plaintext, rsa_pair[0])

        with pytest.raises(XmlDecryptionError):
            EncryptedXml(encrypted).decrypt_document(lambda ek: None)

    def test_requires_document(self):
        with pytest.raises(XmlDecryptionError):
            EncryptedXml().decrypt_document(lambda ek: None)


class TestDecryptFailures:
    def test_wrong_private_key(self, rsa_pair, other_rsa_pair, plaintext):
        encrypted = EncryptedXml().encrypt(plaintext, rsa_pair[0])

        with pytest.raises(XmlDecryptionError):
            EncryptedXml().decrypt_element(encrypted, other_rsa_pair[1])

    def test_tampered_gcm_payload(self, rsa_pair, plaintext):
        certificate, private_key = rsa_pair
        encrypted = EncryptedXml(content_algorithm="aes256-gcm").encrypt(plaintext, certificate)
        _flip_last_byte(encrypted.find("xenc:CipherData/xenc:CipherValue", NSMAP))

        with pytest.raises(XmlDecryptionError):
            EncryptedXml().decrypt_element(encrypted, private_key)

    def test_tampered_session_key(self, rsa_pair, plaintext):
        certificate, private_key = rsa_pair
        encrypted = EncryptedXml().encrypt(plaintext, certificate)
        _flip_last_byte(find_encrypted_key(encrypted).find("xenc:CipherData/xenc:CipherValue", NSMAP))

        with pytest.raises(XmlDecryptionError):
            EncryptedXml().decrypt_element(encrypted, private_key)

    def test_bad_base64(self, rsa_pair, plaintext):
        certificate, private_key = rsa_pair
        encrypted = EncryptedXml().encrypt(plaintext, certificate)
        encrypted.find("xenc:CipherData/xenc:CipherValue", NSMAP).text = "!!not base64!!"

        with pytest.raises(XmlDecryptionError):
            EncryptedXml().decrypt_element(encrypted, private_key)

    def test_unknown_content_algorithm(self, rsa_pair, plaintext):
        certificate, private_key = rsa_pair
        encrypted = EncryptedXml().encrypt(plaintext, certificate)
        encrypted.find("xenc:EncryptionMethod", NSMAP).set("Algorithm", "urn:example:rot13")

        with pytest.raises(XmlDecryptionError):
            EncryptedXml().decrypt_element(encrypted, private_key)

    def test_not_encrypted_data(self, rsa_pair, plaintext):
        with pytest.raises(XmlDecryptionError):
            EncryptedXml().decrypt_element(plaintext, rsa_pair[1])

    def test_content_type_is_not_an_element(self, rsa_pair):
        certificate, private_key = rsa_pair
        element = etree.fromstring(b"<key>text</key>")
        encrypted = EncryptedXml().encrypt(element, certificate, content=True)

        with pytest.raises(XmlDecryptionError):
            EncryptedXml().decrypt_element(encrypted, private_key)
