from __future__ import annotations
from dataclasses import dataclass
from typing import Any

from lxml import etree

from .errors import InvalidArgumentError


@dataclass(frozen=True)
class EncryptedXmlInfo:
    """
    Result of encrypting an XML element.

    Attributes:
        encrypted_element: Standalone <EncryptedData> element
        decryptor_type: Class able to turn encrypted_element back into plaintext
    """
    encrypted_element: Any
    decryptor_type: type

    def __post_init__(self):
        if self.encrypted_element is None:
            raise InvalidArgumentError("encrypted_element")
        if self.decryptor_type is None:
            raise InvalidArgumentError("decryptor_type")

    def to_xml(self) -> bytes:
        return etree.tostring(self.encrypted_element)
