"""
XML-Encryption vocabulary.

Namespace and algorithm URIs from:
- XML Encryption Syntax and Processing (http://www.w3.org/2001/04/xmlenc#)
- XML Encryption 1.1 (http://www.w3.org/2009/xmlenc11#)
- XML Signature (http://www.w3.org/2000/09/xmldsig#) for KeyInfo
"""

from typing import Dict

XMLENC_NS = "http://www.w3.org/2001/04/xmlenc#"
XMLENC11_NS = "http://www.w3.org/2009/xmlenc11#"
XMLDSIG_NS = "http://www.w3.org/2000/09/xmldsig#"

NSMAP = {"xenc": XMLENC_NS, "ds": XMLDSIG_NS}

TYPE_ELEMENT = XMLENC_NS + "Element"
TYPE_CONTENT = XMLENC_NS + "Content"

# Content encryption
AES128_CBC = XMLENC_NS + "aes128-cbc"
AES192_CBC = XMLENC_NS + "aes192-cbc"
AES256_CBC = XMLENC_NS + "aes256-cbc"
AES128_GCM = XMLENC11_NS + "aes128-gcm"
AES256_GCM = XMLENC11_NS + "aes256-gcm"

# Key transport
RSA_OAEP_MGF1P = XMLENC_NS + "rsa-oaep-mgf1p"
RSA_1_5 = XMLENC_NS + "rsa-1_5"

SHA1 = XMLDSIG_NS + "sha1"

# algorithm URI -> key size in bytes
CONTENT_ALGORITHMS: Dict[str, int] = {
    AES128_CBC: 16,
    AES192_CBC: 24,
    AES256_CBC: 32,
    AES128_GCM: 16,
    AES256_GCM: 32,
}

GCM_ALGORITHMS = frozenset({AES128_GCM, AES256_GCM})

KEY_TRANSPORT_ALGORITHMS = frozenset({RSA_OAEP_MGF1P, RSA_1_5})

SHORT_NAMES: Dict[str, str] = {
    uri.rsplit("#", 1)[1]: uri
    for uri in list(CONTENT_ALGORITHMS) + list(KEY_TRANSPORT_ALGORITHMS)
}


def qname(namespace: str, tag: str) -> str:
    return "{%s}%s" % (namespace, tag)


def expand_algorithm(name: str) -> str:
    """Map a short name such as 'aes256-cbc' to its full URI. URIs pass through."""
    return SHORT_NAMES.get(name.strip(), name.strip())
