"""
SOAP envelope construction and response parsing for ONVIF services
"""

import base64
import hashlib
import os
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Dict, List, Optional, Any

NAMESPACES = {
    "s": "http://www.w3.org/2003/05/soap-envelope",
    "tds": "http://www.onvif.org/ver10/device/wsdl",
    "trt": "http://www.onvif.org/ver10/media/wsdl",
    "trc": "http://www.onvif.org/ver10/recording/wsdl",
    "trp": "http://www.onvif.org/ver10/replay/wsdl",
    "tt": "http://www.onvif.org/ver10/schema",
    "wsse": "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-secext-1.0.xsd",
    "wsu": "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-utility-1.0.xsd",
}

PASSWORD_DIGEST = (
    "http://docs.oasis-open.org/wss/2004/01/"
    "oasis-200401-wss-username-token-profile-1.0#PasswordDigest"
)
NONCE_ENCODING = (
    "http://docs.oasis-open.org/wss/2004/01/"
    "oasis-200401-wss-soap-message-security-1.0#Base64Binary"
)


class SoapFault(Exception):
    """Fault element returned in a SOAP response body"""

    def __init__(self, code: str, reason: str):
        super().__init__(f"{code}: {reason}" if code else reason)
        self.code = code
        self.reason = reason


def password_digest(nonce: bytes, created: str, password: str) -> str:
    """Base64(SHA1(nonce + created + password)) as used by WS-Security UsernameToken"""
    sha = hashlib.sha1(nonce + created.encode("utf-8") + password.encode("utf-8"))
    return base64.b64encode(sha.digest()).decode("ascii")


def _security_header(username: str, password: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    created = now.strftime("%Y-%m-%dT%H:%M:%S.000Z")
    nonce = os.urandom(16)
    digest = password_digest(nonce, created, password)
    return (
        f'<wsse:Security s:mustUnderstand="1" xmlns:wsse="{NAMESPACES["wsse"]}" '
        f'xmlns:wsu="{NAMESPACES["wsu"]}">'
        "<wsse:UsernameToken>"
        f"<wsse:Username>{_escape(username)}</wsse:Username>"
        f'<wsse:Password Type="{PASSWORD_DIGEST}">{digest}</wsse:Password>'
        f'<wsse:Nonce EncodingType="{NONCE_ENCODING}">{base64.b64encode(nonce).decode("ascii")}</wsse:Nonce>'
        f"<wsu:Created>{created}</wsu:Created>"
        "</wsse:UsernameToken>"
        "</wsse:Security>"
    )


def _escape(value: str) -> str:
    return (
        value.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def build_envelope(body: str, username: Optional[str] = None, password: Optional[str] = None,
                   now: Optional[datetime] = None) -> str:
    """
    Wrap a body fragment in a SOAP 1.2 envelope.
    The envelope declares every ONVIF prefix so body fragments can use them directly.
    A UsernameToken header is added when a username is given.
    """
    declarations = " ".join(
        f'xmlns:{prefix}="{uri}"'
        for prefix, uri in NAMESPACES.items()
        if prefix not in ("wsse", "wsu")
    )
    header = ""
    if username:
        header = f"<s:Header>{_security_header(username, password or '', now)}</s:Header>"
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<s:Envelope {declarations}>{header}<s:Body>{body}</s:Body></s:Envelope>"
    )


def local_name(tag: str) -> str:
    """Strip the '{namespace}' part of an ElementTree tag"""
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def find_first(element: ET.Element, name: str) -> Optional[ET.Element]:
    """First descendant (or self) whose local name matches"""
    for child in element.iter():
        if local_name(child.tag) == name:
            return child
    return None


def find_all(element: ET.Element, name: str) -> List[ET.Element]:
    return [child for child in element.iter() if local_name(child.tag) == name]


def find_text(element: ET.Element, name: str) -> Optional[str]:
    found = find_first(element, name)
    if found is None or found.text is None:
        return None
    return found.text.strip()


def element_to_dict(element: ET.Element) -> Any:
    """
    Convert an element into plain Python data keyed by local names.
    Leaf elements become their text; repeated children become lists.
    """
    children = list(element)
    if not children:
        return (element.text or "").strip()

    result: Dict[str, Any] = {}
    for child in children:
        key = local_name(child.tag)
        value = element_to_dict(child)
        if key in result:
            if not isinstance(result[key], list):
                result[key] = [result[key]]
            result[key].append(value)
        else:
            result[key] = value
    return result


def parse_response(text: str) -> ET.Element:
    """
    Parse a SOAP response and return its Body element.
    Raises SoapFault when the body carries a Fault, ValueError when the document is not SOAP.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise ValueError(f"Malformed SOAP response: {e}")

    body = find_first(root, "Body")
    if body is None:
        raise ValueError("SOAP response has no Body")

    fault = find_first(body, "Fault")
    if fault is not None:
        code_elem = find_first(fault, "Code")
        code = find_text(code_elem, "Value") if code_elem is not None else None
        if code_elem is not None:
            subcode = find_first(code_elem, "Subcode")
            if subcode is not None:
                code = find_text(subcode, "Value") or code
        reason = find_text(fault, "Text") or find_text(fault, "faultstring") or "SOAP fault"
        raise SoapFault(code or "", reason)

    return body
