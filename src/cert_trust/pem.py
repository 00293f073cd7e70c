"""
PEM armoring in the exact layout verification engines are fed.

  -----BEGIN <LABEL>-----\r\n
  <base64, 64 columns per line, CRLF separated>\r\n
  -----END <LABEL>-----\r\n

Blocks end with a line break so they can be concatenated with no separator.
"""

from __future__ import annotations

import base64
import re

CERTIFICATE = "CERTIFICATE"
X509_CRL = "X509 CRL"

LINE_WIDTH = 64
CRLF = "\r\n"

_DELIMITER = re.compile(r"-----(BEGIN|END) [A-Z0-9 ]+-----")


def wrap(text: str, width: int = LINE_WIDTH) -> str:
    """Hard-wrap a string without spaces at `width` columns using CRLF."""
    return CRLF.join(text[i : i + width] for i in range(0, len(text), width))


def armor(der: bytes, label: str) -> str:
    """Render DER bytes as a delimited, line-wrapped PEM block."""
    body = wrap(base64.b64encode(der).decode("ascii"))
    return f"-----BEGIN {label}-----{CRLF}{body}{CRLF}-----END {label}-----{CRLF}"


def compact(pem_text: str) -> str:
    """Strip delimiters and line breaks, leaving the bare base64 body."""
    return "".join(_DELIMITER.sub("", pem_text).split())


def is_pem(data: bytes) -> bool:
    return data.lstrip().startswith(b"-----BEGIN")
