"""
Request content inspection.

Derives suspicious-pattern reasons from a framework-neutral request context
so the HTTP layer can feed them to the suspicious IP tracker. The context is
a mapping with optional keys: path, query, body, headers, files.
"""

import json
import logging
import os
import re
from typing import Any, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

SQL_INJECTION_ATTEMPT = "SQL_INJECTION_ATTEMPT"
XSS_ATTEMPT = "XSS_ATTEMPT"
SUSPICIOUS_HEADERS = "SUSPICIOUS_HEADERS"
LARGE_PAYLOAD = "LARGE_PAYLOAD"
PATH_TRAVERSAL_ATTEMPT = "PATH_TRAVERSAL_ATTEMPT"
NOSQL_INJECTION_ATTEMPT = "NOSQL_INJECTION_ATTEMPT"
SUSPICIOUS_FILE_UPLOAD = "SUSPICIOUS_FILE_UPLOAD"
SUSPICIOUS_USER_AGENT = "SUSPICIOUS_USER_AGENT"

SQL_INJECTION_PATTERN = re.compile(
    r"""(\b(select|insert|update|delete|drop|union|exec|declare)\b)|(['"];)""", re.IGNORECASE
)
XSS_PATTERN = re.compile(r"(<script|javascript:|data:text/html|vbscript:|onload=|onerror=)", re.IGNORECASE)
PATH_TRAVERSAL_PATTERN = re.compile(r"(?:\.{2}[/\\])+")
NOSQL_PATTERN = re.compile(
    r"\$(?:ne|gt|lt|gte|lte|in|nin|not|or|and|regex|where|elemMatch|exists|type|mod|all|size"
    r"|within|box|center|centerSphere)",
    re.IGNORECASE
)
SUSPICIOUS_USER_AGENTS = [
    re.compile(p, re.IGNORECASE)
    for p in (r"curl", r"wget", r"postman", r"insomnia", r"python-requests", r"go-http-client", r"burp", r"sqlmap")
]

SPOOFING_HEADERS = ("x-forwarded-host", "x-remote-host", "x-originating-ip", "x-remote-addr")
SUSPICIOUS_EXTENSIONS = {".php", ".asp", ".aspx", ".jsp", ".cgi", ".exe", ".bat", ".cmd", ".sh", ".dll"}


def _dump(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def _lower_headers(headers: Optional[Mapping[str, Any]]) -> dict:
    return {str(k).lower(): v for k, v in (headers or {}).items()}


def _filename(upload: Any) -> str:
    if isinstance(upload, str):
        return upload
    if isinstance(upload, Mapping):
        return str(upload.get("filename") or upload.get("originalname") or "")
    return str(getattr(upload, "filename", "") or "")


def get_client_ip(headers: Optional[Mapping[str, Any]], remote_addr: Optional[str] = None) -> str:
    """
    Resolve the client IP: first X-Forwarded-For hop, then X-Real-IP,
    then the socket address.
    """
    headers = _lower_headers(headers)
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = str(forwarded).split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return str(real_ip).strip()
    return remote_addr or "unknown"


class RequestInspector:
    """Flags injection, spoofing and tooling patterns in a request context."""

    def __init__(self, max_payload_size: int = 10 * 1024 * 1024):
        self.max_payload_size = max_payload_size

    def inspect(self, request: Mapping[str, Any]) -> List[str]:
        """
        Inspect a request context.
        
        Returns:
            Reasons found, in a fixed order, without duplicates
        """
        headers = _lower_headers(request.get("headers"))
        path = str(request.get("path") or "")
        query = _dump(request.get("query"))
        body = _dump(request.get("body"))
        patterns: List[str] = []

        if SQL_INJECTION_PATTERN.search(body) or SQL_INJECTION_PATTERN.search(query):
            patterns.append(SQL_INJECTION_ATTEMPT)

        if XSS_PATTERN.search(body) or XSS_PATTERN.search(query):
            patterns.append(XSS_ATTEMPT)

        if any(headers.get(name) for name in SPOOFING_HEADERS):
            patterns.append(SUSPICIOUS_HEADERS)

        if self._content_length(headers) > self.max_payload_size:
            patterns.append(LARGE_PAYLOAD)

        if any(PATH_TRAVERSAL_PATTERN.search(text) for text in (path, query, body)):
            patterns.append(PATH_TRAVERSAL_ATTEMPT)

        if NOSQL_PATTERN.search(body) or NOSQL_PATTERN.search(query):
            patterns.append(NOSQL_INJECTION_ATTEMPT)

        if self._has_suspicious_upload(request.get("files") or []):
            patterns.append(SUSPICIOUS_FILE_UPLOAD)

        user_agent = str(headers.get("user-agent") or "")
        if any(p.search(user_agent) for p in SUSPICIOUS_USER_AGENTS):
            patterns.append(SUSPICIOUS_USER_AGENT)

        if patterns:
            logger.debug(f"Suspicious patterns on {path or '<no path>'}: {patterns}")
        return patterns

    @staticmethod
    def _content_length(headers: Mapping[str, Any]) -> int:
        try:
            return int(headers.get("content-length") or 0)
        except (TypeError, ValueError):
            return 0

    @staticmethod
    def _has_suspicious_upload(files: Iterable[Any]) -> bool:
        if isinstance(files, (str, Mapping)):
            files = [files]
        for upload in files:
            extension = os.path.splitext(_filename(upload))[1].lower()
            if extension in SUSPICIOUS_EXTENSIONS:
                return True
        return False
