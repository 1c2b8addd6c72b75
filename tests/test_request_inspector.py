"""
Unit tests for request inspection and client IP resolution.
"""

import pytest

from sentinel_monitor.detectors.request_inspector import (
    LARGE_PAYLOAD,
    NOSQL_INJECTION_ATTEMPT,
    PATH_TRAVERSAL_ATTEMPT,
    SQL_INJECTION_ATTEMPT,
    SUSPICIOUS_FILE_UPLOAD,
    SUSPICIOUS_HEADERS,
    SUSPICIOUS_USER_AGENT,
    XSS_ATTEMPT,
    RequestInspector,
    get_client_ip,
)


@pytest.fixture
def inspector():
    return RequestInspector(max_payload_size=1024)


@pytest.fixture
def clean_request():
    return {
        "method": "POST",
        "path": "/api/users/42",
        "query": {"page": "2"},
        "body": {"name": "Alice", "email": "alice@example.com"},
        "headers": {"User-Agent": "Mozilla/5.0 (X11; Linux x86_64)", "Content-Length": "58"},
    }


class TestRequestInspector:
    """Test suspicious pattern detection."""

    def test_clean_request(self, inspector, clean_request):
        assert inspector.inspect(clean_request) == []

    def test_empty_request(self, inspector):
        assert inspector.inspect({}) == []

    @pytest.mark.parametrize("query", [
        {"id": "1 UNION SELECT password FROM users"},
        "id=1';",
        {"q": "x; DROP TABLE users"},
    ])
    def test_sql_injection(self, inspector, query):
        assert inspector.inspect({"query": query}) == [SQL_INJECTION_ATTEMPT]

    @pytest.mark.parametrize("body", [
        {"comment": "<script>alert(1)</script>"},
        {"link": "javascript:alert(1)"},
        "<img src=x onerror=alert(1)>",
    ])
    def test_xss(self, inspector, body):
        assert inspector.inspect({"body": body}) == [XSS_ATTEMPT]

    def test_spoofing_headers(self, inspector):
        request = {"headers": {"X-Forwarded-Host": "evil.example"}}
        assert inspector.inspect(request) == [SUSPICIOUS_HEADERS]

    def test_large_payload(self, inspector):
        assert inspector.inspect({"headers": {"content-length": "1025"}}) == [LARGE_PAYLOAD]
        assert inspector.inspect({"headers": {"content-length": "1024"}}) == []

    def test_bad_content_length_ignored(self, inspector):
        assert inspector.inspect({"headers": {"content-length": "lots"}}) == []

    def test_path_traversal(self, inspector):
        assert inspector.inspect({"path": "/static/../../etc/passwd"}) == [PATH_TRAVERSAL_ATTEMPT]
        assert inspector.inspect({"path": "/files", "query": {"name": "..\\..\\boot.ini"}}) == [PATH_TRAVERSAL_ATTEMPT]

    def test_nosql_injection(self, inspector):
        request = {"body": {"username": "admin", "password": {"$ne": None}}}
        assert inspector.inspect(request) == [NOSQL_INJECTION_ATTEMPT]

    def test_suspicious_upload(self, inspector):
        assert inspector.inspect({"files": [{"filename": "shell.PHP"}]}) == [SUSPICIOUS_FILE_UPLOAD]
        assert inspector.inspect({"files": [{"originalname": "report.pdf"}, "photo.jpg"]}) == []

    def test_upload_object_with_filename(self, inspector):
        class Upload:
            filename = "payload.exe"

        assert inspector.inspect({"files": [Upload()]}) == [SUSPICIOUS_FILE_UPLOAD]

    @pytest.mark.parametrize("user_agent", ["curl/8.4.0", "python-requests/2.31", "sqlmap/1.7", "Go-http-client/1.1"])
    def test_tooling_user_agents(self, inspector, user_agent):
        assert inspector.inspect({"headers": {"User-Agent": user_agent}}) == [SUSPICIOUS_USER_AGENT]

    def test_fixed_reason_order(self, inspector):
        request = {
            "path": "/download/../../etc/passwd",
            "query": {"id": "1 union all", "filter": {"$where": "1"}},
            "body": "<script>",
            "headers": {"X-Originating-IP": "127.0.0.1", "Content-Length": "4096", "User-Agent": "sqlmap"},
            "files": ["backdoor.sh"],
        }
        assert inspector.inspect(request) == [
            SQL_INJECTION_ATTEMPT,
            XSS_ATTEMPT,
            SUSPICIOUS_HEADERS,
            LARGE_PAYLOAD,
            PATH_TRAVERSAL_ATTEMPT,
            NOSQL_INJECTION_ATTEMPT,
            SUSPICIOUS_FILE_UPLOAD,
            SUSPICIOUS_USER_AGENT,
        ]


class TestGetClientIP:
    """Test client IP extraction."""

    def test_first_forwarded_hop(self):
        headers = {"X-Forwarded-For": "203.0.113.10, 10.0.0.1, 10.0.0.2"}
        assert get_client_ip(headers, "10.0.0.2") == "203.0.113.10"

    def test_real_ip(self):
        assert get_client_ip({"X-Real-IP": " 198.51.100.20 "}, "10.0.0.2") == "198.51.100.20"

    def test_socket_address(self):
        assert get_client_ip({}, "192.0.2.30") == "192.0.2.30"

    def test_unknown(self):
        assert get_client_ip(None) == "unknown"
