"""
Unit tests for certificate numbers and the printable certificate page.
"""

import re

from src.core.learning.certificates import (
    certificate_url,
    generate_certificate_number,
    render_certificate_html,
)
from src.core.learning.courses import extract_video_id

CERTIFICATE_NUMBER = re.compile(r"^CERT-\d{4}-[A-Z0-9]{9}$")


class TestCertificateNumber:

    def test_format(self):
        for _ in range(50):
            assert CERTIFICATE_NUMBER.match(generate_certificate_number())

    def test_year(self):
        assert generate_certificate_number(2031).startswith("CERT-2031-")

    def test_url(self):
        assert certificate_url("CERT-2026-ABCDEFGH1") == "/api/certificates/CERT-2026-ABCDEFGH1"


class TestRenderCertificate:

    def certificate(self, **overrides):
        data = {
            "certificate_number": "CERT-2026-ABCDEFGH1",
            "partner_name": "Pat Partner",
            "course_title": "Partner Onboarding",
            "completion_date": "2026-03-14",
            "issued_at": "2026-03-14T09:30:00+00:00",
        }
        data.update(overrides)
        return data

    def test_contains_details(self):
        page = render_certificate_html(self.certificate(), issuer="Acme Corp")
        assert "Pat Partner" in page
        assert "Partner Onboarding" in page
        assert "CERT-2026-ABCDEFGH1" in page
        assert "Acme Corp" in page
        assert "March 14, 2026" in page

    def test_escapes_stored_text(self):
        page = render_certificate_html(self.certificate(partner_name="<script>alert(1)</script>"))
        assert "<script>alert(1)</script>" not in page
        assert "&lt;script&gt;" in page


class TestVideoId:

    def test_watch_url(self):
        assert extract_video_id("https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=10") == "dQw4w9WgXcQ"

    def test_short_url(self):
        assert extract_video_id("https://youtu.be/dQw4w9WgXcQ") == "dQw4w9WgXcQ"

    def test_bare_id_and_empty(self):
        assert extract_video_id(" dQw4w9WgXcQ ") == "dQw4w9WgXcQ"
        assert extract_video_id(None) is None
