"""
Course completion certificates.

One certificate per completed enrollment, addressed by a unique number of
the form CERT-<year>-<9 upper-case alphanumerics> and rendered as a
printable HTML page.
"""

import html
import logging
import os
import secrets
import string
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..database.adapter import DatabaseAdapter, IntegrityErrors, get_database
from ..errors import NotFound

logger = logging.getLogger(__name__)

CERTIFICATE_ISSUER = os.getenv("CERTIFICATE_ISSUER", "AmpleLogic")
_ALPHABET = string.ascii_uppercase + string.digits


def generate_certificate_number(year: Optional[int] = None) -> str:
    year = year or datetime.now(timezone.utc).year
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(9))
    return f"CERT-{year}-{suffix}"


def certificate_url(certificate_number: str) -> str:
    return f"/api/certificates/{certificate_number}"


class CertificateService:
    """Issues and looks up certificates."""

    def __init__(self, db: Optional[DatabaseAdapter] = None):
        self._db = db

    async def database(self) -> DatabaseAdapter:
        return self._db or await get_database()

    async def issue_for_enrollment(self, enrollment_id: str) -> Dict[str, Any]:
        """
        Issue the certificate for a completed enrollment.

        Idempotent: an enrollment that already has a certificate gets the
        existing one back. Also stamps the enrollment with completed_at and
        certificate_url.
        """
        db = await self.database()

        existing = await self._for_enrollment(db, enrollment_id)
        if existing:
            return existing

        enrollment = await db.fetchrow(
            """
            SELECT e.id, e.partner_id, e.course_id,
                   p.first_name, p.last_name, c.title AS course_title
            FROM course_enrollments e
            JOIN partners p ON p.id = e.partner_id
            JOIN courses c ON c.id = e.course_id
            WHERE e.id = $1
            """,
            enrollment_id
        )
        if not enrollment:
            raise NotFound("Enrollment", enrollment_id)

        number = await self._unused_number(db)
        now = datetime.now(timezone.utc)
        partner_name = f"{enrollment['first_name']} {enrollment['last_name']}".strip()

        certificate = {
            "id": str(uuid4()),
            "enrollment_id": enrollment_id,
            "certificate_number": number,
            "partner_name": partner_name,
            "course_title": enrollment["course_title"],
            "completion_date": now.date().isoformat(),
            "issued_at": now.isoformat(),
        }
        try:
            await db.execute(
                """
                INSERT INTO certificates
                    (id, enrollment_id, certificate_number, partner_name, course_title, completion_date, issued_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                """,
                *certificate.values()
            )
        except IntegrityErrors:
            # A concurrent completion issued it between the check and the insert
            issued = await self._for_enrollment(db, enrollment_id)
            if not issued:
                raise
            logger.info(
                f"Certificate {issued['certificate_number']} already issued for enrollment {enrollment_id}"
            )
            return issued

        await db.execute(
            """
            UPDATE course_enrollments
            SET completed_at = $1, certificate_url = $2
            WHERE id = $3
            """,
            now.isoformat(),
            certificate_url(number),
            enrollment_id
        )

        logger.info(f"Certificate {number} issued for enrollment {enrollment_id}")
        return certificate

    async def _for_enrollment(self, db: DatabaseAdapter, enrollment_id: str) -> Optional[Dict[str, Any]]:
        return await db.fetchrow(
            "SELECT * FROM certificates WHERE enrollment_id = $1",
            enrollment_id
        )

    async def _unused_number(self, db: DatabaseAdapter) -> str:
        while True:
            number = generate_certificate_number()
            taken = await db.fetchval(
                "SELECT COUNT(*) FROM certificates WHERE certificate_number = $1",
                number
            )
            if not taken:
                return number
            logger.warning(f"Certificate number collision on {number}, regenerating")

    async def get_by_number(self, certificate_number: str) -> Dict[str, Any]:
        db = await self.database()
        row = await db.fetchrow(
            "SELECT * FROM certificates WHERE certificate_number = $1",
            certificate_number
        )
        if not row:
            raise NotFound("Certificate", certificate_number)
        return row

    async def list_for_partner(self, partner_id: str) -> List[Dict[str, Any]]:
        db = await self.database()
        return await db.fetch(
            """
            SELECT c.*, e.course_id
            FROM certificates c
            JOIN course_enrollments e ON e.id = c.enrollment_id
            WHERE e.partner_id = $1
            ORDER BY c.issued_at DESC
            """,
            partner_id
        )


def _long_date(value: Any) -> str:
    if not value:
        return ""
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        return str(value)
    return f"{parsed.strftime('%B')} {parsed.day}, {parsed.year}"


def _short_date(value: Any) -> str:
    if not value:
        return ""
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        return str(value)
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


CERTIFICATE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <title>Certificate of Completion</title>
  <style>
    @page {{ margin: 0; }}
    body {{
      margin: 0;
      padding: 60px;
      font-family: 'Georgia', serif;
      background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
      min-height: 100vh;
      display: flex;
      align-items: center;
      justify-content: center;
    }}
    .certificate {{
      background: white;
      padding: 80px 60px;
      max-width: 900px;
      border: 20px solid #f8f9fa;
      position: relative;
    }}
    .header, .content, .cert-number {{ text-align: center; }}
    .title {{ font-size: 48px; color: #667eea; font-weight: bold; text-transform: uppercase; letter-spacing: 4px; }}
    .subtitle {{ font-size: 20px; color: #666; font-style: italic; }}
    .content {{ margin: 60px 0; }}
    .awarded-to {{ font-size: 16px; color: #666; text-transform: uppercase; letter-spacing: 2px; }}
    .recipient-name {{ font-size: 42px; color: #333; font-weight: bold; border-bottom: 2px solid #667eea; display: inline-block; padding-bottom: 10px; }}
    .course-info {{ font-size: 18px; color: #666; line-height: 1.8; }}
    .course-title {{ font-size: 24px; color: #667eea; font-weight: bold; margin: 20px 0; }}
    .footer {{ display: flex; justify-content: space-between; margin-top: 80px; padding-top: 30px; border-top: 2px solid #eee; }}
    .signature-block {{ text-align: center; }}
    .signature-line {{ border-top: 2px solid #333; width: 250px; margin: 0 auto 10px; padding-top: 10px; }}
    .signature-label {{ font-size: 14px; color: #666; }}
    .cert-number {{ margin-top: 30px; font-size: 12px; color: #999; font-family: 'Courier New', monospace; }}
    @media print {{
      body {{ background: white; padding: 0; }}
    }}
  </style>
</head>
<body>
  <div class="certificate">
    <div class="header">
      <div class="title">Certificate</div>
      <div class="subtitle">of Completion</div>
    </div>
    <div class="content">
      <div class="awarded-to">This certificate is proudly presented to</div>
      <div class="recipient-name">{partner_name}</div>
      <div class="course-info">For successfully completing the course</div>
      <div class="course-title">{course_title}</div>
      <div class="course-info">Completed on {completion_date}</div>
    </div>
    <div class="footer">
      <div class="signature-block">
        <div class="signature-line">{issuer}</div>
        <div class="signature-label">Authorized Signature</div>
      </div>
      <div class="signature-block">
        <div class="signature-line">{issued_at}</div>
        <div class="signature-label">Date of Issue</div>
      </div>
    </div>
    <div class="cert-number">Certificate Number: {certificate_number}</div>
  </div>
</body>
</html>
"""


def render_certificate_html(certificate: Dict[str, Any], issuer: str = CERTIFICATE_ISSUER) -> str:
    """Printable HTML for a certificate record."""
    return CERTIFICATE_TEMPLATE.format(
        partner_name=html.escape(certificate.get("partner_name") or ""),
        course_title=html.escape(certificate.get("course_title") or ""),
        completion_date=html.escape(_long_date(certificate.get("completion_date"))),
        issued_at=html.escape(_short_date(certificate.get("issued_at"))),
        certificate_number=html.escape(certificate.get("certificate_number") or ""),
        issuer=html.escape(issuer),
    )
