"""
Certificates API

The printable certificate page is public so it can be shared as proof of
completion; the listing is the caller's own certificates.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from ....core.auth.session import SessionContext
from ....core.learning import CertificateService, render_certificate_html
from ...shared.middleware.auth import require_partner
from ...shared.responses import ListResponse

router = APIRouter(prefix="/api/certificates", tags=["certificates"])


@router.get("")
async def list_certificates(session: SessionContext = Depends(require_partner)):
    return ListResponse.create(await CertificateService().list_for_partner(session.partner_id))


@router.get("/{certificate_number}", response_class=HTMLResponse)
async def get_certificate(certificate_number: str):
    """Printable HTML certificate; 404 when the number is unknown."""
    certificate = await CertificateService().get_by_number(certificate_number)
    return HTMLResponse(render_certificate_html(certificate))
