"""
Market-development-fund (MDF) requests.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..database.adapter import DatabaseAdapter, get_database
from ..errors import NotFound

logger = logging.getLogger(__name__)


class MDFStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DISBURSED = "disbursed"


class CampaignType(str, Enum):
    EVENT = "event"
    DIGITAL = "digital"
    WEBINAR = "webinar"
    PRINT = "print"
    PARTNER_EVENT = "partner_event"


@dataclass
class MDFRequestForm:
    campaign_name: str
    requested_amount: float
    start_date: date
    end_date: date
    description: str
    campaign_type: CampaignType = CampaignType.EVENT
    target_audience: str = ""
    expected_leads: Optional[int] = None
    expected_meetings: Optional[int] = None
    expected_deals: Optional[int] = None
    objectives: List[str] = field(default_factory=list)

    def validate(self, mdf_allocation: float) -> None:
        """Raise ValueError on the first problem."""
        CampaignType(self.campaign_type)
        if not self.campaign_name.strip():
            raise ValueError("Campaign name is required")
        if self.requested_amount is None or self.requested_amount <= 0:
            raise ValueError("Please enter a valid amount")
        if self.requested_amount > mdf_allocation:
            raise ValueError(f"Amount exceeds your MDF allocation of ${mdf_allocation:,.0f}")
        if not self.description.strip():
            raise ValueError("Campaign description is required")
        if self.start_date >= self.end_date:
            raise ValueError("End date must be after start date")

    def roi_metrics(self) -> Dict[str, Any]:
        return {
            "campaign_type": CampaignType(self.campaign_type).value,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "description": self.description.strip(),
            "target_audience": self.target_audience.strip(),
            "expected_leads": self.expected_leads,
            "expected_meetings": self.expected_meetings,
            "expected_deals": self.expected_deals,
            "objectives": list(self.objectives),
        }


def _decode(row: Dict[str, Any]) -> Dict[str, Any]:
    metrics = row.get("roi_metrics")
    if isinstance(metrics, str):
        row["roi_metrics"] = json.loads(metrics) if metrics else {}
    return row


class MDFService:

    def __init__(self, db: Optional[DatabaseAdapter] = None):
        self._db = db

    async def database(self) -> DatabaseAdapter:
        return self._db or await get_database()

    async def create(self, partner: Dict[str, Any], form: MDFRequestForm) -> Dict[str, Any]:
        """
        Submit a request for a partner.

        ``partner`` is the session's partner record; its organization's
        mdf_allocation caps the requested amount.
        """
        form.validate(float(partner.get("mdf_allocation") or 0))

        db = await self.database()
        request_id = str(uuid4())
        now = datetime.now(timezone.utc).isoformat()
        await db.execute(
            """
            INSERT INTO mdf_requests
                (id, partner_id, campaign_name, requested_amount, status, roi_metrics, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            """,
            request_id,
            partner["id"],
            form.campaign_name.strip(),
            float(form.requested_amount),
            MDFStatus.PENDING.value,
            json.dumps(form.roi_metrics()),
            now,
            now
        )
        logger.info(f"MDF request {request_id} submitted by partner {partner['id']}")
        return await self.get(request_id, partner["id"])

    async def get(self, request_id: str, partner_id: Optional[str] = None) -> Dict[str, Any]:
        db = await self.database()
        if partner_id:
            row = await db.fetchrow(
                "SELECT * FROM mdf_requests WHERE id = $1 AND partner_id = $2",
                request_id, partner_id
            )
        else:
            row = await db.fetchrow("SELECT * FROM mdf_requests WHERE id = $1", request_id)
        if not row:
            raise NotFound("MDF request", request_id)
        return _decode(row)

    async def list_for_partner(
        self, partner_id: str, status: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        db = await self.database()
        if status:
            rows = await db.fetch(
                "SELECT * FROM mdf_requests WHERE partner_id = $1 AND status = $2 ORDER BY created_at DESC",
                partner_id, MDFStatus(status).value
            )
        else:
            rows = await db.fetch(
                "SELECT * FROM mdf_requests WHERE partner_id = $1 ORDER BY created_at DESC",
                partner_id
            )
        return [_decode(r) for r in rows]

    async def summary(self, partner_id: str) -> Dict[str, float]:
        """Requested totals by status."""
        totals = {s.value: 0.0 for s in MDFStatus}
        for request in await self.list_for_partner(partner_id):
            totals[request["status"]] = totals.get(request["status"], 0.0) + float(request["requested_amount"] or 0)
        return totals
