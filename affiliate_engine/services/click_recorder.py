"""Records outbound affiliate link clicks."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from affiliate_engine.db.ports import ClickStore
from affiliate_engine.errors import UnknownVendor, ValidationError
from affiliate_engine.models import CampaignContext, Click, ClientContext, Vendor

logger = logging.getLogger(__name__)


class ClickRecorder:
    def __init__(self, store: ClickStore):
        self.store = store

    async def record_click(
        self,
        vendor: str | Vendor,
        target_url: str,
        client_context: ClientContext | None = None,
        campaign_context: CampaignContext | None = None,
        content_ref: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> str:
        """Persist one click and return its id.

        Every call creates a new click; repeated clicks from the same session
        are not collapsed. Raises ValidationError before any write when the
        vendor is unknown or the target URL is empty, and lets
        StorageUnavailable propagate.
        """
        try:
            parsed_vendor = Vendor.parse(vendor)
        except UnknownVendor as e:
            raise ValidationError(str(e)) from e
        if not target_url or not target_url.strip():
            raise ValidationError("target_url is required")

        click = Click(
            id=str(uuid.uuid4()),
            vendor=parsed_vendor,
            target_url=target_url.strip(),
            client=client_context or ClientContext(),
            campaign=campaign_context or CampaignContext(),
            session_id=session_id or f"session_{uuid.uuid4().hex}",
            created_at=datetime.now(timezone.utc),
            content_ref=content_ref,
        )
        await self.store.insert_click(click)
        logger.info(f"Click {click.id} recorded for {parsed_vendor.value} (content={content_ref})")
        return click.id
