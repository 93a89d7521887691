"""
Queue Processing Trigger

Called by an external cron scheduler. Each call processes one batch.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from deskbot.api.deps import get_container
from deskbot.bootstrap import Container

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["Queue"])


class ProcessQueueResponse(BaseModel):
    """Result of one batch."""
    success: bool
    processed_count: int
    duration_ms: float
    timestamp: datetime


@router.api_route(
    "/process-queue",
    methods=["GET", "POST"],
    response_model=ProcessQueueResponse,
    summary="Process one queue batch",
)
async def process_queue(
    batch_size: Optional[int] = Query(default=None, ge=1, le=100),
    container: Container = Depends(get_container),
) -> ProcessQueueResponse:
    """
    Process up to batch_size pending items (default from settings).

    Overlapping calls are safe: each item is claimed by exactly one batch.
    """
    size = batch_size or container.settings.queue_batch_size
    logger.info(f"Cron trigger: processing up to {size} items")

    start_time = time.time()
    processed = await container.dispatcher.process_batch(size)
    duration_ms = (time.time() - start_time) * 1000

    logger.info(f"Cron batch done: {processed} completed in {duration_ms:.0f}ms")
    return ProcessQueueResponse(
        success=True,
        processed_count=processed,
        duration_ms=duration_ms,
        timestamp=datetime.now(timezone.utc),
    )
