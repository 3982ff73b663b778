"""Streaming code generation endpoint (Server-Sent Events)."""

import logging
from contextlib import aclosing

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from ..agents import OrchestrationDriver
from ..dependencies import get_driver
from ..locales import load_locale
from ..models import GenerateRequest


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["generate"])

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"}


@router.post("/generate")
async def generate(
    body: GenerateRequest,
    request: Request,
    driver: OrchestrationDriver = Depends(get_driver),
):
    """Run the orchestration for a prompt and stream its events."""
    if not body.prompt.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Prompt is required", "message": "The prompt must not be empty"},
        )

    locale = load_locale(body.locale)
    logger.info(f"Generate request (locale={locale.locale_id}, context={'yes' if body.context_code else 'no'})")

    async def event_stream():
        events = driver.run(body.prompt, locale, body.context_code, should_stop=request.is_disconnected)
        async with aclosing(events):
            async for event in events:
                yield event.to_sse()

    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)
