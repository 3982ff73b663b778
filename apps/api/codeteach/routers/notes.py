"""Notion integration: configure the workspace and save learning notes."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import ORJSONResponse

from ..dependencies import get_notes_client
from ..models import LearningNote, NotionConfigureRequest
from ..notes import NotionNotesClient


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notion", tags=["notion"])


@router.post("/configure", response_class=ORJSONResponse)
async def configure(body: NotionConfigureRequest, notes: NotionNotesClient = Depends(get_notes_client)):
    """Store the integration token (process-wide) and check it against Notion."""
    notes.configure(body.token, body.database_id)
    user = await notes.verify()
    logger.info(f"Notion configured for integration '{user}'")
    return {
        "success": True,
        "message": "Connected to Notion",
        "user": user,
        "databaseId": notes.database_id,
    }


@router.post("/save-note", response_class=ORJSONResponse)
async def save_note(note: LearningNote, notes: NotionNotesClient = Depends(get_notes_client)):
    saved = await notes.save(note)
    return {"success": True, "message": "Saved to Notion", **saved.to_wire()}
