"""Single-line explanations and alternative implementations."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import ORJSONResponse

from ..agents import Explainer
from ..dependencies import get_explainer
from ..locales import load_locale
from ..models import AlternativesRequest, ExplainLineRequest


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["explain"])


@router.post("/explain-line", response_class=ORJSONResponse)
async def explain_line(body: ExplainLineRequest, explainer: Explainer = Depends(get_explainer)):
    """Explain one line of code in the context of its neighbours."""
    try:
        result = await explainer.explain_line(
            body.code,
            body.line_number,
            load_locale(body.locale),
            body.source_language_hint,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid line number", "message": str(e)},
        ) from e

    return {"success": True, "data": result.to_wire()}


@router.post("/alternatives", response_class=ORJSONResponse)
async def alternatives(body: AlternativesRequest, explainer: Explainer = Depends(get_explainer)):
    """Suggest alternative implementations, with trade-offs."""
    result = await explainer.suggest_alternatives(
        body.code,
        load_locale(body.locale),
        body.source_language_hint,
    )
    return {"success": True, "data": result.to_wire()}
