"""Playground endpoints: run, compare and time code, and analyse errors."""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import ORJSONResponse

from ..dependencies import get_playground_tools, get_registry, get_sandbox
from ..exceptions import SandboxExecutionError
from ..models import CompareRequest, ExecuteRequest, ExplainErrorRequest, MeasureRequest
from ..sandbox import SandboxRunner
from ..tools import PlaygroundTools, ToolRegistry


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/playground", tags=["playground"])


@router.post("/execute", response_class=ORJSONResponse)
async def execute(body: ExecuteRequest, sandbox: SandboxRunner = Depends(get_sandbox)):
    """Run code once. Failures of the code itself are reported in data, not as HTTP errors."""
    result = await sandbox.execute(body.code, language=body.language, timeout_ms=body.timeout_ms)
    return {"success": True, "data": result.to_wire()}


@router.post("/compare", response_class=ORJSONResponse)
async def compare(body: CompareRequest, tools: PlaygroundTools = Depends(get_playground_tools)):
    if len(body.codes) != len(body.labels):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid comparison", "message": "codes and labels must have the same length"},
        )
    comparison = await tools.compare(body.codes, body.labels, body.language)
    return {"success": True, "data": comparison}


@router.post("/explain-error", response_class=ORJSONResponse)
async def explain_error(body: ExplainErrorRequest, registry: ToolRegistry = Depends(get_registry)):
    """Error analysis through the registry so results share the tool cache."""
    analysis = await registry.execute("explain_error", {"error": body.error, "code": body.code})
    return {"success": True, "data": json.loads(analysis)}


@router.post("/measure", response_class=ORJSONResponse)
async def measure(body: MeasureRequest, sandbox: SandboxRunner = Depends(get_sandbox)):
    try:
        stats = await sandbox.measure(body.code, iterations=body.iterations, language=body.language)
    except SandboxExecutionError as e:
        logger.info(f"Measurement failed: {e}")
        return {"success": False, "error": str(e)}
    return {"success": True, "data": stats}
