import json
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# Workflow planning

class Intent(str, Enum):
    generate = "generate"
    explain = "explain"
    review = "review"
    alternatives = "alternatives"


class WorkflowStep(CamelModel):
    agent_name: str = Field(validation_alias=AliasChoices("agentName", "agent_name", "agent"))
    action: str = ""
    description: str = ""


class WorkflowPlan(CamelModel):
    intent: Intent
    agents: List[str] = Field(default_factory=list)
    steps: List[WorkflowStep] = Field(
        default_factory=list,
        validation_alias=AliasChoices("steps", "workflow"),
    )
    reasoning: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("agents")
    @classmethod
    def dedupe_agents(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))


# Generator results

class GenerationResult(CamelModel):
    rationale: str = ""
    code: str = ""
    language: str = "text"
    key_decisions: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)


class ExplanationResult(CamelModel):
    deliberation: str = ""
    explanation: str = ""
    key_concepts: List[str] = Field(default_factory=list)
    common_mistakes: List[str] = Field(default_factory=list)
    extended_deliberation: Optional[str] = None


# Tool use

class ToolInvocation(CamelModel):
    id: str
    tool_name: str
    input: Dict[str, Any] = Field(default_factory=dict)


class ToolResult(CamelModel):
    invocation_id: str
    content: str
    is_error: bool = False


class ToolActivity(CamelModel):
    """One observable step of a tool round trip, surfaced to the client."""
    invocation_id: str
    tool_name: str
    status: str  # started, succeeded, failed
    input: Dict[str, Any] = Field(default_factory=dict)
    preview: Optional[str] = None


# Streaming

class EventType(str, Enum):
    plan = "plan"
    thinking = "thinking"
    code = "code"
    explanation = "explanation"
    tool = "tool"
    complete = "complete"
    error = "error"


TERMINAL_EVENTS = {EventType.complete, EventType.error}


class StreamEvent(BaseModel):
    type: EventType
    data: Any = None
    agent: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS

    def to_wire(self) -> Dict[str, Any]:
        payload = {"type": self.type.value, "data": self.data}
        if self.agent:
            payload["agent"] = self.agent
        return payload

    def to_sse(self) -> bytes:
        data = json.dumps(self.to_wire(), ensure_ascii=False)
        return f"event: {self.type.value}\ndata: {data}\n\n".encode()


# Sandbox

class ExecutionResult(CamelModel):
    success: bool
    output: Optional[str] = None
    error: Optional[str] = None
    duration_ms: float = 0.0


# Workspace notes

class LearningNote(CamelModel):
    title: str = Field(..., min_length=1)
    code: str
    language: str
    explanation: str
    key_concepts: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    execution_result: Optional[ExecutionResult] = None
    database_id: Optional[str] = None


class SavedNote(CamelModel):
    page_id: str
    page_url: str


# HTTP request bodies

class Locale(str, Enum):
    en = "en"
    ko = "ko"


class GenerateRequest(CamelModel):
    prompt: str
    locale: Locale = Locale.en
    context_code: Optional[str] = None


class ExplainLineRequest(CamelModel):
    code: str = Field(..., min_length=1)
    line_number: int = Field(..., ge=1)
    locale: Locale = Locale.en
    source_language_hint: Optional[str] = None


class AlternativesRequest(CamelModel):
    code: str = Field(..., min_length=1)
    locale: Locale = Locale.en
    source_language_hint: Optional[str] = None


class ExecuteRequest(CamelModel):
    code: str = Field(..., min_length=1)
    language: str = "javascript"
    timeout_ms: Optional[int] = Field(default=None, ge=1)


class CompareRequest(CamelModel):
    codes: List[str] = Field(..., min_length=1)
    labels: List[str] = Field(..., min_length=1)
    language: str = "javascript"


class ExplainErrorRequest(CamelModel):
    error: str = Field(..., min_length=1)
    code: Optional[str] = None


class MeasureRequest(CamelModel):
    code: str = Field(..., min_length=1)
    iterations: int = Field(default=100, ge=1)
    language: str = "javascript"


class NotionConfigureRequest(CamelModel):
    token: str = Field(..., min_length=1)
    database_id: Optional[str] = None
