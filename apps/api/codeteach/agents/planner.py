"""
Intent Planner: decides what the learner is asking for and which agents run.

One blocking model call per request. The answer is a JSON workflow plan
embedded in free text; no retries are attempted on a malformed plan.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from ..core.config import settings
from ..exceptions import PlanParseError
from ..llm_gateway import ModelGateway, ModelOptions
from ..locales import LocaleContext
from ..models import WorkflowPlan
from ..parsing import extract_json_object


logger = logging.getLogger(__name__)


PLAN_REQUEST_TEMPLATE = """Analyze this request and provide a workflow plan in JSON format:

User Request: {prompt}

Required JSON format:
{{
  "intent": "generate" | "explain" | "review" | "alternatives",
  "agents": ["CodeGenAgent" | "ExplainAgent"],
  "workflow": [
    {{
      "agent": "agent_name",
      "action": "action_description",
      "description": "detailed_description"
    }}
  ],
  "reasoning": "why_this_workflow"
}}"""


def parse_plan(text: str) -> WorkflowPlan:
    """
    Build a WorkflowPlan from the planner's raw answer.

    Args:
        text: Model answer containing a JSON object somewhere in it

    Returns:
        Validated WorkflowPlan

    Raises:
        PlanParseError: No JSON object, malformed JSON, or a plan that does
            not validate (unknown intent, wrong field types)
    """
    payload = extract_json_object(text)
    try:
        return WorkflowPlan.model_validate(payload)
    except ValidationError as e:
        raise PlanParseError(f"Invalid workflow plan: {e.errors()[0]['msg']}") from e


class IntentPlanner:
    """Classifies a prompt into an intent and an agent workflow."""

    def __init__(self, gateway: ModelGateway, max_output_tokens: Optional[int] = None):
        self.gateway = gateway
        self.max_output_tokens = max_output_tokens or settings.PLANNER_MAX_TOKENS

    async def analyze(self, prompt: str, locale: LocaleContext) -> WorkflowPlan:
        response = await self.gateway.call(
            locale.planner_prompt,
            PLAN_REQUEST_TEMPLATE.format(prompt=prompt),
            ModelOptions(max_output_tokens=self.max_output_tokens),
        )
        plan = parse_plan(response.text)
        logger.info(f"Planned intent={plan.intent.value} agents={plan.agents}")
        return plan
