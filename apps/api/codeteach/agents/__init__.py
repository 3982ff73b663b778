"""
Agents for prompt-driven code generation and explanation.

PLANNING:
- IntentPlanner: classifies the prompt into an intent and agent workflow

GENERATION:
- CodeGenerator: writes code (streamed and structured)
- Explainer: explains code, runs tools when the model asks for them

COORDINATION:
- OrchestrationDriver: sequences the agents into one ordered event stream
"""

from .planner import IntentPlanner, parse_plan
from .coder import CodeGenerator, parse_generation
from .explainer import Explainer, parse_explanation
from .orchestrator import OrchestrationDriver


__all__ = [
    # Planning
    "IntentPlanner",
    "parse_plan",
    # Generation
    "CodeGenerator",
    "parse_generation",
    "Explainer",
    "parse_explanation",
    # Coordination
    "OrchestrationDriver",
]
