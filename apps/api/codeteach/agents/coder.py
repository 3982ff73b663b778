"""
Code Generator: writes code for the learner's request.

The answer is structured with tagged sections (see locales.py); parsing is
lenient and never fails on a missing section.
"""

import logging
from contextlib import aclosing
from typing import AsyncIterator, Optional

from ..core.config import settings
from ..llm_gateway import DeltaChannel, ModelGateway, ModelOptions
from ..locales import LocaleContext
from ..models import GenerationResult
from ..parsing import (
    extract_list,
    extract_section,
    first_fenced_block,
    infer_language,
    strip_code_fences,
)


logger = logging.getLogger(__name__)


def build_user_turn(prompt: str, context: Optional[str] = None) -> str:
    if context:
        return f"Context: {context}\n\nRequest: {prompt}"
    return prompt


def parse_generation(text: str) -> GenerationResult:
    """
    Parse a tagged code-generation answer.

    When the <code> section is missing the first fenced block of the whole
    answer is used, and failing that the whole answer.
    """
    block = extract_section(text, "code")
    if not block:
        block = first_fenced_block(text) or text or ""

    return GenerationResult(
        rationale=extract_section(text, "thinking"),
        code=strip_code_fences(block),
        language=infer_language(block),
        key_decisions=extract_list(text, "key_decisions"),
        next_steps=extract_list(text, "next_steps"),
    )


class CodeGenerator:
    """Generates code, either in one call or as a stream of answer text."""

    def __init__(self, gateway: ModelGateway, max_output_tokens: Optional[int] = None):
        self.gateway = gateway
        self.options = ModelOptions(max_output_tokens=max_output_tokens or settings.CODEGEN_MAX_TOKENS)

    async def generate(
        self,
        prompt: str,
        locale: LocaleContext,
        context: Optional[str] = None,
    ) -> GenerationResult:
        response = await self.gateway.call(
            locale.codegen_prompt,
            build_user_turn(prompt, context),
            self.options,
        )
        result = parse_generation(response.text)
        logger.debug(f"Generated {len(result.code)} chars of {result.language}")
        return result

    async def generate_stream(
        self,
        prompt: str,
        locale: LocaleContext,
        context: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """Yield answer-channel text deltas in emission order."""
        deltas = self.gateway.stream(locale.codegen_prompt, build_user_turn(prompt, context), self.options)
        async with aclosing(deltas):
            async for delta in deltas:
                if delta.channel == DeltaChannel.answer:
                    yield delta.text
