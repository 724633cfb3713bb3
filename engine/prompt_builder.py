"""Step 1 — Prompt construction for the bias-detection call."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from prompts.system_prompt import BIAS_DETECTION_PROMPT, CORE_RULES
from schemas.response import BiasCategory

_CATEGORY_LIST = ", ".join(f'"{c.value}"' for c in BiasCategory)

SYSTEM_PROMPT = BIAS_DETECTION_PROMPT.format(
    core_rules=CORE_RULES.format(categories=_CATEGORY_LIST),
    categories=_CATEGORY_LIST,
)


class PromptPayload(BaseModel):
    """Instruction sent to the generation service: fixed system part + the text."""

    model_config = ConfigDict(frozen=True)

    system: str
    user: str


def build_prompt(text: str) -> PromptPayload:
    """Return the request payload for *text*.

    Pure function; the caller has already checked that *text* is non-empty and
    within the length limit.
    """
    return PromptPayload(system=SYSTEM_PROMPT, user=f"Text to analyse:\n\n{text}")
