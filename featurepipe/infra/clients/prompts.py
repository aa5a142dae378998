"""Prompt templates for the agent-backed stages.

Templates live in featurepipe/prompts/{stage_id}.md and are read once.
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING

from featurepipe.infra.env import PROMPTS_DIR

if TYPE_CHECKING:
    from collections.abc import Sequence

    from featurepipe.core.models import Artifact


@functools.cache
def load_stage_prompt(stage_id: str) -> str:
    """Load the prompt template for a stage.

    Raises:
        FileNotFoundError: If no template exists for ``stage_id``.
    """
    return (PROMPTS_DIR / f"{stage_id}.md").read_text(encoding="utf-8")


def format_inputs(inputs: Sequence[Artifact]) -> str:
    """Render resolved input artifacts as prompt sections."""
    sections = []
    for artifact in inputs:
        header = f"### {artifact.kind.value} ({artifact.path})"
        body = artifact.body.strip()
        if artifact.references:
            refs = "\n".join(f"- {ref}" for ref in artifact.references)
            body = f"{body}\n\nReferenced files:\n{refs}"
        sections.append(f"{header}\n\n{body}")
    return "\n\n".join(sections)
