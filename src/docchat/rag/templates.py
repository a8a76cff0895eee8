"""Prompt template for answering a question from retrieved context.

Prompt structure:
  role + subject description
  instructions (context first, then a dashed divider, then the question)
  Context:
  {context}                 ← verbatim, not escaped
  --------------------------------------
  {question}                ← verbatim, not escaped

Neither the context nor the question is sanitised. Both are inserted as-is,
so instructions embedded in corpus text or in the question reach the model.
"""

from __future__ import annotations

from dataclasses import dataclass

from docchat.config import ProjectCfg

DIVIDER = "-" * 38

_TEMPLATE = """\
You are a helpful chatbot answering questions about {subject}.
{description}

Your job is to answer the user's questions about {subject} as accurately as possible.

Below is some context about the user's question. Use it to help you answer the question.
After the context will be dashes like this: ----
Below the dashes is the user's question that you should answer.

Context:
{context}

{divider}

{question}
"""


@dataclass
class PromptConfig:
    subject: str = ProjectCfg.subject
    description: str = ProjectCfg.description

    @classmethod
    def from_project(cls, project: ProjectCfg) -> PromptConfig:
        return cls(subject=project.subject, description=project.description)


def render(context: str, question: str, config: PromptConfig | None = None) -> str:
    """Render the completion prompt. Deterministic for identical inputs."""
    config = config or PromptConfig()
    # Substituted in one pass so braces inside context / question are left alone.
    return _TEMPLATE.format(
        subject=config.subject,
        description=config.description,
        context=context,
        divider=DIVIDER,
        question=question,
    )
