"""Prompt templates and the built-in prompt hub.

Templates use str.format fields ({context}, {question}). Literal braces are
written doubled ({{ and }}).
"""

import string
from pathlib import Path
from typing import Iterable, Optional

from quickrag.entities import SearchResult
from quickrag.observability.logging import get_logger

logger = get_logger(__name__)


class PromptError(Exception):
    """Raised for unknown prompts, unreadable templates and missing variables."""

    def __init__(self, message: str, prompt: Optional[str] = None):
        self.message = message
        self.prompt = prompt
        super().__init__(self.message)


class PromptTemplate:
    """A str.format template with declared input variables."""

    def __init__(self, template: str, name: Optional[str] = None) -> None:
        self.template = template
        self.name = name
        try:
            fields = [f for _, f, _, _ in string.Formatter().parse(template) if f is not None]
        except ValueError as e:
            raise PromptError(f"Invalid prompt template: {e}", prompt=name) from e
        for field_name in fields:
            if not field_name.isidentifier():
                raise PromptError(
                    f"Prompt variables must be plain names, got '{{{field_name}}}'",
                    prompt=name,
                )
        self.input_variables = sorted(set(fields))

    @classmethod
    def from_file(cls, path: Path) -> "PromptTemplate":
        """Read a template from a UTF-8 text file."""
        try:
            template = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise PromptError(f"Failed to read prompt template {path}: {e}", prompt=str(path)) from e
        return cls(template, name=str(path))

    def format(self, **values: str) -> str:
        """Fill the template.

        Raises:
            PromptError: If any input variable is missing
        """
        missing = [v for v in self.input_variables if v not in values]
        if missing:
            raise PromptError(
                f"Missing prompt variables: {', '.join(missing)}",
                prompt=self.name,
            )
        return self.template.format(**{k: v for k, v in values.items() if k in self.input_variables})

    def __repr__(self) -> str:
        return f"PromptTemplate(name={self.name!r}, input_variables={self.input_variables!r})"


RAG_PROMPT = (
    "You are an assistant for question-answering tasks. "
    "Use the following pieces of retrieved context to answer the question. "
    "If you don't know the answer, just say that you don't know. "
    "Use three sentences maximum and keep the answer concise.\n"
    "Question: {question} \n"
    "Context: {context} \n"
    "Answer:"
)

RAG_CITED_PROMPT = (
    "You are an assistant for question-answering tasks. "
    "Use the following pieces of retrieved context to answer the question. "
    "Each piece starts with its source in square brackets. "
    "If you don't know the answer, just say that you don't know. "
    "Keep the answer concise and list the sources you used at the end.\n\n"
    "Context:\n{context}\n\n"
    "Question: {question}\n"
    "Answer:"
)

PROMPT_HUB: dict[str, str] = {
    "rlm/rag-prompt": RAG_PROMPT,
    "quickrag/rag-cited": RAG_CITED_PROMPT,
}

# Prompts whose context should carry a "[source]" header per chunk.
CITED_PROMPTS = {"quickrag/rag-cited"}


def list_prompts() -> list[str]:
    """Names of the built-in prompts."""
    return sorted(PROMPT_HUB)


def load_prompt(name: Optional[str] = None, path: Optional[Path] = None) -> PromptTemplate:
    """Load a prompt from the hub by name, or from a template file.

    A path takes precedence over a name. The template must use the
    {context} and {question} variables.

    Raises:
        PromptError: If the name is unknown, the file unreadable or the
            template lacks a required variable
    """
    if path is not None:
        prompt = PromptTemplate.from_file(path)
    else:
        name = name or "rlm/rag-prompt"
        if name not in PROMPT_HUB:
            raise PromptError(
                f"Unknown prompt '{name}'. Available: {', '.join(list_prompts())}",
                prompt=name,
            )
        prompt = PromptTemplate(PROMPT_HUB[name], name=name)

    missing = {"context", "question"} - set(prompt.input_variables)
    if missing:
        raise PromptError(
            f"Prompt must use {{context}} and {{question}}; missing: {', '.join(sorted(missing))}",
            prompt=prompt.name,
        )

    logger.debug("prompt_loaded", prompt=prompt.name, input_variables=prompt.input_variables)
    return prompt


def format_documents(results: Iterable[SearchResult], with_sources: bool = False) -> str:
    """Join retrieved chunk contents with blank lines."""
    parts = []
    for result in results:
        if with_sources:
            parts.append(f"[{result.chunk.source}]\n{result.chunk.content}")
        else:
            parts.append(result.chunk.content)
    return "\n\n".join(parts)
