"""Prompt composition for the UI copilot."""
import re
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

from uicopilot.errors import ValidationError

SYSTEM_PROMPT = """You are a Vue/Nuxt 3 and Tailwind CSS expert, ready to assist the user in crafting exceptional user interfaces for their applications. Your focus covers all aspects of UI design within the Vue ecosystem: components, icons, color schemes and dark mode. You also give guidance on keyboard shortcuts for a seamless user experience. If the context contains existing code, update it to align with the new question or prompt.

Here are the rules you should strictly follow while responding:

1. Provide code exclusively; avoid non-code explanations.
2. Employ Vue 3 and Tailwind CSS best practices. Use the `<script setup>` section with `lang="ts"` when writing Vue components.
3. Use components from Nuxt UI sparingly, only when necessary.
4. Avoid combining multiple scripts and templates within the code you provide.
5. Nuxt UI components are auto-imported; do not import them manually.
6. Always prioritize Tailwind CSS for styling, resorting to plain CSS only when Tailwind isn't applicable.
7. In every response, include a `<script setup>` tag with `lang="ts"` that contains the template's dependencies.
8. Format icon names consistently as 'i-heroicons-[name]' (e.g. `<UIcon name="i-heroicons-chat-bubble-oval-left-20-solid" />`).
9. Don't make up Tailwind styles or classes. Only use the ones documented in the Tailwind docs.
10. Prefer Nuxt UI elements over vanilla HTML elements.
11. Remove any markdown formatting, for example ```vue code fences.

Incorporate any relevant chat history or existing code below to make the required updates or changes."""

CONDENSE_PROMPT = """Given the following conversation and a follow up question, rephrase the follow up question to be a standalone question that keeps any changes to the code coming from the chat history. Reply with the standalone question only.

Chat History:
{chat_history}

Follow Up Input: {question}

Standalone question:"""

_NEWLINES = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class ConversationTurn:
    """One prior message of the conversation."""

    role: str  # "user" or "assistant"
    text: str

    def __post_init__(self):
        if self.role not in ("user", "assistant"):
            raise ValueError(f"Unknown conversation role: {self.role}")

    def render(self) -> str:
        return f"{self.role}: {self.text}"


HistoryItem = Union[str, ConversationTurn]


def render_history(history: Sequence[HistoryItem]) -> str:
    """Join history entries in caller order; plain strings pass through verbatim."""
    return "\n".join(
        item.render() if isinstance(item, ConversationTurn) else item
        for item in history
    )


@dataclass(frozen=True)
class PromptSpec:
    """The four prompt sections, serialised in a fixed order."""

    system: str
    history: Tuple[HistoryItem, ...]
    context: str
    question: str

    def render(self) -> str:
        """Serialise as instructions, history, context, then the question."""
        return (
            f"{self.system}\n\n"
            f"Chat History:\n{render_history(self.history)}\n\n"
            f"Context:\n{self.context}\n\n"
            f"Question:\n{self.question}\n\n"
            "Your Answer:\n"
        )


def build_prompt(
    question: str, history: Sequence[HistoryItem], context: str, system: str = SYSTEM_PROMPT
) -> PromptSpec:
    return PromptSpec(system=system, history=tuple(history), context=context, question=question)


def build_condense_prompt(history: Sequence[HistoryItem], question: str) -> str:
    """Prompt asking the model for a standalone version of a follow-up question."""
    return CONDENSE_PROMPT.format(chat_history=render_history(history), question=question)


def normalize_question(question, max_chars: int = None) -> str:
    """Trim the question and collapse line breaks to spaces.

    Raises:
        ValidationError: If the question is missing, empty or too long
    """
    if not isinstance(question, str):
        raise ValidationError("No question provided", field="question")

    normalized = _NEWLINES.sub(" ", question.strip())

    if not normalized:
        raise ValidationError("No question provided", field="question")

    if max_chars is not None and len(normalized) > max_chars:
        raise ValidationError(
            f"Question too long (max {max_chars} characters)", field="question"
        )

    return normalized
