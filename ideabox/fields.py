"""Ordered field schemas and prompt builders for each generation use case."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from textwrap import dedent
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from .normalizer import CLASSIFICATIONS, Category
from .schemas import FieldDescriptor, SchemaDefinition, UseCase

CONTEXT_VALUE_LIMIT = 400
NO_INPUT = "No input provided."


@dataclass(frozen=True)
class ContextSnapshot:
    """Read-only excerpt of a box used to ground dump-analysis prompts."""

    name: str = ""
    summary: str = ""
    problem: str = ""
    solution: str = ""

    @classmethod
    def from_fields(cls, name: str, fields: Mapping[str, str]) -> "ContextSnapshot":
        return cls(
            name=_excerpt(name),
            summary=_excerpt(fields.get("summary", "")),
            problem=_excerpt(fields.get("problem", "")),
            solution=_excerpt(fields.get("solution", "")),
        )


@dataclass(frozen=True)
class PromptInput:
    """Everything a prompt builder may read besides the already generated fields."""

    text: str
    title: Optional[str] = None
    context: Optional[ContextSnapshot] = None


PromptPair = Tuple[str, str]
PromptBuilder = Callable[[PromptInput, Mapping[str, str]], PromptPair]


@dataclass(frozen=True)
class FieldSpec:
    """One named field of a schema, in generation order."""

    name: str
    max_tokens: int
    prompt_builder: PromptBuilder
    closed_set: Tuple[Category, ...] = field(default_factory=tuple)

    @property
    def label(self) -> str:
        return field_label(self.name)

    def build_prompts(self, prompt_input: PromptInput, prior_fields: Mapping[str, str]) -> PromptPair:
        return self.prompt_builder(prompt_input, prior_fields)


def _excerpt(value: str | None) -> str:
    text = (value or "").strip()
    if len(text) <= CONTEXT_VALUE_LIMIT:
        return text
    return text[: CONTEXT_VALUE_LIMIT - 3].rstrip() + "..."


def field_label(name: str) -> str:
    """Turn a camelCase field name into lower-case words."""

    return re.sub(r"([a-z])([A-Z])", r"\1 \2", name).lower()


# ---------------------------------------------------------------------------
# Business model prompts
# ---------------------------------------------------------------------------

BUSINESS_SYSTEM_PROMPT = dedent(
    """
    You are a business analysis expert. Generate concise, specific content for business model components.
    Keep responses focused and relevant to the given idea. Do not include markdown formatting, headers, or structured text.
    Provide direct, plain text responses only. Keep responses to 1-3 sentences maximum.
    Stop immediately after providing the answer. Do not repeat or continue generating.
    """
).strip()

BUSINESS_QUESTIONS: Dict[str, str] = {
    "summary": "Write a one-sentence summary of what this business does:",
    "problem": "What main problem does this business solve?",
    "solution": "How does this business work to solve the problem?",
    "uniqueValueProposition": "What makes this business unique compared to alternatives?",
    "customerSegments": "Who are the target customers for this business?",
    "earlyAdopters": "Who would be the first customers to try this?",
    "existingAlternatives": "What current alternatives or competitors exist?",
    "channels": "How would this business reach its customers?",
    "revenueStreams": "How would this business make money?",
    "costs": "What are the main costs to run this business?",
    "keyMetrics": "What key metrics would measure success?",
    "unfairAdvantage": "What competitive advantages does this business have?",
    "highLevelConcept": "Provide a brief elevator pitch for this business:",
}


def _business_idea(prompt_input: PromptInput) -> str:
    text = prompt_input.text.strip()
    title = (prompt_input.title or "").strip()
    if title and text:
        return f"{title}: {text}"
    return title or text or NO_INPUT


def _business_prompt(name: str) -> PromptBuilder:
    question = BUSINESS_QUESTIONS[name]

    def build(prompt_input: PromptInput, prior_fields: Mapping[str, str]) -> PromptPair:
        return BUSINESS_SYSTEM_PROMPT, f"Business idea: {_business_idea(prompt_input)}\n\n{question}"

    return build


def _high_level_concept_prompt(prompt_input: PromptInput, prior_fields: Mapping[str, str]) -> PromptPair:
    # The elevator pitch is anchored on the summary generated first.
    user_prompt = f"Business idea: {_business_idea(prompt_input)}"
    summary = prior_fields.get("summary", "").strip()
    if summary:
        user_prompt += f"\nSummary: {summary}"
    user_prompt += f"\n\n{BUSINESS_QUESTIONS['highLevelConcept']}"
    return BUSINESS_SYSTEM_PROMPT, user_prompt


# ---------------------------------------------------------------------------
# Dump analysis prompts
# ---------------------------------------------------------------------------

DUMP_SYSTEM_PROMPT = dedent(
    """
    You are an idea analysis expert. Generate concise, specific content for idea components.
    Keep responses focused and relevant to the given dump content and box context.
    IMPORTANT: Do not use quotation marks, markdown formatting, headers, or structured text.
    Provide direct, plain text responses only. Keep responses to 1-3 sentences maximum.
    Do not include quotes, bullet points, or any special formatting.
    Stop immediately after providing the answer. Do not repeat or continue generating.
    """
).strip()

DUMP_TASKS: Dict[str, str] = {
    "title": (
        "Generate a concise title for the user's specific idea. Focus only on what the user described. "
        "Maximum 3 words or 15 characters. Do not use quotes around the title:"
    ),
    "summary": (
        "Summarize the user's specific ideas in relation to this business context. "
        "Focus on what the user proposed:"
    ),
    "pros": "Identify the positive aspects of the user's specific ideas as they relate to this business:",
    "cons": "Identify potential challenges with the user's specific ideas in this business context:",
    "classification": (
        "Classify the user's ideas into ONE category: "
        + ", ".join(category.label for category in CLASSIFICATIONS)
        + ". Answer with the category name only, no quotes:"
    ),
}


def _context_block(context: Optional[ContextSnapshot]) -> str:
    if context is None:
        return ""
    return (
        "\n\n=== BACKGROUND INFORMATION ===\n"
        f"Box Name: {context.name}\n"
        f"Business Summary: {context.summary}\n"
        f"Core Problem: {context.problem}\n"
        f"Current Solution: {context.solution}\n\n"
        "Note: This is background context. Focus on analyzing the user's input and how it relates to "
        "or could integrate with this business."
    )


def _dump_prompt(name: str) -> PromptBuilder:
    task = DUMP_TASKS[name]

    def build(prompt_input: PromptInput, prior_fields: Mapping[str, str]) -> PromptPair:
        idea = prompt_input.text.strip() or NO_INPUT
        user_prompt = f"User's idea: {idea}{_context_block(prompt_input.context)}\n\n{task}"
        return DUMP_SYSTEM_PROMPT, user_prompt

    return build


# ---------------------------------------------------------------------------
# Schema registry
# ---------------------------------------------------------------------------

BUSINESS_MODEL_BUDGETS: Tuple[Tuple[str, int], ...] = (
    ("summary", 80),
    ("problem", 60),
    ("solution", 60),
    ("uniqueValueProposition", 50),
    ("customerSegments", 80),
    ("earlyAdopters", 50),
    ("existingAlternatives", 60),
    ("channels", 60),
    ("revenueStreams", 60),
    ("costs", 50),
    ("keyMetrics", 60),
    ("unfairAdvantage", 50),
    ("highLevelConcept", 40),
)

DUMP_ANALYSIS_BUDGETS: Tuple[Tuple[str, int], ...] = (
    ("title", 40),
    ("summary", 80),
    ("pros", 60),
    ("cons", 60),
    ("classification", 30),
)


def _business_schema() -> Tuple[FieldSpec, ...]:
    specs = []
    for name, budget in BUSINESS_MODEL_BUDGETS:
        builder = _high_level_concept_prompt if name == "highLevelConcept" else _business_prompt(name)
        specs.append(FieldSpec(name=name, max_tokens=budget, prompt_builder=builder))
    return tuple(specs)


def _dump_schema() -> Tuple[FieldSpec, ...]:
    return tuple(
        FieldSpec(
            name=name,
            max_tokens=budget,
            prompt_builder=_dump_prompt(name),
            closed_set=CLASSIFICATIONS if name == "classification" else (),
        )
        for name, budget in DUMP_ANALYSIS_BUDGETS
    )


FIELD_SCHEMAS: Dict[UseCase, Tuple[FieldSpec, ...]] = {
    UseCase.BUSINESS_MODEL: _business_schema(),
    UseCase.DUMP_ANALYSIS: _dump_schema(),
}


def schema_for(use_case: UseCase) -> Tuple[FieldSpec, ...]:
    return FIELD_SCHEMAS[use_case]


def field_names(use_case: UseCase) -> List[str]:
    return [spec.name for spec in FIELD_SCHEMAS[use_case]]


def describe_schema(use_case: UseCase) -> SchemaDefinition:
    """Return a UI-friendly descriptor for the schema of ``use_case``."""

    return SchemaDefinition(
        use_case=use_case,
        label=use_case.label,
        fields=[
            FieldDescriptor(
                name=spec.name,
                label=spec.label,
                max_tokens=spec.max_tokens,
                closed_set=[category.label for category in spec.closed_set] or None,
            )
            for spec in FIELD_SCHEMAS[use_case]
        ],
    )
