from ideabox.fields import (
    BUSINESS_SYSTEM_PROMPT,
    CONTEXT_VALUE_LIMIT,
    DUMP_SYSTEM_PROMPT,
    NO_INPUT,
    ContextSnapshot,
    PromptInput,
    describe_schema,
    field_label,
    field_names,
    schema_for,
)
from ideabox.schemas import UseCase


def test_business_model_schema_order_and_budgets() -> None:
    specs = schema_for(UseCase.BUSINESS_MODEL)

    assert [(spec.name, spec.max_tokens) for spec in specs] == [
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
    ]


def test_dump_analysis_schema_order_and_budgets() -> None:
    specs = schema_for(UseCase.DUMP_ANALYSIS)

    assert [(spec.name, spec.max_tokens) for spec in specs] == [
        ("title", 40),
        ("summary", 80),
        ("pros", 60),
        ("cons", 60),
        ("classification", 30),
    ]


def test_only_classification_is_closed_set() -> None:
    closed = [spec.name for use_case in UseCase for spec in schema_for(use_case) if spec.closed_set]

    assert closed == ["classification"]


def test_describe_schema_lists_categories() -> None:
    definition = describe_schema(UseCase.DUMP_ANALYSIS)

    assert definition.label == UseCase.DUMP_ANALYSIS.label
    classification = definition.fields[-1]
    assert classification.name == "classification"
    assert "Marketing & Growth" in (classification.closed_set or [])
    assert definition.fields[0].closed_set is None


def test_field_label_splits_camel_case() -> None:
    assert field_label("uniqueValueProposition") == "unique value proposition"
    assert field_label("costs") == "costs"


def test_business_prompt_includes_idea_and_question() -> None:
    spec = schema_for(UseCase.BUSINESS_MODEL)[9]
    system_prompt, user_prompt = spec.build_prompts(PromptInput(text="Recipe marketplace"), {})

    assert system_prompt == BUSINESS_SYSTEM_PROMPT
    assert user_prompt.startswith("Business idea: Recipe marketplace")
    assert user_prompt.endswith("What are the main costs to run this business?")


def test_empty_input_uses_placeholder() -> None:
    spec = schema_for(UseCase.BUSINESS_MODEL)[0]
    _, user_prompt = spec.build_prompts(PromptInput(text="   "), {})

    assert NO_INPUT in user_prompt


def test_high_level_concept_reads_prior_summary() -> None:
    spec = schema_for(UseCase.BUSINESS_MODEL)[-1]
    prior = {name: "" for name in field_names(UseCase.BUSINESS_MODEL)}
    prior["summary"] = "A marketplace for home cooks"

    _, user_prompt = spec.build_prompts(PromptInput(text="Recipes"), prior)

    assert "Summary: A marketplace for home cooks" in user_prompt


def test_dump_prompt_embeds_box_context() -> None:
    context = ContextSnapshot.from_fields(
        "Recipe box",
        {"summary": "Sell recipes", "problem": "Cooks lack reach", "solution": "A marketplace"},
    )
    spec = schema_for(UseCase.DUMP_ANALYSIS)[2]

    system_prompt, user_prompt = spec.build_prompts(PromptInput(text="Add video lessons", context=context), {})

    assert system_prompt == DUMP_SYSTEM_PROMPT
    assert user_prompt.startswith("User's idea: Add video lessons")
    assert "=== BACKGROUND INFORMATION ===" in user_prompt
    assert "Box Name: Recipe box" in user_prompt
    assert "Core Problem: Cooks lack reach" in user_prompt


def test_dump_prompt_without_context_has_no_background() -> None:
    spec = schema_for(UseCase.DUMP_ANALYSIS)[0]

    _, user_prompt = spec.build_prompts(PromptInput(text="Add video lessons"), {})

    assert "BACKGROUND" not in user_prompt


def test_context_snapshot_truncates_long_values() -> None:
    snapshot = ContextSnapshot.from_fields("Box", {"summary": "x" * 1000})

    assert len(snapshot.summary) == CONTEXT_VALUE_LIMIT
    assert snapshot.summary.endswith("...")
    assert snapshot.problem == ""
