# recovery_core/forms/extraction.py
"""
Form template -> linear conversational flow.

Sections are walked in (sort_order, created_at, id) order and questions
within a section in the same order, so an unchanged template always yields
an identical flow.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import UUID

from recovery_core.common.api.exceptions import ConfigurationError
from recovery_core.forms.models import FormTemplate, QuestionType, SectionQuestion


@dataclass(frozen=True)
class ConversationalStep:
    step_id: str
    index: int
    section_id: str
    section_name: str
    question_id: str
    question_text: str
    question_type: str
    is_required: bool
    help_text: str = ""
    voice_prompt: str = ""
    options: tuple = ()
    validation_rules: dict = field(default_factory=dict)
    clinical_alerts: dict = field(default_factory=dict)
    next_step_id: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "step_id": self.step_id,
            "index": self.index,
            "section_id": self.section_id,
            "section_name": self.section_name,
            "question_id": self.question_id,
            "question_text": self.question_text,
            "question_type": self.question_type,
            "is_required": self.is_required,
            "help_text": self.help_text,
            "voice_prompt": self.voice_prompt,
            "options": list(self.options),
            "validation_rules": dict(self.validation_rules),
            "next_step_id": self.next_step_id,
        }


@dataclass(frozen=True)
class ConversationalFlow:
    template_id: str
    template_name: str
    steps: tuple[ConversationalStep, ...]
    sections: tuple[dict, ...]

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def required_steps(self) -> int:
        return sum(1 for s in self.steps if s.is_required)

    def step(self, step_id: str) -> Optional[ConversationalStep]:
        return next((s for s in self.steps if s.step_id == step_id), None)

    def step_for_question(self, question_id) -> Optional[ConversationalStep]:
        qid = str(question_id)
        return next((s for s in self.steps if s.question_id == qid), None)

    def as_dict(self) -> dict[str, Any]:
        return {
            "template_id": self.template_id,
            "template_name": self.template_name,
            "total_steps": self.total_steps,
            "required_steps": self.required_steps,
            "sections": [dict(s) for s in self.sections],
            "steps": [s.as_dict() for s in self.steps],
        }


def _merged_rules(placement: SectionQuestion) -> dict:
    base = placement.question.validation_rules or {}
    custom = placement.custom_validation or {}
    if not isinstance(base, dict) or not isinstance(custom, dict):
        raise ConfigurationError(
            "Validation rules must be JSON objects.",
            details={"question_id": str(placement.question_id), "section_question_id": str(placement.id)},
        )
    return {**base, **custom}


def _options(placement: SectionQuestion) -> tuple:
    options = placement.question.options or []
    if not isinstance(options, list):
        raise ConfigurationError(
            "Question options must be a JSON array.",
            details={"question_id": str(placement.question_id)},
        )
    return tuple(options)


def _alert_rules(question) -> dict:
    rules = question.clinical_alerts or {}
    if not isinstance(rules, dict):
        raise ConfigurationError(
            "Clinical alert rules must be a JSON object.",
            details={"question_id": str(question.id)},
        )
    return rules


def build_flow(template: FormTemplate) -> ConversationalFlow:
    placements: list[tuple[Any, SectionQuestion]] = []
    sections: list[dict] = []

    for section in template.sections.order_by("sort_order", "created_at", "id"):
        rows = section.section_questions.select_related("question").order_by("sort_order", "created_at", "id")
        step_ids = []
        for placement in rows:
            placements.append((section, placement))
            step_ids.append(f"{section.id}-{placement.question_id}")
        sections.append({"section_id": str(section.id), "name": section.name, "step_ids": step_ids})

    steps: list[ConversationalStep] = []
    for index, (section, placement) in enumerate(placements):
        question = placement.question
        next_step_id = None
        if index + 1 < len(placements):
            nxt_section, nxt = placements[index + 1]
            next_step_id = f"{nxt_section.id}-{nxt.question_id}"

        steps.append(
            ConversationalStep(
                step_id=f"{section.id}-{question.id}",
                index=index,
                section_id=str(section.id),
                section_name=section.name,
                question_id=str(question.id),
                question_text=question.text,
                question_type=question.question_type,
                is_required=placement.effective_required,
                help_text=question.help_text,
                voice_prompt=question.voice_prompt,
                options=_options(placement),
                validation_rules=_merged_rules(placement),
                clinical_alerts=_alert_rules(question),
                next_step_id=next_step_id,
            )
        )

    return ConversationalFlow(
        template_id=str(template.id),
        template_name=template.name,
        steps=tuple(steps),
        sections=tuple(sections),
    )


def create_chat_prompt(step: ConversationalStep) -> str:
    prompt = step.question_text

    if step.question_type == QuestionType.YES_NO:
        prompt = f"{prompt} (Please answer Yes or No)"
    elif step.question_type in (QuestionType.SCALE, QuestionType.PAIN_SCALE):
        prompt = f"{prompt} (Please rate from 0 to 10)"
    elif step.question_type in (QuestionType.SINGLE_CHOICE, QuestionType.MULTIPLE_CHOICE) and step.options:
        lines = "\n".join(f"{i}. {option}" for i, option in enumerate(step.options, start=1))
        prompt = f"{prompt}\n\nOptions:\n{lines}"

    if step.help_text:
        prompt = f"{prompt}\n\n{step.help_text}"
    return prompt


class FormExtractionService:
    @staticmethod
    def extract(*, tenant_id: UUID, template_id: UUID) -> ConversationalFlow:
        # DoesNotExist (missing or other tenant) surfaces as 404
        template = FormTemplate.objects.get(id=template_id, tenant_id=tenant_id)
        return build_flow(template)
