# recovery_core/conversations/services.py
"""
Form-driven chat.

A conversation linked to a PatientForm asks the form's questions in flow
order. The current question is always the first step without an answer,
so a conversation can be resumed from any point (or after answers were
submitted through /forms/submit/).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils.timezone import now
from rest_framework.exceptions import ValidationError

from recovery_core.audit.services import AuditService
from recovery_core.conversations.models import Conversation, ConversationStatus, Message, SenderType
from recovery_core.forms.extraction import ConversationalStep, build_flow, create_chat_prompt
from recovery_core.forms.models import PatientForm, QuestionType, ResponseMethod
from recovery_core.forms.services import FormResponseService, SaveResult
from recovery_core.patients.models import Patient

logger = logging.getLogger(__name__)

FORM_DONE_MSG = "Thank you! You have answered all the questions for this form."
NO_FORM_MSG = "This conversation is not linked to a form."


@dataclass(frozen=True)
class AnswerResult:
    patient_message: Message
    reply: Optional[Message]
    saved: Optional[SaveResult] = None
    error: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.saved is not None


def _chat_answer(step: ConversationalStep, content: str):
    """
    Chat answers arrive as text. A number picks a listed option; multiple
    choice accepts a comma separated list of numbers or option values.
    """
    text = content.strip()
    options = [str(o.get("value", o.get("label", ""))) if isinstance(o, dict) else str(o) for o in step.options]

    def pick(token: str) -> str:
        token = token.strip()
        if token.isdigit() and 1 <= int(token) <= len(options):
            return options[int(token) - 1]
        return token

    if step.question_type == QuestionType.SINGLE_CHOICE and options:
        return pick(text)
    if step.question_type == QuestionType.MULTIPLE_CHOICE:
        return [pick(t) for t in text.split(",") if t.strip()]
    return text


def _error_text(exc: Exception) -> str:
    if isinstance(exc, DjangoValidationError):
        return "; ".join(exc.messages)
    detail = exc.detail
    if isinstance(detail, dict):
        detail = detail.get("detail") or next(iter(detail.values()), "")
    if isinstance(detail, list):
        detail = detail[0] if detail else ""
    return str(detail)


class ConversationService:
    @staticmethod
    def _lock(*, tenant_id: UUID, conversation_id: UUID) -> Conversation:
        return Conversation.objects.select_for_update().get(id=conversation_id, tenant_id=tenant_id)

    @staticmethod
    def _append(
        conversation: Conversation,
        *,
        sender_type: str,
        content: str,
        sender_user_id: int | None = None,
        metadata: dict | None = None,
    ) -> Message:
        if conversation.status == ConversationStatus.CLOSED:
            raise ValidationError({"detail": "Conversation is closed."})
        return Message.objects.create(
            tenant_id=conversation.tenant_id,
            conversation=conversation,
            sender_type=sender_type,
            sender_user_id=sender_user_id,
            content=content,
            metadata=metadata or {},
        )

    @staticmethod
    @transaction.atomic
    def start(
        *,
        tenant_id: UUID,
        patient_id: UUID,
        patient_form_id: UUID | None = None,
        title: str = "",
        actor_user_id: int | None = None,
    ) -> Conversation:
        patient = Patient.objects.get(id=patient_id, tenant_id=tenant_id)

        patient_form = None
        if patient_form_id is not None:
            patient_form = PatientForm.objects.select_related("template").get(id=patient_form_id, tenant_id=tenant_id)
            if patient_form.patient_id != patient.id:
                raise ValidationError({"patient_form_id": "Form belongs to another patient."})

        conversation = Conversation.objects.create(
            tenant_id=tenant_id,
            patient=patient,
            patient_form=patient_form,
            title=title or (patient_form.template.name if patient_form else ""),
            started_by_id=actor_user_id,
        )

        AuditService.log_safely(
            tenant_id=tenant_id,
            action="conversation.started",
            resource_type="Conversation",
            resource_id=conversation.id,
            actor_user_id=actor_user_id,
            metadata={"patient_id": str(patient.id)},
        )

        if patient_form is not None:
            ConversationService._ask(conversation)
        return conversation

    @staticmethod
    @transaction.atomic
    def post_message(
        *,
        tenant_id: UUID,
        conversation_id: UUID,
        sender_type: str,
        content: str,
        sender_user_id: int | None = None,
        metadata: dict | None = None,
    ) -> Message:
        if sender_type not in SenderType.values:
            raise ValidationError({"sender_type": [f"Invalid sender_type: {sender_type}"]})
        if not (content or "").strip():
            raise ValidationError({"content": ["Message cannot be empty."]})

        conversation = ConversationService._lock(tenant_id=tenant_id, conversation_id=conversation_id)
        return ConversationService._append(
            conversation,
            sender_type=sender_type,
            content=content.strip(),
            sender_user_id=sender_user_id,
            metadata=metadata,
        )

    @staticmethod
    def _current_step(conversation: Conversation) -> Optional[ConversationalStep]:
        form = conversation.patient_form
        return FormResponseService.next_step(form, flow=build_flow(form.template))

    @staticmethod
    def _ask(conversation: Conversation) -> Message:
        step = ConversationService._current_step(conversation)
        if step is None:
            return ConversationService._append(
                conversation,
                sender_type=SenderType.AI,
                content=FORM_DONE_MSG,
                metadata={"form_complete": True},
            )
        return ConversationService._append(
            conversation,
            sender_type=SenderType.AI,
            content=create_chat_prompt(step),
            metadata={"step_id": step.step_id, "question_id": step.question_id},
        )

    @staticmethod
    @transaction.atomic
    def ask_next_question(*, tenant_id: UUID, conversation_id: UUID) -> Message:
        conversation = ConversationService._lock(tenant_id=tenant_id, conversation_id=conversation_id)
        if conversation.patient_form_id is None:
            raise ValidationError({"detail": NO_FORM_MSG})
        return ConversationService._ask(conversation)

    @staticmethod
    @transaction.atomic
    def answer_current_question(
        *,
        tenant_id: UUID,
        conversation_id: UUID,
        content: str,
        response_method: str = ResponseMethod.TEXT,
        time_to_respond: int | None = None,
        actor_user_id: int | None = None,
    ) -> AnswerResult:
        """
        Record the patient's message, save it as the answer to the current
        question and ask the next one. A rejected answer gets the validation
        message and the same question again.
        """
        conversation = ConversationService._lock(tenant_id=tenant_id, conversation_id=conversation_id)
        if conversation.patient_form_id is None:
            raise ValidationError({"detail": NO_FORM_MSG})

        step = ConversationService._current_step(conversation)
        patient_message = ConversationService._append(
            conversation,
            sender_type=SenderType.PATIENT,
            content=content,
            sender_user_id=actor_user_id,
            metadata={"step_id": step.step_id, "question_id": step.question_id} if step else {},
        )
        if step is None:
            return AnswerResult(patient_message=patient_message, reply=ConversationService._ask(conversation))

        try:
            saved = FormResponseService.save_response(
                tenant_id=tenant_id,
                patient_form_id=conversation.patient_form_id,
                question_id=step.question_id,
                response=_chat_answer(step, content),
                response_method=response_method,
                time_to_respond=time_to_respond,
                actor_user_id=actor_user_id,
            )
        except (ValidationError, DjangoValidationError) as exc:
            error = _error_text(exc)
            reply = ConversationService._append(
                conversation,
                sender_type=SenderType.AI,
                content=f"{error}\n\n{create_chat_prompt(step)}",
                metadata={"step_id": step.step_id, "question_id": step.question_id, "error": error},
            )
            return AnswerResult(patient_message=patient_message, reply=reply, error=error)

        if saved.alerts:
            logger.info(
                "Conversation %s raised %d alert(s) for question %s",
                conversation.id,
                len(saved.alerts),
                step.question_id,
            )

        reply = ConversationService._ask(conversation)
        return AnswerResult(patient_message=patient_message, reply=reply, saved=saved)

    @staticmethod
    @transaction.atomic
    def close(*, tenant_id: UUID, conversation_id: UUID, actor_user_id: int | None = None) -> Conversation:
        conversation = ConversationService._lock(tenant_id=tenant_id, conversation_id=conversation_id)

        # idempotent
        if conversation.status == ConversationStatus.CLOSED:
            return conversation

        conversation.status = ConversationStatus.CLOSED
        conversation.closed_at = now()
        conversation.save(update_fields=["status", "closed_at", "updated_at"])

        AuditService.log_safely(
            tenant_id=tenant_id,
            action="conversation.closed",
            resource_type="Conversation",
            resource_id=conversation.id,
            actor_user_id=actor_user_id,
        )
        return conversation
