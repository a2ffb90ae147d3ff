# recovery_core/forms/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Optional
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils.timezone import now
from rest_framework.exceptions import NotFound, ValidationError

from recovery_core.alerts.models import ClinicalAlert
from recovery_core.alerts.services import AlertContext, AlertService
from recovery_core.audit.services import AuditService
from recovery_core.common.dates import add_days, days_between, utc_today
from recovery_core.common.events import publish
from recovery_core.forms import alert_rules
from recovery_core.forms.extraction import ConversationalFlow, ConversationalStep, build_flow
from recovery_core.forms.models import (
    FormResponse,
    FormSection,
    FormTemplate,
    PatientForm,
    PatientFormStatus,
    Question,
    QuestionType,
    ResponseMethod,
    SectionQuestion,
)
from recovery_core.forms.validation import is_blank, validate
from recovery_core.patients.models import Patient
from recovery_core.protocols.models import Protocol, ProtocolTask, TaskType
from recovery_core.protocols.selectors import active_assignment_for_patient
from recovery_core.tasks.models import PatientTask

logger = logging.getLogger(__name__)

YES_VALUES = {"yes", "y", "true", "1"}
UPCOMING_WINDOW_DAYS = 7
TIME_TO_RESPOND_MSG = "time_to_respond must be a whole number of seconds (0 or more)."


# ----------------------------
# Parsing
# ----------------------------

def parse_response(step: ConversationalStep, value: Any) -> Any:
    """
    Normalise a validated answer by question type. Blank answers parse to None.
    """
    if is_blank(value):
        return None

    qtype = step.question_type
    text = str(value).strip() if not isinstance(value, (list, tuple)) else ""

    if qtype == QuestionType.NUMBER:
        return float(text)
    if qtype in (QuestionType.SCALE, QuestionType.PAIN_SCALE):
        return int(float(text))
    if qtype == QuestionType.YES_NO:
        if isinstance(value, bool):
            return "yes" if value else "no"
        return "yes" if text.lower() in YES_VALUES else "no"
    if qtype == QuestionType.DATE:
        return date.fromisoformat(text[:10]).isoformat()
    if qtype == QuestionType.MULTIPLE_CHOICE:
        items = value if isinstance(value, (list, tuple)) else text.split(",")
        return [str(v).strip() for v in items if not is_blank(v)]
    return text


# ----------------------------
# Results
# ----------------------------

@dataclass(frozen=True)
class CompletionStatus:
    total_questions: int
    answered_questions: int
    required_questions: int
    answered_required_questions: int
    percentage: int
    is_complete: bool
    missing_required_questions: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "total_questions": self.total_questions,
            "answered_questions": self.answered_questions,
            "required_questions": self.required_questions,
            "answered_required_questions": self.answered_required_questions,
            "percentage": self.percentage,
            "is_complete": self.is_complete,
            "missing_required_questions": list(self.missing_required_questions),
        }


@dataclass(frozen=True)
class SaveResult:
    response: FormResponse
    alerts: list[ClinicalAlert]
    completion_status: CompletionStatus


@dataclass(frozen=True)
class BatchItemResult:
    question_id: str
    success: bool
    error: Optional[str] = None
    response_id: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "question_id": self.question_id,
            "success": self.success,
            "error": self.error,
            "response_id": self.response_id,
        }


@dataclass(frozen=True)
class BatchResult:
    results: list[BatchItemResult]
    alerts: list[ClinicalAlert]
    completion_status: CompletionStatus

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded


def completion_percentage(answered: int, total: int) -> int:
    """
    Rounded half-up share of answered questions. Never reports 100 for an
    incomplete form.
    """
    if total <= 0:
        return 0
    pct = int(answered * 100 / total + 0.5)
    if answered < total:
        pct = min(pct, 99)
    return pct


def _error_message(exc: Exception) -> str:
    if isinstance(exc, DjangoValidationError):
        return "; ".join(exc.messages)

    detail = getattr(exc, "detail", None)
    if isinstance(detail, dict):
        detail = detail.get("detail") or next(iter(detail.values()), "")
    if isinstance(detail, list):
        detail = detail[0] if detail else ""
    return str(detail or exc)


def _seconds_or_none(value: Any) -> Optional[int]:
    """time_to_respond: None or a whole, non-negative number of seconds."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError({"detail": TIME_TO_RESPOND_MSG})
    try:
        seconds = int(str(value).strip())
    except ValueError:
        raise ValidationError({"detail": TIME_TO_RESPOND_MSG})
    if seconds < 0:
        raise ValidationError({"detail": TIME_TO_RESPOND_MSG})
    return seconds


# ----------------------------
# Responses
# ----------------------------

class FormResponseService:
    @staticmethod
    def latest_responses(patient_form: PatientForm) -> dict[str, FormResponse]:
        """
        Latest row per question (rows are append-only; later rows win).
        """
        latest: dict[str, FormResponse] = {}
        for row in patient_form.responses.order_by("created_at"):
            latest[str(row.question_id)] = row
        return latest

    @staticmethod
    def completion_status(patient_form: PatientForm, *, flow: ConversationalFlow | None = None) -> CompletionStatus:
        flow = flow or build_flow(patient_form.template)
        latest = FormResponseService.latest_responses(patient_form)

        total = flow.total_steps
        answered = sum(1 for s in flow.steps if s.question_id in latest)

        required = [s for s in flow.steps if s.is_required]
        missing = [
            s.question_id
            for s in required
            if s.question_id not in latest or latest[s.question_id].parsed_value is None
        ]

        return CompletionStatus(
            total_questions=total,
            answered_questions=answered,
            required_questions=len(required),
            answered_required_questions=len(required) - len(missing),
            percentage=completion_percentage(answered, total),
            is_complete=total > 0 and answered == total,
            missing_required_questions=missing,
        )

    @staticmethod
    def next_step(patient_form: PatientForm, *, flow: ConversationalFlow | None = None) -> ConversationalStep | None:
        """First step in flow order without an answer, None when all are answered."""
        flow = flow or build_flow(patient_form.template)
        answered = set(patient_form.responses.values_list("question_id", flat=True))
        answered = {str(qid) for qid in answered}
        return next((s for s in flow.steps if s.question_id not in answered), None)

    @staticmethod
    def _lock_form(*, tenant_id: UUID, patient_form_id: UUID) -> PatientForm:
        return (
            PatientForm.objects.select_for_update()
            .select_related("template")
            .get(id=patient_form_id, tenant_id=tenant_id)
        )

    @staticmethod
    def _insert(
        *,
        form: PatientForm,
        flow: ConversationalFlow,
        question_id: Any,
        response: Any,
        response_method: str,
        time_to_respond: Optional[int],
        actor_user_id: int | None,
    ) -> tuple[FormResponse, list[ClinicalAlert]]:
        if form.status == PatientFormStatus.COMPLETED:
            raise ValidationError({"detail": "Form is already completed."})

        step = flow.step_for_question(question_id)
        if step is None:
            raise ValidationError({"detail": "Question is not part of this form."})

        if response_method not in ResponseMethod.values:
            raise ValidationError({"detail": f"Invalid response_method: {response_method}"})

        result = validate(step, response)
        if not result.is_valid:
            raise ValidationError({"detail": result.error})

        seconds = _seconds_or_none(time_to_respond)
        parsed = parse_response(step, response)

        row = FormResponse.objects.create(
            tenant_id=form.tenant_id,
            patient_form=form,
            question_id=step.question_id,
            patient_id=form.patient_id,
            response_value=response,
            parsed_value=parsed,
            response_type=step.question_type,
            response_method=response_method,
            time_to_respond=seconds,
        )

        ctx = AlertContext(tenant_id=form.tenant_id, actor_user_id=actor_user_id)
        alerts = [
            AlertService.create_alert(
                ctx=ctx,
                patient_id=form.patient_id,
                patient_form_id=form.id,
                question_id=row.question_id,
                alert_type=candidate.alert_type,
                severity=candidate.severity,
                message=candidate.message,
                requires_immediate_action=candidate.requires_immediate_action,
                notify_provider=candidate.notify_provider,
                meta={**candidate.meta, "form_response_id": str(row.id)},
            )
            for candidate in alert_rules.evaluate(step, parsed)
        ]
        return row, alerts

    @staticmethod
    def _apply_completion(
        form: PatientForm,
        status: CompletionStatus,
        *,
        actor_user_id: int | None,
    ) -> None:
        update_fields = ["completion_percentage", "status", "updated_at"]
        was_completed = form.status == PatientFormStatus.COMPLETED

        form.completion_percentage = status.percentage
        if status.is_complete:
            form.status = PatientFormStatus.COMPLETED
            form.completed_at = form.completed_at or now()
            update_fields.append("completed_at")
        elif status.answered_questions > 0:
            form.status = PatientFormStatus.IN_PROGRESS

        if status.answered_questions > 0 and form.started_at is None:
            form.started_at = now()
            update_fields.append("started_at")

        form.save(update_fields=update_fields)

        if status.is_complete and not was_completed:
            PatientFormService.announce_completed(form, actor_user_id=actor_user_id)

    @staticmethod
    @transaction.atomic
    def save_response(
        *,
        tenant_id: UUID,
        patient_form_id: UUID,
        question_id: Any,
        response: Any,
        response_method: str = ResponseMethod.TEXT,
        time_to_respond: Optional[int] = None,
        actor_user_id: int | None = None,
    ) -> SaveResult:
        form = FormResponseService._lock_form(tenant_id=tenant_id, patient_form_id=patient_form_id)
        flow = build_flow(form.template)

        row, alerts = FormResponseService._insert(
            form=form,
            flow=flow,
            question_id=question_id,
            response=response,
            response_method=response_method,
            time_to_respond=time_to_respond,
            actor_user_id=actor_user_id,
        )

        status = FormResponseService.completion_status(form, flow=flow)
        FormResponseService._apply_completion(form, status, actor_user_id=actor_user_id)
        return SaveResult(response=row, alerts=alerts, completion_status=status)

    @staticmethod
    @transaction.atomic
    def save_batch(
        *,
        tenant_id: UUID,
        patient_form_id: UUID,
        items: Iterable[dict],
        actor_user_id: int | None = None,
    ) -> BatchResult:
        """
        Items are saved in the order given, each in its own savepoint, so one
        bad item is reported without discarding the rest.
        """
        form = FormResponseService._lock_form(tenant_id=tenant_id, patient_form_id=patient_form_id)
        flow = build_flow(form.template)

        results: list[BatchItemResult] = []
        alerts: list[ClinicalAlert] = []

        for item in items:
            question_id = str(item.get("question_id") or "")
            try:
                with transaction.atomic():
                    row, item_alerts = FormResponseService._insert(
                        form=form,
                        flow=flow,
                        question_id=question_id,
                        response=item.get("response"),
                        response_method=item.get("response_method") or ResponseMethod.TEXT,
                        time_to_respond=item.get("time_to_respond"),
                        actor_user_id=actor_user_id,
                    )
            except (ValidationError, DjangoValidationError) as exc:
                results.append(BatchItemResult(question_id=question_id, success=False, error=_error_message(exc)))
                continue

            alerts.extend(item_alerts)
            results.append(BatchItemResult(question_id=question_id, success=True, response_id=str(row.id)))

        status = FormResponseService.completion_status(form, flow=flow)
        FormResponseService._apply_completion(form, status, actor_user_id=actor_user_id)

        failed = [r for r in results if not r.success]
        if failed:
            logger.info(
                "Batch save for patient_form_id=%s: %d of %d item(s) failed",
                form.id,
                len(failed),
                len(results),
            )
        return BatchResult(results=results, alerts=alerts, completion_status=status)


# ----------------------------
# Form instances
# ----------------------------

class PatientFormService:
    @staticmethod
    def announce_completed(form: PatientForm, *, actor_user_id: int | None) -> None:
        AuditService.log_safely(
            tenant_id=form.tenant_id,
            action="form.completed",
            resource_type="PatientForm",
            resource_id=form.id,
            actor_user_id=actor_user_id,
            metadata={"patient_id": str(form.patient_id), "template_id": str(form.template_id)},
        )
        publish(
            "form.completed",
            {
                "tenant_id": str(form.tenant_id),
                "patient_form_id": str(form.id),
                "task_id": str(form.task_id) if form.task_id else None,
                "patient_id": str(form.patient_id),
                "actor_user_id": actor_user_id,
            },
        )

    @staticmethod
    def _task_for(*, tenant_id: UUID, patient_id: UUID, protocol_task: ProtocolTask) -> Optional[PatientTask]:
        assignment = active_assignment_for_patient(tenant_id=tenant_id, patient_id=patient_id)
        if assignment is None or assignment.protocol_id != protocol_task.protocol_id:
            return None
        return PatientTask.objects.filter(
            tenant_id=tenant_id,
            assignment=assignment,
            protocol_task=protocol_task,
        ).first()

    @staticmethod
    @transaction.atomic
    def create_instance(
        *,
        tenant_id: UUID,
        patient_id: UUID,
        template_id: UUID | None = None,
        protocol_task_id: UUID | None = None,
        assigned_date: date | None = None,
        due_date: date | None = None,
        actor_user_id: int | None = None,
    ) -> tuple[PatientForm, bool]:
        """
        Issue a template to a patient. Idempotent per
        (patient, template, protocol task, assigned date): returns (instance, created).
        """
        try:
            patient = Patient.objects.select_for_update().get(id=patient_id, tenant_id=tenant_id)
        except Patient.DoesNotExist:
            raise NotFound("Patient not found.")

        protocol_task = None
        if protocol_task_id is not None:
            protocol_task = (
                ProtocolTask.objects.select_related("form_template")
                .filter(id=protocol_task_id, tenant_id=tenant_id)
                .first()
            )
            if protocol_task is None:
                raise NotFound("Protocol task not found.")
            if protocol_task.task_type != TaskType.FORM or protocol_task.form_template_id is None:
                raise ValidationError({"detail": "Protocol task is not a form task."})
            if template_id is not None and UUID(str(template_id)) != protocol_task.form_template_id:
                raise ValidationError({"detail": "template_id does not match the protocol task's form."})
            template_id = protocol_task.form_template_id

        if template_id is None:
            raise ValidationError({"detail": "template_id or protocol_task_id is required."})

        template = FormTemplate.objects.filter(id=template_id, tenant_id=tenant_id).first()
        if template is None:
            raise NotFound("Form template not found.")
        if not template.is_active:
            raise ValidationError({"detail": "Form template is inactive."})

        assigned_date = assigned_date or utc_today()

        existing = PatientForm.objects.filter(
            tenant_id=tenant_id,
            patient=patient,
            template=template,
            protocol_task=protocol_task,
            assigned_date=assigned_date,
        ).first()
        if existing is not None:
            return existing, False

        task = None
        if protocol_task is not None:
            task = PatientFormService._task_for(tenant_id=tenant_id, patient_id=patient.id, protocol_task=protocol_task)

        form = PatientForm.objects.create(
            tenant_id=tenant_id,
            patient=patient,
            template=template,
            protocol_task=protocol_task,
            task=task,
            assigned_date=assigned_date,
            due_date=due_date or (task.due_date if task else None),
        )

        AuditService.log_safely(
            tenant_id=tenant_id,
            action="form.assigned",
            resource_type="PatientForm",
            resource_id=form.id,
            actor_user_id=actor_user_id,
            metadata={"patient_id": str(patient.id), "template_id": str(template.id)},
        )
        return form, True

    @staticmethod
    @transaction.atomic
    def update_status(
        *,
        tenant_id: UUID,
        patient_form_id: UUID,
        status: str,
        actor_user_id: int | None = None,
    ) -> PatientForm:
        if status not in PatientFormStatus.values:
            raise ValidationError({"status": [f"Invalid status: {status}"]})

        form = PatientForm.objects.select_for_update().get(id=patient_form_id, tenant_id=tenant_id)
        if form.status == status:
            return form
        if form.status == PatientFormStatus.COMPLETED:
            raise ValidationError({"detail": "Cannot reopen a completed form."})

        form.status = status
        update_fields = ["status", "updated_at"]

        if status == PatientFormStatus.IN_PROGRESS and form.started_at is None:
            form.started_at = now()
            update_fields.append("started_at")
        if status == PatientFormStatus.COMPLETED:
            form.completion_percentage = 100
            form.completed_at = now()
            update_fields += ["completion_percentage", "completed_at"]

        form.save(update_fields=update_fields)

        if status == PatientFormStatus.COMPLETED:
            PatientFormService.announce_completed(form, actor_user_id=actor_user_id)
        return form

    @staticmethod
    def forms_for_day(*, protocol: Protocol, day: int) -> list[ProtocolTask]:
        tasks = protocol.tasks.filter(task_type=TaskType.FORM, form_template__isnull=False).select_related(
            "form_template"
        )
        return [t for t in tasks.order_by("sort_order", "day_offset", "created_at") if t.is_shown_on_day(day)]

    @staticmethod
    def patient_protocol_forms(*, tenant_id: UUID, patient_id: UUID, today: date | None = None) -> dict:
        """
        The patient's form schedule around today: today's form tasks (with
        any issued instance), the next week's form tasks and completed forms.
        """
        today = today or utc_today()

        assignment = active_assignment_for_patient(tenant_id=tenant_id, patient_id=patient_id)
        if assignment is None:
            raise NotFound("No active protocol for patient.")

        current_day = days_between(assignment.start_date, today)

        issued_today = {
            f.protocol_task_id: f
            for f in PatientForm.objects.filter(
                tenant_id=tenant_id,
                patient_id=patient_id,
                assigned_date=today,
                protocol_task__isnull=False,
            )
        }

        todays = []
        for pt in PatientFormService.forms_for_day(protocol=assignment.protocol, day=current_day):
            instance = issued_today.get(pt.id)
            todays.append(
                {
                    **_form_task_payload(pt, day=current_day, on=today),
                    "patient_form_id": str(instance.id) if instance else None,
                    "status": instance.status if instance else PatientFormStatus.NOT_STARTED,
                    "completion_percentage": instance.completion_percentage if instance else 0,
                }
            )

        upcoming = []
        for offset in range(1, UPCOMING_WINDOW_DAYS + 1):
            day = current_day + offset
            for pt in PatientFormService.forms_for_day(protocol=assignment.protocol, day=day):
                upcoming.append(_form_task_payload(pt, day=day, on=add_days(today, offset)))

        completed = PatientForm.objects.filter(
            tenant_id=tenant_id,
            patient_id=patient_id,
            status=PatientFormStatus.COMPLETED,
        ).select_related("template").order_by("-completed_at")[:20]

        return {
            "assignment_id": str(assignment.id),
            "protocol_id": str(assignment.protocol_id),
            "protocol_name": assignment.protocol.name,
            "current_day": current_day,
            "todays_forms": todays,
            "upcoming_forms": upcoming,
            "completed_forms": [
                {
                    "patient_form_id": str(f.id),
                    "template_id": str(f.template_id),
                    "template_name": f.template.name,
                    "assigned_date": f.assigned_date.isoformat(),
                    "completed_at": f.completed_at.isoformat() if f.completed_at else None,
                }
                for f in completed
            ],
        }

    @staticmethod
    def next_pending_form(*, tenant_id: UUID, patient_id: UUID, today: date | None = None) -> Optional[PatientForm]:
        today = today or utc_today()
        return (
            PatientForm.objects.filter(
                tenant_id=tenant_id,
                patient_id=patient_id,
                assigned_date__lte=today,
            )
            .exclude(status=PatientFormStatus.COMPLETED)
            .select_related("template")
            .order_by("assigned_date", "created_at")
            .first()
        )


def _form_task_payload(pt: ProtocolTask, *, day: int, on: date) -> dict:
    return {
        "protocol_task_id": str(pt.id),
        "template_id": str(pt.form_template_id),
        "template_name": pt.form_template.name,
        "title": pt.title,
        "is_required": pt.is_required,
        "day": day,
        "date": on.isoformat(),
    }


# ----------------------------
# Templates
# ----------------------------

QUESTION_FIELDS = (
    "text",
    "question_type",
    "is_required",
    "help_text",
    "options",
    "validation_rules",
    "voice_prompt",
    "clinical_alerts",
)


class FormTemplateService:
    @staticmethod
    def _question_for(*, tenant_id: UUID, spec: dict) -> Question:
        if spec.get("question_id"):
            question = Question.objects.filter(id=spec["question_id"], tenant_id=tenant_id).first()
            if question is None:
                raise ValidationError({"questions": [f"Unknown question_id: {spec['question_id']}"]})
            return question

        if spec.get("question_type") not in QuestionType.values:
            raise ValidationError({"questions": [f"Invalid question_type: {spec.get('question_type')}"]})
        return Question.objects.create(
            tenant_id=tenant_id,
            **{k: spec[k] for k in QUESTION_FIELDS if k in spec},
        )

    @staticmethod
    @transaction.atomic
    def create_template(
        *,
        tenant_id: UUID,
        name: str,
        description: str = "",
        sections: Iterable[dict] = (),
        is_active: bool = True,
        actor_user_id: int | None = None,
    ) -> FormTemplate:
        template = FormTemplate.objects.create(
            tenant_id=tenant_id,
            name=name,
            description=description,
            is_active=is_active,
            created_by_id=actor_user_id,
        )

        for s_index, section_spec in enumerate(sections):
            section = FormSection.objects.create(
                tenant_id=tenant_id,
                template=template,
                name=section_spec["name"],
                description=section_spec.get("description", ""),
                sort_order=section_spec.get("sort_order", s_index),
            )
            seen: set = set()
            for q_index, q_spec in enumerate(section_spec.get("questions", [])):
                question = FormTemplateService._question_for(tenant_id=tenant_id, spec=q_spec)
                if question.id in seen:
                    raise ValidationError({"questions": [f"Question {question.id} appears twice in section {section.name}."]})
                seen.add(question.id)
                SectionQuestion.objects.create(
                    tenant_id=tenant_id,
                    section=section,
                    question=question,
                    sort_order=q_spec.get("sort_order", q_index),
                    is_required_override=q_spec.get("is_required_override"),
                    custom_validation=q_spec.get("custom_validation") or {},
                )

        AuditService.log_safely(
            tenant_id=tenant_id,
            action="form_template.created",
            resource_type="FormTemplate",
            resource_id=template.id,
            actor_user_id=actor_user_id,
        )
        return template
