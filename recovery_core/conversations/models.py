# recovery_core/conversations/models.py
from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from recovery_core.common.models import TenantScopedModel


class ConversationStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    CLOSED = "closed", "Closed"


class Conversation(TenantScopedModel):
    """
    Chat thread with a patient. When linked to a form instance the thread
    walks the form one question at a time.
    """
    patient = models.ForeignKey("patients.Patient", on_delete=models.CASCADE, related_name="conversations")
    patient_form = models.ForeignKey(
        "forms.PatientForm",
        on_delete=models.SET_NULL,
        related_name="conversations",
        null=True,
        blank=True,
    )

    title = models.CharField(max_length=255, blank=True)
    status = models.CharField(
        max_length=16,
        choices=ConversationStatus.choices,
        default=ConversationStatus.ACTIVE,
        db_index=True,
    )
    closed_at = models.DateTimeField(null=True, blank=True)

    started_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="started_conversations",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "conversations_conversation"
        indexes = [
            models.Index(fields=["tenant_id", "patient", "status"]),
        ]

    def __str__(self) -> str:
        return self.title or f"Conversation {self.id}"


class SenderType(models.TextChoices):
    AI = "ai", "Assistant"
    PATIENT = "patient", "Patient"
    NURSE = "nurse", "Care team"
    SYSTEM = "system", "System"


class Message(TenantScopedModel):
    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name="messages")
    sender_type = models.CharField(max_length=16, choices=SenderType.choices)
    sender_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="conversation_messages",
        null=True,
        blank=True,
    )
    content = models.TextField()
    # e.g. {"step_id", "question_id"} for a question, {"form_response_id"} for an answer
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "conversations_message"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["conversation", "created_at"]),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Messages are append-only.")
        return super().save(*args, **kwargs)
