from __future__ import annotations

from rest_framework import serializers

from recovery_core.conversations.models import Conversation, Message
from recovery_core.forms.models import ResponseMethod


class ConversationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Conversation
        fields = [
            "id",
            "tenant_id",
            "patient_id",
            "patient_form_id",
            "title",
            "status",
            "closed_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ConversationCreateSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField(required=False)
    patient_form_id = serializers.UUIDField(required=False, allow_null=True)
    title = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)


class MessageSerializer(serializers.ModelSerializer):
    class Meta:
        model = Message
        fields = ["id", "conversation_id", "sender_type", "sender_user_id", "content", "metadata", "created_at"]
        read_only_fields = fields


class MessageCreateSerializer(serializers.Serializer):
    content = serializers.CharField()
    metadata = serializers.DictField(required=False, default=dict)


class AnswerSerializer(serializers.Serializer):
    content = serializers.CharField(allow_blank=True)
    response_method = serializers.ChoiceField(choices=ResponseMethod.choices, required=False, default=ResponseMethod.TEXT)
    time_to_respond = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class AnswerResultSerializer(serializers.Serializer):
    accepted = serializers.BooleanField()
    error = serializers.CharField(allow_null=True)
    patient_message = MessageSerializer()
    reply = MessageSerializer(allow_null=True)
    alerts = serializers.ListField(child=serializers.DictField())
    completion_status = serializers.DictField(allow_null=True)
