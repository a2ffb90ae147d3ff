# recovery_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from recovery_core.alerts.api.views import AlertViewSet
from recovery_core.audit.api.views import AuditEventViewSet
from recovery_core.conversations.api.views import ConversationViewSet
from recovery_core.forms.api.views import FormSubmitView, FormTemplateViewSet, PatientFormViewSet, ProtocolFormsView
from recovery_core.iam.api.auth import LoginView, LogoutView, RefreshView
from recovery_core.iam.api.me import MeView
from recovery_core.iam.api.session import SessionBootstrapView
from recovery_core.patients.api.views import PatientViewSet
from recovery_core.protocols.api.views import AssignmentViewSet, ProtocolViewSet
from recovery_core.tasks.api.views import TaskViewSet
from recovery_core.tenants.api.views import TenantViewSet

router = DefaultRouter()

router.register(r"tenants", TenantViewSet, basename="tenants")
router.register(r"patients", PatientViewSet, basename="patients")

# assignments before protocols, so "assignments" is not read as a protocol pk
router.register(r"protocols/assignments", AssignmentViewSet, basename="protocol-assignments")
router.register(r"protocols", ProtocolViewSet, basename="protocols")

router.register(r"tasks", TaskViewSet, basename="tasks")
router.register(r"forms/templates", FormTemplateViewSet, basename="form-templates")
router.register(r"forms/instances", PatientFormViewSet, basename="form-instances")
router.register(r"alerts", AlertViewSet, basename="alerts")
router.register(r"conversations", ConversationViewSet, basename="conversations")
router.register(r"audit/events", AuditEventViewSet, basename="audit-events")

urlpatterns = [
    # Auth + /me + session bootstrap
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/refresh/", RefreshView.as_view(), name="refresh"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path("me/", MeView.as_view(), name="me"),
    path("session/bootstrap/", SessionBootstrapView.as_view(), name="session-bootstrap"),

    # Form submission and protocol schedule (non-ViewSet endpoints)
    path("forms/submit/", FormSubmitView.as_view(), name="forms-submit"),
    path("forms/protocol-forms/", ProtocolFormsView.as_view(), name="forms-protocol-forms"),

    # Router URLs last (so explicit paths win if ever overlapping)
    *router.urls,
]
