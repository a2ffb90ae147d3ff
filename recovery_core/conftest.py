# recovery_core/conftest.py
from datetime import date

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from recovery_core.iam.models import Profile, ProfileRole
from recovery_core.patients.models import Patient
from recovery_core.tenants.models import Tenant

SURGERY_DATE = date(2025, 1, 10)


def tenant_header(tenant):
    """DRF test client requires the HTTP_ prefix."""
    return {"HTTP_X_TENANT_ID": str(tenant.id)}


@pytest.fixture
def tenant(db):
    return Tenant.objects.create(code="test-practice", name="Test Practice")


@pytest.fixture
def other_tenant(db):
    return Tenant.objects.create(code="other-practice", name="Other Practice")


@pytest.fixture
def make_user(db):
    """
    make_user(role, tenant) -> auth user with a Profile.
    """
    User = get_user_model()
    counter = {"n": 0}

    def _make(role=ProfileRole.SURGEON, tenant=None, **profile_fields):
        counter["n"] += 1
        username = f"{role}-{counter['n']}"
        user = User.objects.create_user(
            username=username,
            password="testpass",
            email=f"{username}@example.com",
            is_active=True,
        )
        Profile.objects.create(
            user=user,
            tenant=tenant,
            role=role,
            first_name=profile_fields.pop("first_name", role.title()),
            last_name=profile_fields.pop("last_name", "Tester"),
            email=user.email,
            **profile_fields,
        )
        return user

    return _make


@pytest.fixture
def client_for():
    def _client(user):
        c = APIClient()
        c.force_authenticate(user=user)
        return c

    return _client


@pytest.fixture
def surgeon_user(make_user, tenant):
    return make_user(ProfileRole.SURGEON, tenant)


@pytest.fixture
def nurse_user(make_user, tenant):
    return make_user(ProfileRole.NURSE, tenant)


@pytest.fixture
def admin_user(make_user, tenant):
    return make_user(ProfileRole.ADMIN, tenant)


@pytest.fixture
def super_admin_user(make_user, tenant):
    return make_user(ProfileRole.SUPER_ADMIN, tenant)


@pytest.fixture
def surgeon_client(client_for, surgeon_user):
    return client_for(surgeon_user)


@pytest.fixture
def admin_client(client_for, admin_user):
    return client_for(admin_user)


@pytest.fixture
def super_admin_client(client_for, super_admin_user):
    return client_for(super_admin_user)


@pytest.fixture
def patient_user(make_user, tenant):
    return make_user(ProfileRole.PATIENT, tenant, first_name="Pat", last_name="Ient")


@pytest.fixture
def patient(patient_user, tenant):
    return Patient.objects.create(
        tenant_id=tenant.id,
        profile=patient_user.profile,
        mrn="MRN-001",
        first_name="Pat",
        last_name="Ient",
        surgery_date=SURGERY_DATE,
        surgery_type="TKA",
    )


@pytest.fixture
def patient_client(client_for, patient_user, patient):
    return client_for(patient_user)


@pytest.fixture
def other_patient(other_tenant):
    return Patient.objects.create(
        tenant_id=other_tenant.id,
        mrn="MRN-OTHER-001",
        first_name="Other",
        last_name="Patient",
        surgery_type="THA",
    )


@pytest.fixture
def form_template(tenant, surgeon_user):
    """
    Five questions, one per alerting question type plus a plain choice:
    pain_scale, yes_no (concerning), number (thresholds), text (keywords), single_choice.
    """
    from recovery_core.forms.services import FormTemplateService

    return FormTemplateService.create_template(
        tenant_id=tenant.id,
        name="Daily Check-in",
        actor_user_id=surgeon_user.id,
        sections=[
            {
                "name": "Pain",
                "questions": [
                    {"text": "How is your pain today?", "question_type": "pain_scale", "is_required": True},
                    {
                        "text": "Do you have a fever?",
                        "question_type": "yes_no",
                        "is_required": True,
                        "clinical_alerts": {
                            "concerning_if_yes": True,
                            "severity": "high",
                            "message": "Patient reports fever",
                            "immediate_action": True,
                        },
                    },
                ],
            },
            {
                "name": "Recovery",
                "questions": [
                    {
                        "text": "Temperature (F)",
                        "question_type": "number",
                        "validation_rules": {"min": 90, "max": 110},
                        "clinical_alerts": {"max_threshold": 100.4},
                    },
                    {
                        "text": "Anything else to tell us?",
                        "question_type": "text",
                        "clinical_alerts": {"alert_keywords": ["bleeding", "chest pain"]},
                    },
                    {
                        "text": "How did you sleep?",
                        "question_type": "single_choice",
                        "options": ["Well", "Okay", "Poorly"],
                    },
                ],
            },
        ],
    )


@pytest.fixture
def patient_form(tenant, patient, form_template):
    from recovery_core.forms.services import PatientFormService

    form, _ = PatientFormService.create_instance(
        tenant_id=tenant.id,
        patient_id=patient.id,
        template_id=form_template.id,
        assigned_date=SURGERY_DATE,
    )
    return form


@pytest.fixture
def protocol(tenant, surgeon_user):
    from recovery_core.protocols.services import ProtocolService

    return ProtocolService.create_protocol(
        tenant_id=tenant.id,
        actor_user_id=surgeon_user.id,
        name="Knee Standard",
        surgery_type="TKA",
        tasks=[
            {"day_offset": -5, "task_type": "education", "title": "Pre-op class"},
            {"day_offset": 0, "task_type": "medication", "title": "Surgery day meds"},
            {"day_offset": 7, "task_type": "walking", "title": "Walk 10 minutes"},
        ],
    )
