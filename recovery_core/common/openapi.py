# recovery_core/common/openapi.py
from __future__ import annotations

from drf_spectacular.openapi import AutoSchema
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter


class RecoveryAutoSchema(AutoSchema):
    """
    Adds the optional X-Tenant-Id override header to tenant-scoped endpoints.
    The caller's tenant normally comes from their profile; only saas_admin /
    super_admin may point a request at another tenant.
    """

    TENANT_HEADER = OpenApiParameter(
        name="X-Tenant-Id",
        type=OpenApiTypes.UUID,
        location=OpenApiParameter.HEADER,
        required=False,
        description=(
            "Tenant override (privileged roles only). Other roles may omit it "
            "or send their own tenant id; any other value is rejected with 403."
        ),
    )

    UNSCOPED_MODULES = ("recovery_core.iam.api.auth",)

    def _is_unscoped_endpoint(self) -> bool:
        view = getattr(self, "view", None)
        if view is None:
            return False

        if view.__class__.__name__ in {"SpectacularAPIView", "SpectacularSwaggerView"}:
            return True

        module = view.__class__.__module__ or ""
        return module.startswith(self.UNSCOPED_MODULES)

    def get_override_parameters(self):
        params = list(super().get_override_parameters() or [])

        if not self._is_unscoped_endpoint():
            if not any(p.name.lower() == "x-tenant-id" for p in params):
                params.append(self.TENANT_HEADER)

        return params
