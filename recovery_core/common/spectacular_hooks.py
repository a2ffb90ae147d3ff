# recovery_core/common/spectacular_hooks.py
from __future__ import annotations

PRIMARY_PREFIX = "/api/v1/"
SCHEMA_PATHS = ("/api/schema/", "/api/docs/")


def preprocess_exclude_legacy_api(endpoints):
    """
    The URLconf mounts every route under /api/v1/ and again under the bare
    /api/ alias. Only the versioned copy goes into the schema, otherwise
    operationIds collide.
    """
    def _documented(path: str) -> bool:
        if path.startswith(PRIMARY_PREFIX):
            return True
        return not path.startswith("/api/") and path not in SCHEMA_PATHS

    return [endpoint for endpoint in endpoints if _documented(endpoint[0])]
