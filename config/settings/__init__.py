# config/settings/__init__.py
import os

DJANGO_ENV = os.getenv("DJANGO_ENV", "local").strip().lower()

if DJANGO_ENV in ("prod", "production"):
    from .prod import *  # noqa: F401,F403
else:
    from .local import *  # noqa: F401,F403
