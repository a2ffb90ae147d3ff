from django.apps import AppConfig


class TasksConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "recovery_core.tasks"

    def ready(self):
        # registers event handlers
        from recovery_core.tasks import subscribers  # noqa: F401
