# lab_core/apps.py

from django.apps import AppConfig


class LabCoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "lab_core"
    verbose_name = "WahfaLab"

    def ready(self):
        from . import signals  # noqa
