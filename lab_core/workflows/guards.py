# lab_core/workflows/guards.py

from django.core.exceptions import PermissionDenied
from django.db import models


class WorkflowWriteGuardMixin(models.Model):
    """
    Refuse .save() calls that change workflow-owned fields.

    Each model lists its fields in WORKFLOW_FIELDS:
      Quotation           status
      JobOrder            status, certificate_url
      SamplingAssignment  status, actual_date

    Those only change through lab_core.workflows.executor and the job and
    sampling services, which write with QuerySet.update() under a row lock.
    A save() whose update_fields leaves them out skips the check.

    Repairs: save(_workflow_bypass=True) or instance._workflow_bypass = True.
    """

    WORKFLOW_FIELDS = ("status",)
    WORKFLOW_BYPASS_KWARG = "_workflow_bypass"

    class Meta:
        abstract = True

    def _guarded_fields(self, update_fields):
        if update_fields is None:
            return list(self.WORKFLOW_FIELDS)
        return [f for f in self.WORKFLOW_FIELDS if f in set(update_fields)]

    def save(self, *args, **kwargs):
        bypass = bool(
            kwargs.pop(self.WORKFLOW_BYPASS_KWARG, False)
            or getattr(self, "_workflow_bypass", False)
        )

        fields = self._guarded_fields(kwargs.get("update_fields"))
        if not bypass and self.pk is not None and fields:
            stored = self.__class__.objects.filter(pk=self.pk).values(*fields).first()
            # None when the pk is preset on a row not inserted yet
            if stored is not None:
                changed = [f for f in fields if stored[f] != getattr(self, f)]
                if changed:
                    raise PermissionDenied(
                        f"Direct modification of {', '.join(repr(f) for f in changed)} is forbidden. "
                        "Use workflow transition APIs."
                    )

        return super().save(*args, **kwargs)
