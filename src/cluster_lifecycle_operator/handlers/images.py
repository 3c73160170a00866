"""Image resolution for ClusterDeployments.

Each image is resolved independently; the first non-empty source wins:

* operator image: ``spec.images.operatorImage``, the ClusterImageSet, then the
  configured default.
* release image: ``spec.images.releaseImage``, then the ClusterImageSet. An
  empty release image is valid.
* installer image: ``spec.images.installerImage``, the ClusterImageSet, then
  the result of the imageset job recorded in ``status.installerImage``.
"""

from __future__ import annotations

from typing import Any, NamedTuple

from ..builders.imageset import generate_imageset_job
from ..constants import (
    EVENT_REASON_IMAGESET_JOB_CREATED,
    KIND_JOB,
    PROPAGATION_FOREGROUND,
    SERVICE_ACCOUNT_NAME,
)
from ..utils.jobs import is_finished, is_successful, is_terminating
from ..utils.ownership import set_controller_reference
from ..utils.timeutils import parse_timestamp
from .base import DONE, BaseHandler, ReconcileResult


class Images(NamedTuple):
    """The three images a cluster install needs."""

    installer: str
    release: str
    operator: str


def _spec_image(cd: dict[str, Any], field: str) -> str:
    return ((cd.get("spec") or {}).get("images") or {}).get(field) or ""


def _image_set_image(image_set: dict[str, Any] | None, field: str) -> str:
    if image_set is None:
        return ""
    return (image_set.get("spec") or {}).get(field) or ""


def resolve_operator_image(cd: dict[str, Any], image_set: dict[str, Any] | None, default: str) -> str:
    return _spec_image(cd, "operatorImage") or _image_set_image(image_set, "operatorImage") or default


def resolve_release_image(cd: dict[str, Any], image_set: dict[str, Any] | None) -> str:
    return _spec_image(cd, "releaseImage") or _image_set_image(image_set, "releaseImage")


def static_installer_image(cd: dict[str, Any], image_set: dict[str, Any] | None) -> str:
    """Return the installer image known without running a job, or ""."""
    return _spec_image(cd, "installerImage") or _image_set_image(image_set, "installerImage")


def resolve_images(cd: dict[str, Any], image_set: dict[str, Any] | None, default_operator_image: str) -> Images:
    """Compute the working images of a ClusterDeployment."""
    installer = static_installer_image(cd, image_set) or (cd.get("status") or {}).get("installerImage") or ""
    return Images(
        installer=installer,
        release=resolve_release_image(cd, image_set),
        operator=resolve_operator_image(cd, image_set, default_operator_image),
    )


class InstallerImageResolver(BaseHandler):
    """Records the installer image in status, running the imageset job when needed."""

    def resolve(self, cd: dict[str, Any], image_set: dict[str, Any] | None, images: Images) -> ReconcileResult:
        """Resolve the installer image of ``cd``.

        ``cd`` is the working copy of the ClusterDeployment; its status is
        updated in place when the image is known up front.
        """
        meta = cd["metadata"]
        known = static_installer_image(cd, image_set)
        if known:
            self.log_debug(meta, f"setting status.installerImage to {known}")
            cd.setdefault("status", {})["installerImage"] = known
            self.store.update_status(cd)
            return DONE

        job = generate_imageset_job(
            cd,
            images.release,
            SERVICE_ACCOUNT_NAME,
            self.config.default_cli_image,
            images.operator,
        )
        set_controller_reference(cd, job)
        job_name = job["metadata"]["name"]

        existing = self.get_optional(KIND_JOB, job_name, meta["namespace"])
        if existing is None:
            self.log_info(meta, "creating imageset job", reason="ImageSetJobCreate", job=job_name, release_image=images.release)
            self.ensure_installer_service_account(meta["namespace"])
            self.store.create(job)
            created = parse_timestamp(meta.get("creationTimestamp"))
            if created is not None:
                self.metrics.imageset_job_delay((self.clock() - created).total_seconds())
            self.recorder.emit(cd, EVENT_REASON_IMAGESET_JOB_CREATED, f"Created imageset job {job_name}")
            return DONE

        if is_terminating(existing):
            self.log_debug(meta, "imageset job is being deleted, will recreate once deleted", job=job_name)
            return ReconcileResult(requeue_after=self.config.requeue_delay)

        if is_finished(existing):
            self.log_warning(
                meta,
                "finished imageset job found but installer image is not yet resolved, deleting",
                job=job_name,
                successful=is_successful(existing),
            )
            self.store.delete(KIND_JOB, job_name, meta["namespace"], propagation_policy=PROPAGATION_FOREGROUND)
            return DONE

        self.log_debug(meta, "imageset job exists and is in progress", job=job_name)
        return DONE
