"""Builder for the job that resolves a cluster's installer image."""

from __future__ import annotations

from typing import Any

from ..constants import KIND_JOB, LABEL_CLUSTER_DEPLOYMENT_NAME, LABEL_IMAGESET_JOB, SUFFIX_IMAGESET_JOB
from ..utils.naming import get_resource_name

IMAGE_FILE = "/common/installer-image.txt"


def imageset_job_name(cd_name: str) -> str:
    return get_resource_name(cd_name, SUFFIX_IMAGESET_JOB)


def generate_imageset_job(
    cd: dict[str, Any],
    release_image: str,
    service_account: str,
    cli_image: str,
    operator_image: str,
) -> dict[str, Any]:
    """Create the installer image resolution job.

    The CLI container reads the installer image reference out of the release
    image; the operator container then writes it to the ClusterDeployment's
    status. Images are always pulled so moving tags are honored.
    """
    meta = cd.get("metadata", {})
    name = meta.get("name", "")
    namespace = meta.get("namespace", "default")
    labels = {LABEL_CLUSTER_DEPLOYMENT_NAME: name, LABEL_IMAGESET_JOB: "true"}
    common_mount = [{"name": "common", "mountPath": "/common"}]

    return {
        "apiVersion": "batch/v1",
        "kind": KIND_JOB,
        "metadata": {
            "name": imageset_job_name(name),
            "namespace": namespace,
            "labels": dict(labels),
        },
        "spec": {
            "backoffLimit": 2,
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": {
                    "serviceAccountName": service_account,
                    "restartPolicy": "OnFailure",
                    "initContainers": [
                        {
                            "name": "release",
                            "image": cli_image,
                            "imagePullPolicy": "Always",
                            "command": ["/bin/sh", "-c"],
                            "args": [f"oc adm release info --image-for=installer {release_image} > {IMAGE_FILE}"],
                            "volumeMounts": common_mount,
                        }
                    ],
                    "containers": [
                        {
                            "name": "update-installer-image",
                            "image": operator_image,
                            "imagePullPolicy": "Always",
                            "command": ["/usr/bin/cluster-lifecycle-operator"],
                            "args": [
                                "update-installer-image",
                                "--work-dir",
                                "/common",
                                "--cluster-deployment-name",
                                name,
                                "--cluster-deployment-namespace",
                                namespace,
                            ],
                            "volumeMounts": common_mount,
                        }
                    ],
                    "volumes": [{"name": "common", "emptyDir": {}}],
                },
            },
        },
    }
