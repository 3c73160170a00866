"""Builder for the install job and its install-config ConfigMap."""

from __future__ import annotations

from typing import Any

import yaml

from ..constants import (
    ANNOTATION_CLUSTER_DEPLOYMENT_GENERATION,
    KIND_CONFIG_MAP,
    KIND_JOB,
    LABEL_CLUSTER_DEPLOYMENT_NAME,
    LABEL_INSTALL_JOB,
    SUFFIX_INSTALL_CONFIG,
    SUFFIX_INSTALL_JOB,
)
from ..utils.naming import get_resource_name

INSTALL_CONFIG_KEY = "install-config.yaml"
INSTALLER_BINARY_DIR = "/bin/installer"
OUTPUT_DIR = "/output"
INSTALL_JOB_BACKOFF_LIMIT = 123456


def install_job_name(cd_name: str) -> str:
    return get_resource_name(cd_name, SUFFIX_INSTALL_JOB)


def install_config_name(cd_name: str) -> str:
    return get_resource_name(cd_name, SUFFIX_INSTALL_CONFIG)


def _install_config(cd: dict[str, Any], ssh_key: bytes, pull_secret: bytes) -> str:
    spec = cd.get("spec", {})
    aws = (spec.get("platform") or {}).get("aws") or {}
    config: dict[str, Any] = {
        "apiVersion": "v1",
        "baseDomain": spec.get("baseDomain", ""),
        "metadata": {"name": spec.get("clusterName", "")},
        "platform": {},
        "pullSecret": pull_secret.decode("utf-8").strip(),
        "sshKey": ssh_key.decode("utf-8").strip(),
    }
    if aws:
        config["platform"]["aws"] = {
            "region": aws.get("region", ""),
            "userTags": dict(aws.get("userTags") or {}),
        }
    return yaml.safe_dump(config, default_flow_style=False, sort_keys=True)


def generate_install_job(
    cd: dict[str, Any],
    images: Any,
    service_account: str,
    ssh_key: bytes,
    pull_secret: bytes,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Create the install job and install-config ConfigMap for a ClusterDeployment.

    Both objects are returned unowned; the caller attaches owner references and
    the content hash. Identical inputs always produce identical output.

    Args:
        cd: ClusterDeployment object
        images: Resolved images with installer, release and operator attributes
        service_account: Service account the job runs as
        ssh_key: Public SSH key for cluster nodes
        pull_secret: Docker config JSON used to pull release content

    Returns:
        Tuple of (job, configmap)
    """
    installer_image, release_image, operator_image = images.installer, images.release, images.operator
    meta = cd.get("metadata", {})
    name = meta.get("name", "")
    namespace = meta.get("namespace", "default")
    generation = str(meta.get("generation", 0))
    labels = {
        LABEL_CLUSTER_DEPLOYMENT_NAME: name,
        LABEL_INSTALL_JOB: "true",
    }
    annotations = {ANNOTATION_CLUSTER_DEPLOYMENT_GENERATION: generation}

    cfg_map_name = install_config_name(name)
    cfg_map = {
        "apiVersion": "v1",
        "kind": KIND_CONFIG_MAP,
        "metadata": {
            "name": cfg_map_name,
            "namespace": namespace,
            "labels": dict(labels),
            "annotations": dict(annotations),
        },
        "data": {INSTALL_CONFIG_KEY: _install_config(cd, ssh_key, pull_secret)},
    }

    env = [
        {"name": "CLUSTER_DEPLOYMENT_NAME", "value": name},
        {"name": "CLUSTER_DEPLOYMENT_NAMESPACE", "value": namespace},
        {"name": "INSTALLER_BINARY_DIR", "value": INSTALLER_BINARY_DIR},
    ]
    if release_image:
        env.append({"name": "OPENSHIFT_INSTALL_RELEASE_IMAGE_OVERRIDE", "value": release_image})

    volume_mounts = [
        {"name": "install-config", "mountPath": "/installconfig"},
        {"name": "installer", "mountPath": INSTALLER_BINARY_DIR},
        {"name": "output", "mountPath": OUTPUT_DIR},
    ]

    job = {
        "apiVersion": "batch/v1",
        "kind": KIND_JOB,
        "metadata": {
            "name": install_job_name(name),
            "namespace": namespace,
            "labels": dict(labels),
            "annotations": dict(annotations),
        },
        "spec": {
            "backoffLimit": INSTALL_JOB_BACKOFF_LIMIT,
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": {
                    "serviceAccountName": service_account,
                    "restartPolicy": "OnFailure",
                    "initContainers": [
                        {
                            "name": "installer",
                            "image": installer_image,
                            "command": ["/bin/sh", "-c", f"cp -v /bin/openshift-install {INSTALLER_BINARY_DIR}/"],
                            "volumeMounts": [{"name": "installer", "mountPath": INSTALLER_BINARY_DIR}],
                        }
                    ],
                    "containers": [
                        {
                            "name": "install-manager",
                            "image": operator_image,
                            "command": ["/usr/bin/cluster-lifecycle-operator"],
                            "args": [
                                "install-manager",
                                "--work-dir",
                                OUTPUT_DIR,
                                "--install-config",
                                f"/installconfig/{INSTALL_CONFIG_KEY}",
                                name,
                            ],
                            "env": env,
                            "volumeMounts": volume_mounts,
                        }
                    ],
                    "volumes": [
                        {"name": "install-config", "configMap": {"name": cfg_map_name}},
                        {"name": "installer", "emptyDir": {}},
                        {"name": "output", "emptyDir": {}},
                    ],
                },
            },
        },
    }

    return job, cfg_map
