"""Builders for the child resources of a ClusterDeployment."""

from .deprovision import build_deprovision_request
from .dnszone import build_dns_zone, dns_zone_name
from .imageset import generate_imageset_job, imageset_job_name
from .install import generate_install_job, install_config_name, install_job_name

__all__ = [
    "build_deprovision_request",
    "build_dns_zone",
    "dns_zone_name",
    "generate_imageset_job",
    "imageset_job_name",
    "generate_install_job",
    "install_config_name",
    "install_job_name",
]
