"""Constants for the Cluster Lifecycle Operator."""

# API Group
API_GROUP = "clusters.cloud37.dev"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_CLUSTER_DEPLOYMENT = "ClusterDeployment"
KIND_CLUSTER_IMAGE_SET = "ClusterImageSet"
KIND_DNS_ZONE = "DNSZone"
KIND_DEPROVISION_REQUEST = "ClusterDeprovisionRequest"
KIND_JOB = "Job"
KIND_POD = "Pod"
KIND_SECRET = "Secret"
KIND_CONFIG_MAP = "ConfigMap"
KIND_NAMESPACE = "Namespace"
KIND_SERVICE_ACCOUNT = "ServiceAccount"
KIND_ROLE = "Role"
KIND_ROLE_BINDING = "RoleBinding"
KIND_EVENT = "Event"
KIND_ROUTE = "Route"

# Plurals used by watches
PLURAL_CLUSTER_DEPLOYMENTS = "clusterdeployments"
PLURAL_DNS_ZONES = "dnszones"
PLURAL_DEPROVISION_REQUESTS = "clusterdeprovisionrequests"

# Labels
LABEL_CLUSTER_DEPLOYMENT_NAME = f"{API_GROUP}/cluster-deployment-name"
LABEL_INSTALL_JOB = f"{API_GROUP}/install-job"
LABEL_IMAGESET_JOB = f"{API_GROUP}/imageset-job"
LABEL_CLUSTER_TYPE = f"{API_GROUP}/cluster-type"
DEFAULT_CLUSTER_TYPE = "unspecified"

# Annotations
ANNOTATION_DELETE_AFTER = f"{API_GROUP}/delete-after"
ANNOTATION_JOB_HASH = f"{API_GROUP}/jobhash"
ANNOTATION_CLUSTER_DEPLOYMENT_GENERATION = f"{API_GROUP}/cluster-deployment-generation"

# Finalizers
FINALIZER_DEPROVISION = f"{API_GROUP}/deprovision"

# Field Manager / controller name
FIELD_MANAGER = "cluster-lifecycle-operator"
CONTROLLER_NAME = "clusterDeployment"

# Install prerequisites
SERVICE_ACCOUNT_NAME = "cluster-installer"
INSTALLER_ROLE_NAME = "cluster-installer"

# Secret keys
SSH_KEY_SECRET_KEY = "ssh-publickey"
PULL_SECRET_KEY = ".dockerconfigjson"
ADMIN_KUBECONFIG_KEY = "kubeconfig"
RAW_ADMIN_KUBECONFIG_KEY = "raw-kubeconfig"

# Name suffixes for generated children
SUFFIX_INSTALL_JOB = "install"
SUFFIX_INSTALL_CONFIG = "install-config"
SUFFIX_IMAGESET_JOB = "imageset"
SUFFIX_DNS_ZONE = "zone"
SUFFIX_ADMIN_KUBECONFIG = "admin-kubeconfig"

# Remote console route
CONSOLE_ROUTE_NAMESPACE = "openshift-console"
CONSOLE_ROUTE_NAME = "console"

# Propagation policies
PROPAGATION_FOREGROUND = "Foreground"

# Condition Types
COND_CLUSTER_IMAGE_SET_NOT_FOUND = "ClusterImageSetNotFound"
COND_DNS_ZONE_AVAILABLE = "Available"

# Condition Reasons
REASON_CLUSTER_IMAGE_SET_NOT_FOUND = "ClusterImageSetNotFound"
REASON_CLUSTER_IMAGE_SET_FOUND = "ClusterImageSetFound"

# Event Reasons
EVENT_REASON_FINALIZER_ADDED = "FinalizerAdded"
EVENT_REASON_FINALIZER_REMOVED = "FinalizerRemoved"
EVENT_REASON_CLUSTER_EXPIRED = "ClusterExpired"
EVENT_REASON_IMAGE_SET_NOT_FOUND = "ClusterImageSetNotFound"
EVENT_REASON_IMAGESET_JOB_CREATED = "ImageSetJobCreated"
EVENT_REASON_INSTALL_JOB_CREATED = "InstallJobCreated"
EVENT_REASON_INSTALL_JOB_DELETED = "InstallJobDeleted"
EVENT_REASON_CLUSTER_INSTALLED = "ClusterInstalled"
EVENT_REASON_DNS_ZONE_CREATED = "DNSZoneCreated"
EVENT_REASON_DEPROVISION_REQUESTED = "DeprovisionRequested"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
