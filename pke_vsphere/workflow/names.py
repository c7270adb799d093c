"""Registration names of workflows and activities."""

# Workflows
CREATE_CLUSTER_WORKFLOW = "pke-vsphere-create-cluster"
UPDATE_CLUSTER_WORKFLOW = "pke-vsphere-update-cluster"
DELETE_CLUSTER_WORKFLOW = "pke-vsphere-delete-cluster"
DELETE_NODE_POOL_WORKFLOW = "pke-vsphere-delete-node-pool"
CLUSTER_SETUP_WORKFLOW = "cluster-setup"
DELETE_K8S_RESOURCES_WORKFLOW = "delete-k8s-resources"

# Node activities
CREATE_NODE = "pke-vsphere-create-node"
DELETE_NODE = "pke-vsphere-delete-node"
DELETE_K8S_NODE = "pke-vsphere-delete-k8s-node"
GET_PUBLIC_ADDRESS = "pke-vsphere-get-public-address"
WAIT_FOR_IP = "pke-vsphere-wait-for-ip"

# Cluster activities
SET_CLUSTER_STATUS = "set-cluster-status"
SET_CONFIG_SECRET_ID = "set-config-secret-id"
DELETE_CLUSTER_RECORD = "delete-cluster-record"
DELETE_NODE_POOL_RECORD = "delete-node-pool-record"

# Secret activities
GENERATE_CERTIFICATES = "generate-certificates"
CREATE_OIDC_CLIENT = "create-oidc-client"
DELETE_OIDC_CLIENT = "delete-oidc-client"
ASSEMBLE_HTTP_PROXY_SETTINGS = "assemble-http-proxy-settings"
DOWNLOAD_K8S_CONFIG = "download-k8s-config"
DELETE_UNUSED_SECRETS = "delete-unused-secrets"

# Kubernetes activities
CONFIGURE_NODE_POOL_LABELS = "configure-node-pool-labels"
CREATE_SYSTEM_NAMESPACE = "create-system-namespace"
LABEL_KUBE_SYSTEM_NAMESPACE = "label-kube-system-namespace"
CONFIGURE_RBAC = "configure-rbac"
DELETE_K8S_RESOURCES = "delete-k8s-resources"

MASTER_READY_SIGNAL = "master-ready"
