import os

#####
# Logging
#####
# Accepts debug, info, notice, warning, error, critical
LOG_LEVEL = os.environ.get("LOG_LEVEL", "notice")

#####
# Cluster access
#####
# Path to a kubeconfig file, used when not running inside the cluster
KUBECONFIG_PATH = os.environ.get("KUBECONFIG") or os.path.expanduser("~/.kube/config")

# Namespace used when neither the caller nor the kubeconfig context names one
SANDBOX_NAMESPACE = os.environ.get("SANDBOX_NAMESPACE", "default")

# Public ingress domain, e.g. usw.example.io. When unset, the domain is taken
# from the host name of the cluster API server in the active kubeconfig context
SANDBOX_INGRESS_DOMAIN = os.environ.get("SANDBOX_INGRESS_DOMAIN") or None

# Mounted into every pod by Kubernetes when running in-cluster
IN_CLUSTER_NAMESPACE_PATH = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"

#####
# API server
#####
APP_HOST = os.environ.get("APP_HOST", "0.0.0.0")
APP_API_PORT = int(os.environ.get("APP_API_PORT") or 8080)
