"""Names derived from a Kubernetes cluster and access to its kubeconfig."""

import hashlib
from typing import Any

import yaml

from kubeprov.resources import (
    KubernetesCluster,
    NotFoundError,
    ProvisionContext,
    ResourceIdentifier,
    YieldError,
)

KUBECONFIG_DATA_FIELD = "value"


def release_name(cluster: KubernetesCluster) -> str:
    """Return a short, unique, Helm-compliant release name for the cluster.

    It must be no longer than 53 characters and unique across all control
    planes to avoid OpenStack network aliasing.
    """
    digest = hashlib.sha256(cluster.name.encode()).hexdigest()
    return "cluster-" + digest[:8]


def capi_cluster_name(cluster: KubernetesCluster) -> str:
    """Return the Cluster API cluster name Helm generates for the cluster."""
    return release_name(cluster)


def kubeconfig_secret_name(cluster: KubernetesCluster) -> str:
    """Return the name of the kubeconfig secret Cluster API generates."""
    return release_name(cluster) + "-kubeconfig"


def parse_kubeconfig(data: bytes | str | None) -> dict[str, Any]:
    """Parse a kubeconfig document into a mapping.

    Empty input yields an empty configuration; anything that is not a
    mapping raises ``ValueError``.
    """
    if isinstance(data, bytes):
        data = data.decode()
    try:
        config = yaml.safe_load(data or "")
    except yaml.YAMLError as exc:
        raise ValueError(f"invalid kubeconfig: {exc}") from exc
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError("invalid kubeconfig: document is not a mapping")
    return config


class RemoteCluster:
    """Describes how to reach a provisioned Kubernetes cluster."""

    def __init__(self, cluster: KubernetesCluster) -> None:
        self.cluster = cluster

    def id(self) -> ResourceIdentifier:
        """Identify the remote cluster by its prioritised resource labels."""
        return ResourceIdentifier.from_labels("kubernetes", self.cluster.resource_labels())

    def config(self, ctx: ProvisionContext) -> dict[str, Any]:
        """Read the cluster's kubeconfig from its secret.

        The client's ``get(kind, namespace, name)`` returns the secret as a
        mapping whose ``data`` holds the decoded values.  A missing secret
        means the cluster is not up yet, so ``YieldError`` is raised.
        """
        client = ctx.cluster_client()
        resource_name = kubeconfig_secret_name(self.cluster)
        try:
            stored = client.get("Secret", self.cluster.name, resource_name)
        except NotFoundError:
            ctx.logger.info("kubernetes cluster kubeconfig does not exist, yielding")
            raise YieldError("kubernetes cluster kubeconfig does not exist") from None

        data = stored.get("data") or {}
        return parse_kubeconfig(data.get(KUBECONFIG_DATA_FIELD))