"""Cluster autoscaler pointed at the cluster's Cluster API resources."""

from typing import Any

from kubeprov.naming import capi_cluster_name, kubeconfig_secret_name
from kubeprov.resources import KubernetesCluster, ProvisionContext


class ClusterAutoscaler:
    """Generates Helm parameters for the cluster autoscaler."""

    application = "cluster-autoscaler"

    def parameters(self, ctx: ProvisionContext, version: Any) -> dict[str, str]:
        """Return the chart parameters for the cluster in the context."""
        cluster: KubernetesCluster = ctx.resource
        return {
            "autoDiscovery.clusterName": capi_cluster_name(cluster),
            "clusterAPIKubeconfigSecret": kubeconfig_secret_name(cluster),
        }