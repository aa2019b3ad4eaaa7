"""Cilium CNI, run without kube-proxy."""

from typing import Any

from kubeprov.resources import (
    InvalidContextError,
    KubernetesCluster,
    Placement,
    ProvisionContext,
)


class Cilium:
    """Generates values for the Cilium chart on a remote cluster."""

    application = "cilium"

    def values(self, ctx: ProvisionContext, version: Any) -> dict[str, Any]:
        """Return the chart values for the cluster in the context.

        Running without kube-proxy needs the Kubernetes API endpoint, so the
        context must carry the remote cluster's host and port.
        """
        cluster: KubernetesCluster = ctx.resource

        operator: dict[str, Any] = {
            "nodeSelector": Placement.control_plane_node_selector(),
        }

        # The chart defaults to two operator replicas, which can never be
        # scheduled on a single node control plane.
        if cluster.control_plane.replicas == 1:
            operator["replicas"] = cluster.control_plane.replicas

        if not ctx.host or not ctx.port:
            raise InvalidContextError("missing cluster host:port")

        return {
            "operator": operator,
            "kubeProxyReplacement": "true",
            "k8sServiceHost": ctx.host,
            "k8sServicePort": ctx.port,
            "hubble": {
                "relay": {
                    "nodeSelector": Placement.control_plane_node_selector(),
                    "tolerations": Placement.control_plane_tolerations(),
                },
                "ui": {
                    "nodeSelector": Placement.control_plane_node_selector(),
                    "tolerations": Placement.control_plane_tolerations(),
                },
            },
            "ipam": {
                "operator": {
                    "clusterPoolIPv4PodCIDRList": [str(cluster.network.pod_network)],
                },
            },
        }