"""Virtual Kubernetes clusters exposed to users through an ingress."""

import hashlib
from typing import Any

from kubeprov.resources import ProvisionContext, VirtualKubernetesCluster


def release_name(cluster: VirtualKubernetesCluster) -> str:
    """Return a short, unique, Helm-compliant release name for the cluster."""
    digest = hashlib.sha256(cluster.name.encode()).hexdigest()
    return "vcluster-" + digest[:8]


class VirtualCluster:
    """Generates values for a user-facing virtual cluster."""

    application = "vcluster"

    def __init__(self, domain: str) -> None:
        # DNS domain the virtual clusters appear in.
        self.domain = domain

    def release_name(self, ctx: ProvisionContext) -> str:
        """Return the Helm release name for the cluster in the context."""
        return release_name(ctx.resource)

    def values(self, ctx: ProvisionContext, version: Any) -> dict[str, Any]:
        """Return the chart values; clusters are demultiplexed by SNI hostname."""
        hostname = self.release_name(ctx) + "." + self.domain

        ingress = {
            "enabled": True,
            "host": hostname,
            "spec": {"tls": [{"hosts": [hostname]}]},
            "annotations": {"external-dns.alpha.kubernetes.io/hostname": hostname},
        }

        backing_store = {
            "etcd": {
                "deploy": {
                    "enabled": True,
                    "statefulSet": {"highAvailability": {"replicas": 3}},
                },
            },
        }

        # Clean up the volume when the cluster is deleted so space isn't leaked.
        stateful_set = {
            "persistence": {"volumeClaim": {"retentionPolicy": "Delete"}},
        }

        sync = {
            "fromHost": {
                "nodes": {"enabled": True, "clearImageStatus": True},
                "runtimeClasses": {"enabled": True},
            },
        }

        # Block traffic between virtual clusters and the host, except egress
        # to the internet.
        policies = {"networkPolicy": {"enabled": True}}

        return {
            "controlPlane": {
                "ingress": ingress,
                "backingStore": backing_store,
                "statefulSet": stateful_set,
            },
            "policies": policies,
            "sync": sync,
            "exportKubeConfig": {"server": "https://" + hostname},
        }