"""Helm applications whose configuration needs no cluster-specific input."""

from dataclasses import dataclass, field
from typing import Any

from kubeprov.resources import Placement, ProvisionContext


@dataclass(frozen=True)
class HelmApplicationField:
    """Resource fields the CD driver should ignore when diffing."""

    group: str
    kind: str
    json_pointers: list[str] = field(default_factory=list)


class AmdGpuOperator:
    """AMD GPU operator."""

    application = "amd-gpu-operator"

    def values(self, ctx: ProvisionContext, version: Any) -> dict[str, Any]:
        # Tolerate control plane taints so syncing doesn't stall while
        # worker nodes come into existence.
        return {
            "node-feature-discovery": {
                "gc": {"tolerations": Placement.control_plane_tolerations()},
            },
        }


class CertManager:
    """cert-manager."""

    application = "cert-manager"

    def values(self, ctx: ProvisionContext, version: Any) -> dict[str, Any]:
        return {
            "tolerations": Placement.control_plane_tolerations(),
            "webhook": {"tolerations": Placement.control_plane_tolerations()},
            "cainjector": {"tolerations": Placement.control_plane_tolerations()},
            "startupapicheck": {"tolerations": Placement.control_plane_tolerations()},
        }


class CertManagerIssuers:
    """cert-manager issuers, installed with the chart's own values."""

    application = "cert-manager-issuers"


class ClusterAPI:
    """Cluster API."""

    application = "cluster-api"

    def customize(self, version: Any) -> list[HelmApplicationField]:
        return [
            HelmApplicationField(
                group="rbac.authorization.k8s.io",
                kind="ClusterRole",
                json_pointers=["/rules"],
            ),
            HelmApplicationField(
                group="apiextensions.k8s.io",
                kind="CustomResourceDefinition",
                json_pointers=["/spec/conversion/webhook/clientConfig/caBundle"],
            ),
        ]


class ClusterAutoscalerOpenstack:
    """OpenStack support for the cluster autoscaler, installed as-is."""

    application = "cluster-autoscaler-openstack"


class MetricsServer:
    """metrics-server, kept on the control plane to spare worker nodes."""

    application = "metrics-server"

    def values(self, ctx: ProvisionContext, version: Any) -> dict[str, Any]:
        return {
            "tolerations": Placement.control_plane_tolerations(),
            "nodeSelector": Placement.control_plane_node_selector(),
        }


class NvidiaGpuOperator:
    """NVIDIA GPU operator."""

    application = "nvidia-gpu-operator"

    def values(self, ctx: ProvisionContext, version: Any) -> dict[str, Any]:
        # The default affinity prevents scale to zero and its tolerations
        # don't allow execution with the default taints.
        return {
            "driver": {"enabled": False},
            "operator": {
                "affinity": {
                    "nodeAffinity": {
                        "preferredDuringSchedulingIgnoredDuringExecution": None,
                        "requiredDuringSchedulingIgnoredDuringExecution": {
                            "nodeSelectorTerms": [
                                {
                                    "matchExpressions": [
                                        {
                                            "key": "node-role.kubernetes.io/control-plane",
                                            "operator": "Exists",
                                        },
                                    ],
                                },
                            ],
                        },
                    },
                },
                "tolerations": Placement.control_plane_tolerations(),
            },
        }