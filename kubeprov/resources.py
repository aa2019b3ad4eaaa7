"""Resource models, errors and the provisioning context."""

import ipaddress
import logging
from dataclasses import dataclass, field
from typing import Any

ORGANIZATION_LABEL = "unikorn-cloud.org/organization"
PROJECT_LABEL = "unikorn-cloud.org/project"
CLUSTER_MANAGER_LABEL = "unikorn-cloud.org/clustermanager"
KUBERNETES_CLUSTER_LABEL = "unikorn-cloud.org/cluster"
VIRTUAL_KUBERNETES_CLUSTER_LABEL = "unikorn-cloud.org/virtualcluster"

# Most specific first, used to build stable resource identifiers.
LABEL_PRIORITIES = (
    KUBERNETES_CLUSTER_LABEL,
    VIRTUAL_KUBERNETES_CLUSTER_LABEL,
    CLUSTER_MANAGER_LABEL,
    PROJECT_LABEL,
    ORGANIZATION_LABEL,
)

ARGOCD_DRIVER = "argocd"


class ProvisionError(Exception):
    """Base class for provisioning failures."""


class YieldError(ProvisionError):
    """A dependency is not ready yet; provisioning should be retried later."""


class InvalidContextError(ProvisionError):
    """The provisioning context lacks something that is required."""


class NotFoundError(ProvisionError):
    """A requested resource does not exist."""


class ResourceReferenceError(ProvisionError):
    """A resource refers to something that cannot be resolved."""


class Placement:
    """Scheduling hints that keep workloads on control plane nodes."""

    CONTROL_PLANE_LABEL = "node-role.kubernetes.io/control-plane"

    @staticmethod
    def control_plane_tolerations() -> list[dict[str, Any]]:
        return [
            {
                "key": Placement.CONTROL_PLANE_LABEL,
                "operator": "Exists",
                "effect": "NoSchedule",
            }
        ]

    @staticmethod
    def control_plane_init_tolerations() -> list[dict[str, Any]]:
        return [
            {
                "key": "node.cloudprovider.kubernetes.io/uninitialized",
                "operator": "Equal",
                "value": "true",
                "effect": "NoSchedule",
            }
        ]

    @staticmethod
    def control_plane_node_selector() -> dict[str, str]:
        return {Placement.CONTROL_PLANE_LABEL: ""}


@dataclass
class MachineGeneric:
    """A machine template; ``disk_size`` is in bytes."""

    image_id: str
    flavor_id: str
    replicas: int = 1
    disk_size: int | None = None


@dataclass
class WorkloadPoolAutoscaling:
    minimum_replicas: int


@dataclass
class WorkloadPoolFile:
    path: str
    content: bytes


@dataclass
class WorkloadPool:
    name: str
    machine: MachineGeneric
    autoscaling: WorkloadPoolAutoscaling | None = None
    labels: dict[str, str] = field(default_factory=dict)
    files: list[WorkloadPoolFile] = field(default_factory=list)


@dataclass
class ClusterNetwork:
    """Cluster network layout; strings are parsed into address objects."""

    node_network: Any
    service_network: Any
    pod_network: Any
    dns_nameservers: list[Any] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.node_network = ipaddress.ip_network(self.node_network)
        self.service_network = ipaddress.ip_network(self.service_network)
        self.pod_network = ipaddress.ip_network(self.pod_network)
        self.dns_nameservers = [ipaddress.ip_address(a) for a in self.dns_nameservers]


@dataclass
class ClusterAPI:
    """Kubernetes API endpoint customisation."""

    subject_alternative_names: list[str] | None = None
    allowed_prefixes: list[Any] | None = None

    def __post_init__(self) -> None:
        if self.allowed_prefixes is not None:
            self.allowed_prefixes = [ipaddress.ip_network(p) for p in self.allowed_prefixes]


@dataclass
class KubernetesCluster:
    name: str
    control_plane: MachineGeneric
    network: ClusterNetwork
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    region_id: str = ""
    version: str = ""
    application_bundle: str = ""
    cluster_manager_id: str = ""
    workload_pools: list[WorkloadPool] = field(default_factory=list)
    api: ClusterAPI | None = None
    autoscaling: bool = False
    gpu_operator: bool = False

    def autoscaling_enabled(self) -> bool:
        return self.autoscaling

    def gpu_operator_enabled(self) -> bool:
        return self.gpu_operator

    def resource_labels(self) -> dict[str, str]:
        """Labels identifying the cluster, including its own name."""
        labels = dict(self.labels)
        labels[KUBERNETES_CLUSTER_LABEL] = self.name
        return labels


@dataclass
class VirtualKubernetesCluster:
    name: str
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    region_id: str = ""
    application_bundle: str = ""

    def resource_labels(self) -> dict[str, str]:
        """Labels identifying the virtual cluster, including its own name."""
        labels = dict(self.labels)
        labels[VIRTUAL_KUBERNETES_CLUSTER_LABEL] = self.name
        return labels


@dataclass(frozen=True)
class ResourceIdentifierLabel:
    name: str
    value: str


@dataclass(frozen=True)
class ResourceIdentifier:
    name: str
    labels: tuple[ResourceIdentifierLabel, ...] = ()

    @classmethod
    def from_labels(cls, name: str, resource_labels: dict[str, str]) -> "ResourceIdentifier":
        """Build an identifier from the prioritised labels that are present."""
        labels = tuple(
            ResourceIdentifierLabel(label, resource_labels[label])
            for label in LABEL_PRIORITIES
            if label in resource_labels
        )
        return cls(name=name, labels=labels)


@dataclass
class ProvisionContext:
    """Everything a provisioner needs while it runs.

    ``resource`` is the object being provisioned, ``client`` talks to the
    remote cluster whose API endpoint is ``host``:``port``, and
    ``provisioner_client`` talks to the management cluster.
    """

    resource: Any = None
    client: Any = None
    host: str = ""
    port: str = ""
    provisioner_client: Any = None
    namespace: str = ""
    cd_driver: str = ARGOCD_DRIVER
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("kubeprov"))

    def cluster_client(self) -> Any:
        """Return the remote cluster client, which must be present."""
        if self.client is None:
            raise InvalidContextError("no cluster client in context")
        return self.client