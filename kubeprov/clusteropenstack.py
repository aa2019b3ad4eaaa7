"""Cluster API OpenStack cluster chart: the cluster itself, its machines and network."""

import base64
from typing import Any

import semver

from kubeprov import naming
from kubeprov.options import ClusterOpenstackOptions, GPUVendor
from kubeprov.orphans import delete_orphaned_machine_deployments
from kubeprov.resources import (
    ORGANIZATION_LABEL,
    PROJECT_LABEL,
    KubernetesCluster,
    MachineGeneric,
    ProvisionContext,
    ResourceReferenceError,
    WorkloadPool,
)

# From this chart version onward parallel image pulls can be turned on.
_PARALLEL_IMAGE_PULLS_FROM = semver.Version(0, 5, 8)

_GPU_RESOURCE_TYPES = {
    GPUVendor.NVIDIA: "nvidia.com/gpu",
    GPUVendor.AMD: "amd.com/gpu",
}


def _as_version(version: Any) -> semver.Version:
    if isinstance(version, semver.Version):
        return version
    text = str(version).strip().removeprefix("v")
    return semver.Version.parse(text, optional_minor_and_patch=True)


class ClusterOpenstack:
    """Generates values for the OpenStack cluster chart.

    The application is allowed to report as degraded, since the cluster
    never becomes healthy until its CNI and cloud provider are installed.
    """

    application = "cluster-openstack"
    allow_degraded = True

    def __init__(self, options: ClusterOpenstackOptions, cluster_manager_prefix: str = "") -> None:
        self.options = options
        # Address prefix of the cluster manager, added to the API firewall.
        self.cluster_manager_prefix = cluster_manager_prefix

    def _machine_values(self, machine: MachineGeneric, control_plane: bool) -> dict[str, Any]:
        flavor = self.options.find_flavor(machine.flavor_id)

        # The infrastructure provider accepts flavor names, not IDs.
        values: dict[str, Any] = {
            "imageID": machine.image_id,
            "flavorID": flavor.name,
        }

        if control_plane and self.options.server_group_id is not None:
            values["serverGroupID"] = self.options.server_group_id

        if machine.disk_size is not None:
            values["disk"] = {"size": machine.disk_size >> 30}

        return values

    def _scheduler_values(self, pool: WorkloadPool) -> dict[str, Any]:
        # Scaling from zero needs CPU and memory hints, the autoscaler cannot
        # work out flavor attributes itself.
        flavor = self.options.find_flavor(pool.machine.flavor_id)

        scheduling: dict[str, Any] = {
            "cpu": flavor.cpus,
            "memory": f"{flavor.memory}G",
        }

        if flavor.gpu is not None:
            resource_type = _GPU_RESOURCE_TYPES.get(flavor.gpu.vendor)
            if resource_type is None:
                vendor = getattr(flavor.gpu.vendor, "value", flavor.gpu.vendor)
                raise ResourceReferenceError(f"unhandled gpu vendor case {vendor}")
            scheduling["gpu"] = {
                "type": resource_type,
                "count": flavor.gpu.logical_count,
            }

        return {
            "limits": {
                "minReplicas": pool.autoscaling.minimum_replicas,
                "maxReplicas": pool.machine.replicas,
            },
            "scheduler": scheduling,
        }

    def _workload_pool_values(self, cluster: KubernetesCluster, version: Any) -> dict[str, Any]:
        parallel_pulls = _as_version(version) >= _PARALLEL_IMAGE_PULLS_FROM
        pools: dict[str, Any] = {}

        for pool in cluster.workload_pools:
            values: dict[str, Any] = {
                "replicas": pool.machine.replicas,
                "machine": self._machine_values(pool.machine, False),
            }

            if cluster.autoscaling_enabled() and pool.autoscaling is not None:
                values["autoscaling"] = self._scheduler_values(pool)

            if pool.labels:
                values["labels"] = dict(pool.labels)

            if pool.files:
                values["files"] = [
                    {"path": f.path, "content": base64.b64encode(f.content).decode("ascii")}
                    for f in pool.files
                ]

            if parallel_pulls:
                values["kubelet"] = {
                    "serializeImagePulls": False,
                    "maxParallelImagePulls": 3,
                }

            pools[pool.name] = values

        return pools

    def _network_values(self, cluster: KubernetesCluster) -> dict[str, Any]:
        network = cluster.network
        values: dict[str, Any] = {
            "nodeCIDR": str(network.node_network),
            "serviceCIDRs": [str(network.service_network)],
            "podCIDRs": [str(network.pod_network)],
            "dnsNameservers": [str(ns) for ns in network.dns_nameservers],
        }

        provider = self.options.provider_network
        if provider is not None:
            values["provider"] = {
                "networkID": provider.network_id,
                "subnetID": provider.subnet_id,
            }

        if self.options.ssh_key_name is not None:
            values["securityGroupRules"] = [
                {
                    "name": "ssh-ingress",
                    "direction": "ingress",
                    "etherType": "IPv4",
                    "protocol": "TCP",
                    "portRangeMin": 22,
                    "portRangeMax": 22,
                }
            ]

        return values

    def values(self, ctx: ProvisionContext, version: Any) -> dict[str, Any]:
        """Return the chart values for the cluster in the context."""
        cluster: KubernetesCluster = ctx.resource

        workload_pools = self._workload_pool_values(cluster, version)

        openstack: dict[str, Any] = {
            "cloud": self.options.cloud,
            "cloudsYAML": self.options.cloud_config,
        }
        if self.options.external_network_id is not None:
            openstack["externalNetworkID"] = self.options.external_network_id
        if self.options.ssh_key_name is not None:
            openstack["sshKeyName"] = self.options.ssh_key_name

        labels = cluster.resource_labels()

        # Must match the API's view so logs can be cross referenced.
        server_metadata = {
            "clusterKind": "kubernetes",
            "clusterID": cluster.name,
            "projectID": labels.get(PROJECT_LABEL, ""),
            "organizationID": labels.get(ORGANIZATION_LABEL, ""),
            "regionID": cluster.region_id,
        }

        control_plane_machine = self._machine_values(cluster.control_plane, True)

        values: dict[str, Any] = {
            "version": cluster.version,
            "openstack": openstack,
            "cluster": {
                "taints": [
                    # Keeps things like CoreDNS from starting before the CNI.
                    {
                        "key": "node.cilium.io/agent-not-ready",
                        "effect": "NoSchedule",
                        "value": "true",
                    },
                ],
                "serverMetadata": server_metadata,
            },
            "controlPlane": {
                "replicas": cluster.control_plane.replicas,
                "machine": control_plane_machine,
            },
            "workloadPools": workload_pools,
            "network": self._network_values(cluster),
        }

        if cluster.api is not None:
            api: dict[str, Any] = {}
            if cluster.api.subject_alternative_names is not None:
                api["certificateSANs"] = list(cluster.api.subject_alternative_names)
            if cluster.api.allowed_prefixes is not None:
                # The cluster manager's address lets Cluster API manage the cluster.
                api["allowList"] = [self.cluster_manager_prefix] + [
                    str(prefix) for prefix in cluster.api.allowed_prefixes
                ]
            values["api"] = api

        return values

    def release_name(self, ctx: ProvisionContext) -> str:
        """Return the Helm release name for the cluster in the context."""
        return naming.release_name(ctx.resource)

    def post_provision(self, ctx: ProvisionContext) -> None:
        """Remove resources left behind by deleted workload pools."""
        delete_orphaned_machine_deployments(ctx)