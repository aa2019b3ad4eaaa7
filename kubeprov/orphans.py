"""Removal of Cluster API resources left behind by deleted workload pools.

When a workload pool is removed from the manifest, Cluster API has already
added owner references to its resources, so the CD driver treats them as
implicitly created and leaves them alone.  These helpers find and delete them.

Resources are plain mappings in Kubernetes object form.  The cluster client
provides ``list(api_version, kind, namespace)`` and ``delete(obj)``.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from kubeprov.naming import release_name
from kubeprov.resources import (
    ARGOCD_DRIVER,
    KubernetesCluster,
    ProvisionContext,
    ProvisionError,
)

POOL_NAME_ANNOTATION = "pool.unikorn-cloud.org/name"

MACHINE_DEPLOYMENT = ("cluster.x-k8s.io/v1beta1", "MachineDeployment")
KUBEADM_CONFIG_TEMPLATE = ("bootstrap.cluster.x-k8s.io/v1beta1", "KubeadmConfigTemplate")
KUBEADM_CONTROL_PLANE = ("controlplane.cluster.x-k8s.io/v1beta1", "KubeadmControlPlane")
OPENSTACK_MACHINE_TEMPLATE = ("infrastructure.cluster.x-k8s.io/v1beta1", "OpenStackMachineTemplate")

_log = logging.getLogger(__name__)


class WorkloadPoolMissingError(ProvisionError):
    """A machine deployment expected for a workload pool was not found.

    This usually means the CD driver has not synchronised yet; deleting now
    would race with its creation.
    """


def _metadata(obj: Mapping[str, Any]) -> Mapping[str, Any]:
    return obj.get("metadata") or {}


def _name(obj: Mapping[str, Any]) -> str:
    return _metadata(obj).get("name", "")


def _nested_string(obj: Mapping[str, Any], *path: str) -> str:
    value: Any = obj
    for key in path:
        if not isinstance(value, Mapping) or key not in value:
            return ""
        value = value[key]
    return value if isinstance(value, str) else ""


def filter_owned_resources(
    cluster: KubernetesCluster, resources: Iterable[Mapping[str, Any]]
) -> list[Mapping[str, Any]]:
    """Keep the resources owned by the cluster's Cluster API cluster."""
    owner = release_name(cluster)
    return [
        resource
        for resource in resources
        for reference in _metadata(resource).get("ownerReferences") or []
        if reference.get("kind") == "Cluster" and reference.get("name") == owner
    ]


def machine_deployment_for_workload_pool(
    objects: Iterable[Mapping[str, Any]], name: str
) -> Mapping[str, Any]:
    """Return the machine deployment annotated as belonging to the named pool."""
    for obj in objects:
        annotations = _metadata(obj).get("annotations") or {}
        if annotations.get(POOL_NAME_ANNOTATION) == name:
            return obj
    raise WorkloadPoolMissingError(f"unable to locate expected workload pool: {name}")


def expected_machine_deployments(
    cluster: KubernetesCluster, objects: list[Mapping[str, Any]]
) -> list[Mapping[str, Any]]:
    """Return the machine deployment for each workload pool, in pool order."""
    return [machine_deployment_for_workload_pool(objects, pool.name) for pool in cluster.workload_pools]


def expected_kubeadm_config_template_names(deployments: Iterable[Mapping[str, Any]]) -> list[str]:
    """Return the bootstrap config templates the deployments refer to."""
    return [
        _nested_string(deployment, "spec", "template", "spec", "bootstrap", "configRef", "name")
        for deployment in deployments
    ]


def expected_openstack_machine_template_names(
    deployments: Iterable[Mapping[str, Any]], control_planes: Iterable[Mapping[str, Any]]
) -> list[str]:
    """Return the machine templates the deployments and control planes refer to."""
    names = [
        _nested_string(deployment, "spec", "template", "spec", "infrastructureRef", "name")
        for deployment in deployments
    ]
    names.extend(
        _nested_string(control_plane, "spec", "machineTemplate", "infrastructureRef", "name")
        for control_plane in control_planes
    )
    return names


def delete_foreign_resources(
    client: Any, objects: Iterable[Mapping[str, Any]], allowed: Iterable[str]
) -> None:
    """Delete every object whose name is not among the allowed names."""
    allowed_names = set(allowed)
    for obj in objects:
        if _name(obj) in allowed_names:
            continue
        _log.info("deleting orphaned resource kind=%s name=%s", obj.get("kind", ""), _name(obj))
        client.delete(obj)


def delete_orphaned_machine_deployments(ctx: ProvisionContext) -> None:
    """Delete machine deployments and templates no longer in the manifest.

    Only needed with the Argo CD driver; other drivers clean up themselves.
    """
    if ctx.cd_driver != ARGOCD_DRIVER:
        return

    cluster: KubernetesCluster = ctx.resource
    client = ctx.cluster_client()

    def owned(api_version: str, kind: str) -> list[Mapping[str, Any]]:
        return filter_owned_resources(cluster, client.list(api_version, kind, cluster.name))

    deployments = owned(*MACHINE_DEPLOYMENT)
    kubeadm_config_templates = owned(*KUBEADM_CONFIG_TEMPLATE)
    kubeadm_control_planes = owned(*KUBEADM_CONTROL_PLANE)
    openstack_machine_templates = owned(*OPENSTACK_MACHINE_TEMPLATE)

    expected = expected_machine_deployments(cluster, deployments)
    deployment_names = [_name(deployment) for deployment in expected]

    # Template names are generated by Helm and cannot be guessed, so they are
    # read from the references in the expected resources.
    config_template_names = expected_kubeadm_config_template_names(expected)
    machine_template_names = expected_openstack_machine_template_names(expected, kubeadm_control_planes)

    delete_foreign_resources(client, deployments, deployment_names)
    delete_foreign_resources(client, kubeadm_config_templates, config_template_names)
    delete_foreign_resources(client, openstack_machine_templates, machine_template_names)