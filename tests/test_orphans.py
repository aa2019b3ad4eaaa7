import pytest

from kubeprov.naming import release_name
from kubeprov.orphans import (
    KUBEADM_CONFIG_TEMPLATE,
    KUBEADM_CONTROL_PLANE,
    MACHINE_DEPLOYMENT,
    OPENSTACK_MACHINE_TEMPLATE,
    POOL_NAME_ANNOTATION,
    WorkloadPoolMissingError,
    delete_foreign_resources,
    delete_orphaned_machine_deployments,
    expected_kubeadm_config_template_names,
    expected_machine_deployments,
    expected_openstack_machine_template_names,
    filter_owned_resources,
    machine_deployment_for_workload_pool,
)
from kubeprov.resources import (
    ClusterNetwork,
    KubernetesCluster,
    MachineGeneric,
    ProvisionContext,
    ProvisionError,
    WorkloadPool,
)


def make_cluster(pools=("pool-a",)):
    return KubernetesCluster(
        name="c1",
        control_plane=MachineGeneric(image_id="img", flavor_id="flv"),
        network=ClusterNetwork("10.0.0.0/24", "10.1.0.0/16", "10.2.0.0/16"),
        workload_pools=[WorkloadPool(name=p, machine=MachineGeneric("img", "flv")) for p in pools],
    )


def owned(cluster, kind, name, annotations=None, spec=None, owner_kind="Cluster"):
    return {
        "kind": kind,
        "metadata": {
            "name": name,
            "annotations": annotations or {},
            "ownerReferences": [{"kind": owner_kind, "name": release_name(cluster)}],
        },
        "spec": spec or {},
    }


def deployment(cluster, name, pool, config_template, machine_template):
    return owned(
        cluster,
        "MachineDeployment",
        name,
        annotations={POOL_NAME_ANNOTATION: pool},
        spec={
            "template": {
                "spec": {
                    "bootstrap": {"configRef": {"name": config_template}},
                    "infrastructureRef": {"name": machine_template},
                }
            }
        },
    )


class FakeClient:
    def __init__(self, resources):
        self.resources = resources
        self.deleted = []
        self.namespaces = set()

    def list(self, api_version, kind, namespace):
        self.namespaces.add(namespace)
        return self.resources.get((api_version, kind), [])

    def delete(self, obj):
        self.deleted.append(obj["metadata"]["name"])


def test_filter_owned_resources_keeps_only_owned():
    cluster = make_cluster()
    mine = owned(cluster, "MachineDeployment", "mine")
    wrong_kind = owned(cluster, "MachineDeployment", "wrong", owner_kind="Machine")
    foreign = {"metadata": {"name": "foreign", "ownerReferences": [{"kind": "Cluster", "name": "other"}]}}
    unowned = {"metadata": {"name": "unowned"}}
    assert filter_owned_resources(cluster, [mine, wrong_kind, foreign, unowned]) == [mine]


def test_machine_deployment_for_workload_pool():
    cluster = make_cluster()
    a = deployment(cluster, "md-a", "pool-a", "cfg-a", "omt-a")
    b = deployment(cluster, "md-b", "pool-b", "cfg-b", "omt-b")
    assert machine_deployment_for_workload_pool([a, b], "pool-b") is b


def test_machine_deployment_for_workload_pool_missing():
    with pytest.raises(WorkloadPoolMissingError) as info:
        machine_deployment_for_workload_pool([], "pool-x")
    assert "pool-x" in str(info.value)
    assert isinstance(info.value, ProvisionError)


def test_expected_machine_deployments_in_pool_order():
    cluster = make_cluster(pools=("pool-b", "pool-a"))
    a = deployment(cluster, "md-a", "pool-a", "cfg-a", "omt-a")
    b = deployment(cluster, "md-b", "pool-b", "cfg-b", "omt-b")
    assert expected_machine_deployments(cluster, [a, b]) == [b, a]


def test_expected_template_names():
    cluster = make_cluster()
    deployments = [deployment(cluster, "md-a", "pool-a", "cfg-a", "omt-a"), {"metadata": {"name": "bare"}}]
    control_plane = {"spec": {"machineTemplate": {"infrastructureRef": {"name": "omt-cp"}}}}
    assert expected_kubeadm_config_template_names(deployments) == ["cfg-a", ""]
    assert expected_openstack_machine_template_names(deployments, [control_plane]) == ["omt-a", "", "omt-cp"]


def test_delete_foreign_resources():
    client = FakeClient({})
    objects = [{"metadata": {"name": n}} for n in ("keep", "drop", "also-drop")]
    delete_foreign_resources(client, objects, ["keep"])
    assert client.deleted == ["drop", "also-drop"]


def test_delete_orphaned_machine_deployments():
    cluster = make_cluster()
    resources = {
        MACHINE_DEPLOYMENT: [
            deployment(cluster, "md-a", "pool-a", "cfg-a", "omt-a"),
            deployment(cluster, "md-old", "pool-old", "cfg-old", "omt-old"),
        ],
        KUBEADM_CONFIG_TEMPLATE: [
            owned(cluster, "KubeadmConfigTemplate", "cfg-a"),
            owned(cluster, "KubeadmConfigTemplate", "cfg-old"),
        ],
        KUBEADM_CONTROL_PLANE: [
            owned(cluster, "KubeadmControlPlane", "cp", spec={"machineTemplate": {"infrastructureRef": {"name": "omt-cp"}}}),
        ],
        OPENSTACK_MACHINE_TEMPLATE: [
            owned(cluster, "OpenStackMachineTemplate", "omt-a"),
            owned(cluster, "OpenStackMachineTemplate", "omt-cp"),
            owned(cluster, "OpenStackMachineTemplate", "omt-old"),
        ],
    }
    client = FakeClient(resources)
    delete_orphaned_machine_deployments(ProvisionContext(resource=cluster, client=client))
    assert client.deleted == ["md-old", "cfg-old", "omt-old"]
    assert client.namespaces == {cluster.name}


def test_delete_orphaned_skipped_for_other_drivers():
    cluster = make_cluster()
    client = FakeClient({MACHINE_DEPLOYMENT: [deployment(cluster, "md-old", "pool-old", "c", "o")]})
    delete_orphaned_machine_deployments(ProvisionContext(resource=cluster, client=client, cd_driver="flux"))
    assert client.deleted == []


def test_delete_orphaned_raises_when_pool_not_synced():
    cluster = make_cluster(pools=("pool-a", "pool-new"))
    client = FakeClient({MACHINE_DEPLOYMENT: [deployment(cluster, "md-a", "pool-a", "cfg-a", "omt-a")]})
    with pytest.raises(WorkloadPoolMissingError):
        delete_orphaned_machine_deployments(ProvisionContext(resource=cluster, client=client))
    assert client.deleted == []