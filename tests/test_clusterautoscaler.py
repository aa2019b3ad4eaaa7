from kubeprov.clusterautoscaler import ClusterAutoscaler
from kubeprov.naming import capi_cluster_name, kubeconfig_secret_name
from kubeprov.resources import (
    ClusterNetwork,
    KubernetesCluster,
    MachineGeneric,
    ProvisionContext,
)


def make_cluster(name):
    return KubernetesCluster(
        name=name,
        control_plane=MachineGeneric(image_id="i", flavor_id="f"),
        network=ClusterNetwork(
            node_network="192.168.0.0/24",
            service_network="172.16.0.0/12",
            pod_network="10.0.0.0/8",
        ),
    )


def test_parameters_reference_cluster_api_names():
    cluster = make_cluster("alpha")
    params = ClusterAutoscaler().parameters(ProvisionContext(resource=cluster), "1.0.0")
    assert params == {
        "autoDiscovery.clusterName": capi_cluster_name(cluster),
        "clusterAPIKubeconfigSecret": kubeconfig_secret_name(cluster),
    }


def test_secret_name_extends_cluster_name():
    params = ClusterAutoscaler().parameters(ProvisionContext(resource=make_cluster("beta")), "1.0.0")
    assert params["clusterAPIKubeconfigSecret"] == params["autoDiscovery.clusterName"] + "-kubeconfig"
    assert params["autoDiscovery.clusterName"].startswith("cluster-")


def test_distinct_clusters_get_distinct_parameters():
    autoscaler = ClusterAutoscaler()
    a = autoscaler.parameters(ProvisionContext(resource=make_cluster("a")), "1.0.0")
    b = autoscaler.parameters(ProvisionContext(resource=make_cluster("b")), "1.0.0")
    assert a["autoDiscovery.clusterName"] != b["autoDiscovery.clusterName"]
    assert a["clusterAPIKubeconfigSecret"] != b["clusterAPIKubeconfigSecret"]