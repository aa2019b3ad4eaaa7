import pytest
import yaml

from kubeprov.naming import (
    RemoteCluster,
    capi_cluster_name,
    kubeconfig_secret_name,
    parse_kubeconfig,
    release_name,
)
from kubeprov.resources import (
    KUBERNETES_CLUSTER_LABEL,
    ORGANIZATION_LABEL,
    PROJECT_LABEL,
    ClusterNetwork,
    InvalidContextError,
    KubernetesCluster,
    MachineGeneric,
    NotFoundError,
    ProvisionContext,
    ResourceIdentifierLabel,
    YieldError,
)


def make_cluster(name="foo", labels=None):
    return KubernetesCluster(
        name=name,
        control_plane=MachineGeneric(image_id="img", flavor_id="flv"),
        network=ClusterNetwork("10.0.0.0/24", "10.1.0.0/16", "10.2.0.0/16"),
        labels=labels or {},
    )


class FakeClient:
    def __init__(self, secrets):
        self.secrets = secrets
        self.calls = []

    def get(self, kind, namespace, name):
        self.calls.append((kind, namespace, name))
        try:
            return self.secrets[(namespace, name)]
        except KeyError:
            raise NotFoundError(name) from None


def test_release_name_known_value():
    assert release_name(make_cluster("foo")) == "cluster-2c26b46b"


def test_release_name_shape_and_determinism():
    name = release_name(make_cluster("some-cluster"))
    assert name.startswith("cluster-")
    assert len(name) == len("cluster-") + 8
    assert name == release_name(make_cluster("some-cluster"))
    assert name != release_name(make_cluster("other-cluster"))


def test_capi_and_secret_names_follow_release_name():
    cluster = make_cluster("abc")
    assert capi_cluster_name(cluster) == release_name(cluster)
    assert kubeconfig_secret_name(cluster) == release_name(cluster) + "-kubeconfig"


def test_parse_kubeconfig_round_trip():
    document = {"apiVersion": "v1", "kind": "Config", "clusters": [{"name": "kubernetes"}]}
    assert parse_kubeconfig(yaml.safe_dump(document).encode()) == document
    assert parse_kubeconfig(yaml.safe_dump(document)) == document


def test_parse_kubeconfig_empty():
    assert parse_kubeconfig(b"") == {}
    assert parse_kubeconfig(None) == {}


@pytest.mark.parametrize("data", [b"- a\n- b\n", b"key: [unterminated"])
def test_parse_kubeconfig_invalid(data):
    with pytest.raises(ValueError):
        parse_kubeconfig(data)


def test_remote_cluster_id_orders_labels():
    cluster = make_cluster("c1", {ORGANIZATION_LABEL: "org", PROJECT_LABEL: "proj", "other": "x"})
    identifier = RemoteCluster(cluster).id()
    assert identifier.name == "kubernetes"
    assert identifier.labels == (
        ResourceIdentifierLabel(KUBERNETES_CLUSTER_LABEL, "c1"),
        ResourceIdentifierLabel(PROJECT_LABEL, "proj"),
        ResourceIdentifierLabel(ORGANIZATION_LABEL, "org"),
    )


def test_remote_cluster_config_reads_secret():
    cluster = make_cluster("c1")
    document = {"apiVersion": "v1", "kind": "Config"}
    secret_key = (cluster.name, kubeconfig_secret_name(cluster))
    client = FakeClient({secret_key: {"data": {"value": yaml.safe_dump(document).encode()}}})
    config = RemoteCluster(cluster).config(ProvisionContext(client=client))
    assert config == document
    assert client.calls == [("Secret", cluster.name, kubeconfig_secret_name(cluster))]


def test_remote_cluster_config_yields_when_missing():
    client = FakeClient({})
    with pytest.raises(YieldError):
        RemoteCluster(make_cluster()).config(ProvisionContext(client=client))


def test_remote_cluster_config_requires_client():
    with pytest.raises(InvalidContextError):
        RemoteCluster(make_cluster()).config(ProvisionContext())