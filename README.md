# kubeprov

`kubeprov` builds the Helm values used to run Kubernetes clusters on OpenStack
with Cluster API, together with the add-on charts such a cluster needs, and
the values for virtual clusters hosted inside an existing Kubernetes cluster.
It also provides stable release names, kubeconfig lookup for remote clusters
and clean-up of Cluster API resources left behind by deleted workload pools.

## Modules

- `kubeprov.resources`: the resource model (`KubernetesCluster`,
  `VirtualKubernetesCluster`, `MachineGeneric`, `WorkloadPool`,
  `WorkloadPoolAutoscaling`, `WorkloadPoolFile`, `ClusterNetwork`,
  `ClusterAPI`), `ResourceIdentifier` and `ResourceIdentifierLabel`,
  control plane scheduling hints in `Placement`, the `ProvisionContext`
  passed to every generator, and the errors: `ProvisionError` and its
  subclasses `YieldError`, `InvalidContextError`, `NotFoundError` and
  `ResourceReferenceError`.
- `kubeprov.options`: the OpenStack options for a cluster
  (`ClusterOpenstackOptions`, `ClusterOpenstackProviderOptions`, `Flavor`,
  `FlavorGPU`, `GPUVendor`). `ClusterOpenstackOptions.find_flavor` returns a
  flavor by ID or raises `ResourceReferenceError`.
- `kubeprov.clusteropenstack`: `ClusterOpenstack` produces values for the
  cluster chart: control plane and workload pool machines, autoscaling
  hints (CPU, memory and GPU type and count), labels, files, network,
  server metadata and the API allow list. From chart version 0.5.8 on,
  parallel image pulls are turned on. `post_provision` removes orphaned
  resources (see `kubeprov.orphans`).
- `kubeprov.cilium`: `Cilium` values for running without kube-proxy; the
  context must carry the remote cluster's `host` and `port`, otherwise
  `InvalidContextError` is raised.
- `kubeprov.clusterautoscaler`: `ClusterAutoscaler.parameters` points the
  autoscaler at the cluster's Cluster API name and kubeconfig secret.
- `kubeprov.cloudprovider`: `generate_cloud_config` turns a base64 encoded
  `clouds.yaml` using `v3applicationcredential` authentication into the cloud
  provider's INI configuration, raising `CloudConfigurationError` otherwise.
  `configuration_hash` gives a stable SHA-256 digest.
  `OpenstackCloudProvider` produces the chart values, and its
  `pre_deprovision` deletes load balancer services and raises `YieldError`
  until none remain.
- `kubeprov.cindercsi`: `CinderCSI` values, with the storage classes from
  `generate_storage_classes` rendered as YAML documents.
- `kubeprov.simple`: values for charts that need no cluster input
  (`AmdGpuOperator`, `CertManager`, `MetricsServer`, `NvidiaGpuOperator`),
  the ignored fields for `ClusterAPI.customize`, and `CertManagerIssuers`
  and `ClusterAutoscalerOpenstack`, which use the charts' own values.
- `kubeprov.naming`: `release_name`, `capi_cluster_name`,
  `kubeconfig_secret_name`, `parse_kubeconfig` and `RemoteCluster`, which
  reads a cluster's kubeconfig from its secret.
- `kubeprov.vcluster`: `release_name`, `client_config`, which reads a
  virtual cluster's kubeconfig and rewrites its server address, `VCluster`
  and `RemoteCluster`.
- `kubeprov.virtualcluster`: `release_name` and `VirtualCluster`, whose values
  expose the virtual cluster through an ingress on `<release>.<domain>`.
- `kubeprov.orphans`: finds the machine deployments, kubeadm config templates
  and OpenStack machine templates that no workload pool refers to any more
  and deletes them; only done when the context's `cd_driver` is `"argocd"`.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Example

```python
from kubeprov.clusteropenstack import ClusterOpenstack
from kubeprov.naming import capi_cluster_name, kubeconfig_secret_name
from kubeprov.options import ClusterOpenstackOptions, Flavor
from kubeprov.resources import (
    ClusterNetwork,
    KubernetesCluster,
    MachineGeneric,
    ProvisionContext,
)

cluster = KubernetesCluster(
    name="demo",
    control_plane=MachineGeneric(image_id="image-1", flavor_id="flavor-1", replicas=3),
    network=ClusterNetwork("192.168.0.0/24", "172.16.0.0/12", "10.0.0.0/8", ["8.8.8.8"]),
    version="v1.30.2",
)

options = ClusterOpenstackOptions(
    cloud_config="...",  # base64 encoded clouds.yaml
    cloud="default",
    flavors=[Flavor(id="flavor-1", name="small", cpus=2, memory=4)],
)

print(capi_cluster_name(cluster))        # "cluster-" and 8 hex digits
print(kubeconfig_secret_name(cluster))   # the same name with "-kubeconfig"

ctx = ProvisionContext(resource=cluster)
values = ClusterOpenstack(options, "192.0.2.1/32").values(ctx, "0.5.8")
```

Generators return plain dictionaries that can be written out as Helm values.

## Clients

Functions that touch a cluster use the `client` in the `ProvisionContext`,
which the caller supplies. It is expected to offer:

- `get(kind, namespace, name)`, returning the object as a mapping (secrets
  with their decoded values under `data`), and raising `NotFoundError` when
  the object does not exist;
- `list(api_version, kind, namespace)`, returning objects as mappings;
- `delete(obj)`.

## What it does not do

`kubeprov` only generates values and performs the individual steps above. It
does not install Helm charts, run a controller or reconcile loop, order the
steps of provisioning, talk to a Kubernetes API server by itself, or fetch
identities, networks and flavors from a region service: the options and the
client are supplied by the caller. A `YieldError` means a dependency is not
ready yet and the step should be tried again later.