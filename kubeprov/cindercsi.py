"""OpenStack Cinder CSI plugin and its storage classes."""

from typing import Any

import yaml

from kubeprov.cloudprovider import (
    CONFIGURATION_HASH_ANNOTATION,
    configuration_hash,
    generate_cloud_config,
)
from kubeprov.options import ClusterOpenstackOptions
from kubeprov.resources import Placement, ProvisionContext

CINDER_PROVISIONER = "cinder.csi.openstack.org"

DEFAULT_CLASS_ANNOTATION = "storageclass.kubernetes.io/is-default-class"


def generate_storage_class(
    name: str,
    reclaim_policy: str,
    volume_binding_mode: str,
    is_default: bool,
    volume_expansion: bool,
) -> dict[str, Any]:
    """Return a Cinder storage class in Kubernetes object form."""
    metadata: dict[str, Any] = {"name": name, "creationTimestamp": None}

    if is_default:
        metadata["annotations"] = {DEFAULT_CLASS_ANNOTATION: "true"}

    return {
        "apiVersion": "storage.k8s.io/v1",
        "kind": "StorageClass",
        "metadata": metadata,
        "provisioner": CINDER_PROVISIONER,
        "reclaimPolicy": reclaim_policy,
        "allowVolumeExpansion": volume_expansion,
        "volumeBindingMode": volume_binding_mode,
    }


def generate_storage_classes() -> list[dict[str, Any]]:
    """Return the storage classes installed on every cluster."""
    return [
        generate_storage_class("cinder", "Delete", "WaitForFirstConsumer", True, True),
    ]


class CinderCSI:
    """Generates values for the Cinder CSI plugin chart."""

    application = "openstack-plugin-cinder-csi"

    def __init__(self, options: ClusterOpenstackOptions) -> None:
        self.options = options

    def values(self, ctx: ProvisionContext, version: Any) -> dict[str, Any]:
        """Return the chart values, with storage classes rendered as YAML."""
        documents = [
            yaml.safe_dump(storage_class, sort_keys=True, default_flow_style=False)
            for storage_class in generate_storage_classes()
        ]

        cloud_config = generate_cloud_config(self.options)

        return {
            "commonAnnotations": {
                CONFIGURATION_HASH_ANNOTATION: configuration_hash(cloud_config),
            },
            # Keep the controller on the control plane to allow scale to zero.
            "csi": {
                "plugin": {
                    "controllerPlugin": {
                        "nodeSelector": Placement.control_plane_node_selector(),
                        "tolerations": Placement.control_plane_tolerations(),
                    },
                },
            },
            "storageClass": {
                "enabled": False,
                "custom": "---\n".join(documents),
            },
        }