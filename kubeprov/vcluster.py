"""Virtual clusters that host the cluster manager's control plane."""

import hashlib
from typing import Any, Protocol

from kubeprov.naming import parse_kubeconfig
from kubeprov.resources import (
    NotFoundError,
    ProvisionContext,
    ProvisionError,
    ResourceIdentifier,
    YieldError,
)

CONFIG_DATA_FIELD = "config"

KUBECONFIG_CLUSTER_NAME = "kubernetes"

EXTERNAL_SERVER = "https://localhost:8443"


class ConfigDataMissingError(ProvisionError):
    """The virtual cluster's kubeconfig secret holds no usable configuration."""


class ResourceLabeller(Protocol):
    def resource_labels(self) -> dict[str, str]: ...


def release_name(name: str) -> str:
    """Return a short, unique, Helm-compliant release name for a virtual cluster.

    It must be no longer than 53 characters and unique across all control
    planes to avoid OpenStack network aliasing.
    """
    digest = hashlib.sha256(name.encode()).hexdigest()
    return "vcluster-" + digest[:8]


def _get_stored_config(ctx: ProvisionContext, namespace: str, name: str) -> dict[str, Any]:
    client = ctx.cluster_client()
    try:
        return client.get("Secret", namespace, name)
    except NotFoundError:
        ctx.logger.info("virtual cluster kubeconfig does not exist, yielding")
        raise YieldError("virtual cluster kubeconfig does not exist") from None


def client_config(ctx: ProvisionContext, namespace: str, name: str, external: bool) -> dict[str, Any]:
    """Return the virtual cluster's kubeconfig with its server rewritten.

    The configuration is synchronised into a secret by a side car, so a
    missing secret raises ``YieldError`` and the caller retries.  Internally
    the server is the release's service; externally it is a local
    port-forward, which the caller is responsible for setting up.
    """
    release = release_name(name)

    resource_name = "vc-" + release
    stored = _get_stored_config(ctx, namespace, resource_name)

    data = stored.get("data") or {}
    if CONFIG_DATA_FIELD not in data:
        raise ConfigDataMissingError("config data not found")

    config = parse_kubeconfig(data[CONFIG_DATA_FIELD])

    host = EXTERNAL_SERVER if external else f"https://{release}.{namespace}:443"

    for entry in config.get("clusters") or []:
        if entry.get("name") == KUBECONFIG_CLUSTER_NAME:
            entry.setdefault("cluster", {})["server"] = host
            break
    else:
        raise ConfigDataMissingError(f"cluster '{KUBECONFIG_CLUSTER_NAME}' not found in config")

    return config


class VCluster:
    """The vcluster Helm application, installed with the chart's own values."""

    application = "vcluster"

    def release_name(self, ctx: ProvisionContext) -> str:
        """Return the Helm release name for the resource in the context."""
        return release_name(ctx.resource.name)


class RemoteCluster:
    """Describes how to reach a virtual cluster."""

    def __init__(self, namespace: str, name: str, labeller: ResourceLabeller) -> None:
        self.namespace = namespace
        self.name = name
        # Identifies the owner of, and uniquely identifies, the instance.
        self.labeller = labeller

    def id(self) -> ResourceIdentifier:
        """Identify the virtual cluster by its owner's prioritised labels."""
        return ResourceIdentifier.from_labels("vcluster-" + self.name, self.labeller.resource_labels())

    def config(self, ctx: ProvisionContext) -> dict[str, Any]:
        """Return the internal kubeconfig of the virtual cluster."""
        return client_config(ctx, self.namespace, self.name, False)