"""OpenStack cloud controller manager and its cloud configuration."""

import base64
import binascii
import hashlib
import json
from collections.abc import Mapping
from typing import Any

import yaml

from kubeprov.options import ClusterOpenstackOptions
from kubeprov.resources import (
    Placement,
    ProvisionContext,
    ProvisionError,
    YieldError,
)

CONFIGURATION_HASH_ANNOTATION = "unikorn-cloud.org/config-hash"

APPLICATION_CREDENTIAL_AUTH_TYPE = "v3applicationcredential"

SERVICE_TYPE_LOAD_BALANCER = "LoadBalancer"

_CREDENTIAL_FIELDS = ("id", "secret")


class CloudConfigurationError(ProvisionError):
    """The cloud configuration is not correctly formatted."""


def _ini_value(value: str) -> str:
    if "\n" in value:
        return '"""' + value + '"""'
    if "#" in value or ";" in value:
        return "`" + value + "`"
    if value.strip() != value:
        return '"' + value + '"'
    return value


def _render_ini(sections: Mapping[str, Mapping[str, str]]) -> str:
    lines: list[str] = []
    for section, keys in sections.items():
        lines.append(f"[{section}]")
        width = max((len(key) for key in keys), default=0)
        lines.extend(f"{key.ljust(width)} = {_ini_value(value)}" for key, value in keys.items())
        lines.append("")
    return "".join(line + "\n" for line in lines)


def _load_clouds(options: ClusterOpenstackOptions) -> Mapping[str, Any]:
    try:
        document = base64.urlsafe_b64decode(options.cloud_config.encode("ascii"))
    except (binascii.Error, ValueError) as exc:
        raise CloudConfigurationError(f"unable to decode clouds.yaml: {exc}") from exc

    try:
        parsed = yaml.safe_load(document)
    except yaml.YAMLError as exc:
        raise CloudConfigurationError(f"unable to parse clouds.yaml: {exc}") from exc

    if parsed is None:
        parsed = {}
    if not isinstance(parsed, Mapping):
        raise CloudConfigurationError("clouds.yaml is not a mapping")

    clouds = parsed.get("clouds") or {}
    if not isinstance(clouds, Mapping):
        raise CloudConfigurationError("clouds.yaml clouds is not a mapping")
    return clouds


def generate_cloud_config(options: ClusterOpenstackOptions) -> str:
    """Translate the clouds.yaml in the options into a cloud provider INI file.

    Only application credential authentication is supported.
    """
    clouds = _load_clouds(options)

    cloud = clouds.get(options.cloud)
    if not isinstance(cloud, Mapping):
        raise CloudConfigurationError(f"cloud '{options.cloud}' not found in clouds.yaml")

    if cloud.get("auth_type") != APPLICATION_CREDENTIAL_AUTH_TYPE:
        raise CloudConfigurationError(
            f"{APPLICATION_CREDENTIAL_AUTH_TYPE} auth_type must be specified in clouds.yaml"
        )

    if options.external_network_id is None:
        raise CloudConfigurationError("external network ID is required")

    auth = cloud.get("auth") or {}

    def auth_value(key: str) -> str:
        value = auth.get(key)
        return "" if value is None else str(value)

    global_section = {"auth-url": auth_value("auth_url")}
    for field in _CREDENTIAL_FIELDS:
        global_section[f"application-credential-{field}"] = auth_value(f"application_credential_{field}")

    sections = {
        "Global": global_section,
        "LoadBalancer": {
            "floating-network-id": options.external_network_id,
            "create-monitor": "true",
        },
        "BlockStorage": {
            "ignore-volume-az": "true",
        },
    }

    return _render_ini(sections)


def configuration_hash(value: Any) -> str:
    """Return a stable SHA-256 hex digest of a JSON-serialisable value."""
    encoded = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class OpenstackCloudProvider:
    """Generates values for the OpenStack cloud controller manager chart.

    The chart cannot take a clouds.yaml directly, so the configuration is
    translated into its own format.
    """

    application = "openstack-cloud-provider"

    def __init__(self, options: ClusterOpenstackOptions) -> None:
        self.options = options

    def values(self, ctx: ProvisionContext, version: Any) -> dict[str, Any]:
        """Return the chart values for the configured cloud."""
        cloud_config = generate_cloud_config(self.options)

        tolerations = Placement.control_plane_tolerations()
        tolerations.extend(Placement.control_plane_init_tolerations())

        return {
            "commonAnnotations": {
                CONFIGURATION_HASH_ANNOTATION: configuration_hash(cloud_config),
            },
            "cloudConfigContents": cloud_config,
            "tolerations": tolerations,
            "controllerExtraArgs": '{{list "--use-service-account-credentials=false" | toYaml}}',
            "dnsPolicy": "Default",
        }

    def pre_deprovision(self, ctx: ProvisionContext) -> None:
        """Delete load balancer services so their cloud resources are freed.

        Raises ``YieldError`` after triggering deletion so the caller retries
        until none remain.
        """
        client = ctx.cluster_client()

        services = [
            service
            for service in client.list("v1", "Service", "")
            if (service.get("spec") or {}).get("type") == SERVICE_TYPE_LOAD_BALANCER
        ]

        ctx.logger.info(
            "freeing load balancer services before removing cloud controller, remaining=%d",
            len(services),
        )

        if not services:
            return

        for service in services:
            client.delete(service)

        raise YieldError("load balancer services are being deleted")