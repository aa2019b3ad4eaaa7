"""Cloud options resolved from the region service at reconcile time."""

from dataclasses import dataclass, field
from enum import Enum

from kubeprov.resources import ResourceReferenceError


class GPUVendor(str, Enum):
    """GPU vendors known to the provisioners."""

    NVIDIA = "NVIDIA"
    AMD = "AMD"


@dataclass(frozen=True)
class FlavorGPU:
    """GPU capabilities of a flavor.

    Known vendor strings are turned into ``GPUVendor`` members; unknown ones
    are kept as given so consumers can report them.
    """

    vendor: GPUVendor | str
    logical_count: int
    model: str = ""

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "vendor", GPUVendor(self.vendor))
        except ValueError:
            pass


@dataclass(frozen=True)
class Flavor:
    """A compute flavor offered by a region."""

    id: str
    name: str
    cpus: int = 0
    memory: int = 0
    """Memory in GiB."""
    gpu: FlavorGPU | None = None


@dataclass
class ClusterOpenstackProviderOptions:
    """Provider network to provision the cluster on, typically bare metal."""

    network_id: str | None = None
    subnet_id: str | None = None


@dataclass
class ClusterOpenstackOptions:
    """Options acquired from the region service for an OpenStack cluster.

    ``cloud_config`` is a base64 encoded minimal clouds.yaml and ``cloud`` the
    key within it that identifies the configuration to use.
    """

    cloud_config: str
    cloud: str
    external_network_id: str | None = None
    provider_network: ClusterOpenstackProviderOptions | None = None
    server_group_id: str | None = None
    ssh_key_name: str | None = None
    flavors: list[Flavor] = field(default_factory=list)

    def find_flavor(self, flavor_id: str) -> Flavor:
        """Return the first flavor with the given ID."""
        for flavor in self.flavors:
            if flavor.id == flavor_id:
                return flavor
        raise ResourceReferenceError(f"unable to find requested flavor {flavor_id}")