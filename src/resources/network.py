"""Zone network resolution and isolated network creation."""

import logging

from cloudstack_client import CloudStackClient
from config import OperatorConfig
from models import (
    AmbiguousMatchError,
    CloudStackCluster,
    ErrorKind,
    Network,
    NetworkResolutionError,
    NoMatchError,
    OperatorError,
    Zone,
)
from resources.tags import TagLedger
from utils import classify_error

logger = logging.getLogger(__name__)


def uses_isolated_network(cluster: CloudStackCluster) -> bool:
    """True if the cluster uses a single isolated network.

    Single-zone clusters default to an isolated network: the zone's network
    either doesn't exist yet (no type) or exists and is isolated. Assumes
    resolve_network_statuses has run.
    """
    if len(cluster.spec.zones) != 1:
        return False
    zone = cluster.status.zones.get(cluster.spec.zones[0].name)
    if zone is None:
        return True
    return zone.network.type == "" or zone.network.is_isolated


class NetworkResolver:
    """Finds the networks of a cluster's zones, or creates an isolated one."""

    def __init__(
        self,
        client: CloudStackClient,
        tags: TagLedger,
        config: OperatorConfig,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.client = client
        self.tags = tags
        self.config = config
        self.log = log or logger

    def resolve_network(self, net: Network) -> None:
        """Fill in a network's name, id and type from CloudStack.

        The id is looked up by name; if that fails the id already recorded
        on the network is used for the details lookup. Failures of both
        lookups are reported together.

        Raises:
            NetworkResolutionError: if the network could not be resolved
        """
        errors: list[Exception] = []
        net_id = net.id

        try:
            found_id, count = self.client.get_network_id(net.name)
        except OperatorError as e:
            errors.append(OperatorError(f"Could not get Network ID from {net.name}: {e}"))
        else:
            if count == 0:
                errors.append(NoMatchError(f"No match found for network {net.name}"))
            elif count != 1:
                errors.append(
                    AmbiguousMatchError(
                        f"Expected 1 Network with name {net.name}, but got {count}"
                    )
                )
            else:
                net_id = found_id

        if not net_id:
            raise NetworkResolutionError(errors)

        try:
            details, count = self.client.get_network_by_id(net_id)
        except OperatorError as e:
            errors.append(OperatorError(f"Could not get Network by ID {net_id}: {e}"))
            raise NetworkResolutionError(errors) from e
        if details is None or count != 1:
            if count == 0:
                errors.append(NoMatchError(f"No match found for network ID {net_id}"))
            else:
                errors.append(
                    AmbiguousMatchError(
                        f"Expected 1 Network with UUID {net_id}, but got {count}"
                    )
                )
            raise NetworkResolutionError(errors)

        # A renamed network found through its recorded id is fine; an
        # ambiguous or failed name lookup is not.
        if any(classify_error(e) != ErrorKind.NOT_FOUND for e in errors):
            raise NetworkResolutionError(errors)

        net.name = details.name
        net.id = details.id
        net.type = details.type

    def _resolve_zone_id(self, zone: Zone) -> None:
        if zone.id:
            return
        zone_id, count = self.client.get_zone_id(zone.name)
        if count == 0:
            raise NoMatchError(f"No match found for zone {zone.name}")
        if count != 1:
            raise AmbiguousMatchError(f"Expected 1 Zone with name {zone.name}, but got {count}")
        zone.id = zone_id

    @staticmethod
    def sync_zone_statuses(cluster: CloudStackCluster) -> None:
        """Copy spec zones into status, creating entries that are missing.

        A recorded id and type are kept only while the network name in the
        spec is unchanged.
        """
        for spec_zone in cluster.spec.zones:
            status_zone = cluster.status.zones.get(spec_zone.name)
            if status_zone is None:
                cluster.status.zones[spec_zone.name] = Zone(
                    name=spec_zone.name,
                    id=spec_zone.id,
                    network=Network(
                        name=spec_zone.network.name,
                        id=spec_zone.network.id,
                        type=spec_zone.network.type,
                    ),
                )
                continue
            if spec_zone.id:
                status_zone.id = spec_zone.id
            if status_zone.network.name != spec_zone.network.name:
                status_zone.network = Network(
                    name=spec_zone.network.name, id=spec_zone.network.id
                )

    def resolve_network_statuses(self, cluster: CloudStackCluster) -> list[str]:
        """Resolve the network of every spec zone, tagging the ones found.

        A network that does not exist yet is not an error here; deciding
        whether to create it is up to the caller. Every zone is attempted
        before other errors are raised together.

        Returns:
            Names of the zones whose network was not found
        """
        self.sync_zone_statuses(cluster)

        missing: list[str] = []
        errors: list[Exception] = []
        for spec_zone in cluster.spec.zones:
            zone = cluster.status.zones[spec_zone.name]
            # An unknown zone is never a reason to create a network
            try:
                self._resolve_zone_id(zone)
            except OperatorError as e:
                errors.append(e)
                continue
            try:
                self.resolve_network(zone.network)
            except OperatorError as e:
                if classify_error(e) == ErrorKind.NOT_FOUND:
                    self.log.info(
                        "Network %s of zone %s not found", zone.network.name, zone.name
                    )
                    missing.append(zone.name)
                    continue
                errors.append(e)
                continue
            # Pre-existing network: we may use it but must not claim we created it
            self.tags.add_network_cluster_tags(cluster, zone.network, add_created_by=False)

        if errors:
            raise NetworkResolutionError(errors)
        return missing

    def get_offering_id(self) -> str:
        """Get the ID of the configured network offering."""
        offering_id, count = self.client.get_network_offering_id(self.config.network_offering)
        if count == 0:
            raise NoMatchError(
                f"No match found for network offering {self.config.network_offering}"
            )
        if count != 1:
            raise AmbiguousMatchError(
                f"Found {count} network offerings named {self.config.network_offering}"
            )
        return offering_id

    def create_isolated_network(self, cluster: CloudStackCluster) -> Network:
        """Create the isolated network of a single-zone cluster.

        The new network is tagged as created by the operator and its id and
        type are written to the zone status.
        """
        zone = cluster.status.zones[cluster.spec.zones[0].name]
        offering_id = self.get_offering_id()

        created = self.client.create_network(
            zone.network.name,
            offering_id,
            zone.id,
            account=cluster.account,
            domain_id=cluster.status.domain_id,
        )
        zone.network.id = created.id
        zone.network.type = created.type
        self.log.info(
            "Created isolated network %s (%s) in zone %s",
            zone.network.name,
            created.id,
            zone.name,
        )

        self.tags.add_network_cluster_tags(cluster, zone.network, add_created_by=True)
        return zone.network
