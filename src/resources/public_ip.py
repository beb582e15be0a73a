"""Public IP address selection and association for the control-plane endpoint."""

import logging

from cloudstack_client import CloudStackClient
from constants import RESOURCE_TYPE_IP_ADDRESS
from models import AllocationError, CloudStackCluster, PublicIpAddress
from resources.tags import TagLedger

logger = logging.getLogger(__name__)


class PublicIPAllocator:
    """Finds or associates the public IP address of a cluster's endpoint."""

    def __init__(
        self,
        client: CloudStackClient,
        tags: TagLedger,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.client = client
        self.tags = tags
        self.log = log or logger

    def resolve_public_ip_details(self, cluster: CloudStackCluster) -> PublicIpAddress:
        """Pick the public IP address to use for the control-plane endpoint.

        Resolution order:
        1. If the endpoint host is set and matches exactly one address, use
           it whether or not it is already allocated.
        2. Otherwise use the first unallocated address found.

        Raises:
            AllocationError: if every address is allocated, or none exist
        """
        requested = cluster.spec.control_plane_endpoint.host
        addresses = self.client.list_public_ip_addresses(
            account=cluster.account,
            domain_id=cluster.status.domain_id,
            ip_address=requested,
        )

        if requested and len(addresses) == 1:
            return addresses[0]
        if addresses:
            for address in addresses:
                if not address.is_allocated:
                    return address
            raise AllocationError("All public IP addresses found were already allocated")
        raise AllocationError("No public addresses found in available networks")

    def associate_public_ip_address(self, cluster: CloudStackCluster) -> PublicIpAddress:
        """Resolve the endpoint's public IP and associate it if it is free.

        An already allocated address is only tagged as used by the cluster.
        """
        address = self.resolve_public_ip_details(cluster)
        cluster.spec.control_plane_endpoint.host = address.address
        cluster.status.public_ip_id = address.id

        if address.is_allocated:
            self.log.info(
                "Public IP %s (%s) already allocated, not associating",
                address.address,
                address.id,
            )
            network_id = address.associated_network_id or address.network_id
            if network_id:
                cluster.status.public_ip_network_id = network_id
            self.tags.add_cluster_tags(
                RESOURCE_TYPE_IP_ADDRESS, address.id, cluster, add_created_by=False
            )
            return address

        associated = self.client.associate_ip_address(
            address.address,
            account=cluster.account,
            domain_id=cluster.status.domain_id,
        )
        cluster.status.public_ip_network_id = (
            associated.associated_network_id or associated.network_id
        )
        self.log.info(
            "Associated public IP %s with network %s",
            address.address,
            cluster.status.public_ip_network_id,
        )
        return associated
