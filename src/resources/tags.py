"""Ownership bookkeeping with CloudStack tags.

CloudStack has no native "owned by" relation, so ownership is recorded as
tags on the resource itself:

- one ownership tag per cluster, ``<prefix><cluster uid>``, present while
  that cluster uses the resource;
- a created-by tag, present only on resources this operator created.

A resource may be destroyed only when no ownership tags remain *and* it
carries the created-by tag.
"""

import logging

from cloudstack_client import CloudStackClient
from config import OperatorConfig
from constants import RESOURCE_TYPE_NETWORK
from metrics import NETWORKS_DESTROYED
from models import CloudStackCluster, Network

logger = logging.getLogger(__name__)

_TAG_VALUE = "1"


class TagLedger:
    """Computes, applies and inspects ownership tags."""

    def __init__(
        self,
        client: CloudStackClient,
        config: OperatorConfig,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.client = client
        self.config = config
        self.log = log or logger

    def cluster_tag_name(self, cluster: CloudStackCluster) -> str:
        """Ownership tag key of a cluster."""
        return f"{self.config.cluster_tag_prefix}{cluster.uid}"

    def add_cluster_tags(
        self,
        resource_type: str,
        resource_id: str,
        cluster: CloudStackCluster,
        add_created_by: bool,
    ) -> dict[str, str]:
        """Tag a resource as used by the cluster, and optionally as created by us.

        Only tags not already present are applied, so repeating the call
        applies nothing.

        Returns:
            The tags that were applied by this call
        """
        existing = self.client.get_tags(resource_type, resource_id)
        new_tags: dict[str, str] = {}

        cluster_tag = self.cluster_tag_name(cluster)
        if not existing.get(cluster_tag):
            new_tags[cluster_tag] = _TAG_VALUE
        if add_created_by and not existing.get(self.config.created_by_tag):
            new_tags[self.config.created_by_tag] = _TAG_VALUE

        if new_tags:
            self.client.add_tags(resource_type, resource_id, new_tags)
            self.log.info(
                "Tagged %s %s with %s", resource_type, resource_id, sorted(new_tags)
            )
        return new_tags

    def add_network_cluster_tags(
        self, cluster: CloudStackCluster, net: Network, add_created_by: bool
    ) -> dict[str, str]:
        return self.add_cluster_tags(RESOURCE_TYPE_NETWORK, net.id, cluster, add_created_by)

    def remove_cluster_tag(
        self, resource_type: str, resource_id: str, cluster: CloudStackCluster
    ) -> bool:
        """Remove this cluster's ownership tag, leaving all other tags alone.

        Returns:
            True if a tag was removed
        """
        tags = self.client.get_tags(resource_type, resource_id)
        cluster_tag = self.cluster_tag_name(cluster)
        value = tags.get(cluster_tag)
        if not value:
            return False
        self.client.delete_tags(resource_type, resource_id, {cluster_tag: value})
        self.log.info("Removed tag %s from %s %s", cluster_tag, resource_type, resource_id)
        return True

    def remove_cluster_tag_from_network(self, cluster: CloudStackCluster, net: Network) -> bool:
        return self.remove_cluster_tag(RESOURCE_TYPE_NETWORK, net.id, cluster)

    def count_cluster_tags(self, tags: dict[str, str]) -> int:
        """Number of ownership tags, whichever cluster they belong to."""
        return sum(1 for key in tags if key.startswith(self.config.cluster_tag_prefix))

    def delete_network_if_not_in_use(self, net: Network) -> bool:
        """Destroy a network no cluster uses any more, if we created it.

        A network without the created-by tag is never destroyed, even when
        no ownership tags remain.

        Returns:
            True if the network was destroyed
        """
        tags = self.client.get_tags(RESOURCE_TYPE_NETWORK, net.id)
        owners = self.count_cluster_tags(tags)
        created_by_us = bool(tags.get(self.config.created_by_tag))

        if owners == 0 and created_by_us:
            self.log.info("Deleting network %s (%s): no longer in use", net.name, net.id)
            self.client.delete_network(net.id)
            NETWORKS_DESTROYED.inc()
            return True

        self.log.debug(
            "Keeping network %s (%s): %d owner tag(s), created by operator: %s",
            net.name,
            net.id,
            owners,
            created_by_us,
        )
        return False
