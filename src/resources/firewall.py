"""Egress firewall rule for the control-plane network."""

import logging

from cloudstack_client import CloudStackClient
from constants import PROTOCOL_TCP
from models import CloudStackCluster, ErrorKind, OperatorError
from utils import classify_error

logger = logging.getLogger(__name__)


class FirewallRuleManager:
    """Opens the egress rule of the network holding the public IP."""

    def __init__(
        self,
        client: CloudStackClient,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.client = client
        self.log = log or logger

    def open_firewall_rules(self, cluster: CloudStackCluster) -> bool:
        """Ensure TCP egress is allowed on the public IP's network.

        Returns:
            True if a rule was created, False if one was already there
        """
        network_id = cluster.status.public_ip_network_id
        try:
            self.client.create_egress_firewall_rule(network_id, PROTOCOL_TCP)
        except OperatorError as e:
            if classify_error(e) != ErrorKind.ALREADY_EXISTS:
                raise
            self.log.debug("Egress firewall rule already present on network %s", network_id)
            return False
        self.log.info("Opened egress firewall rule on network %s", network_id)
        return True
