"""Control-plane load balancer rule and its membership."""

import logging

from cloudstack_client import CloudStackClient
from config import OperatorConfig
from constants import LB_ALGORITHM, LB_RULE_NAME, PROTOCOL_TCP
from models import CloudStackCluster, LoadBalancerRule, NoLoadBalancerRuleError

logger = logging.getLogger(__name__)


class LoadBalancerRuleManager:
    """Finds or creates the API server load balancer rule."""

    def __init__(
        self,
        client: CloudStackClient,
        config: OperatorConfig,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.client = client
        self.config = config
        self.log = log or logger

    def endpoint_port(self, cluster: CloudStackCluster) -> int:
        """Public port of the endpoint, or the default API port when unset."""
        return cluster.spec.control_plane_endpoint.port or self.config.default_api_port

    def resolve_load_balancer_rule_details(self, cluster: CloudStackCluster) -> LoadBalancerRule:
        """Find the rule on the cluster's public IP serving the endpoint port.

        Rules are matched on public port, not id.

        Raises:
            NoLoadBalancerRuleError: if no rule serves the port
        """
        rules = self.client.list_load_balancer_rules(
            cluster.status.public_ip_id,
            account=cluster.account,
            domain_id=cluster.status.domain_id,
        )
        port = str(self.endpoint_port(cluster))
        for rule in rules:
            if rule.public_port == port:
                cluster.status.lb_rule_id = rule.id
                return rule
        raise NoLoadBalancerRuleError()

    def get_or_create_load_balancer_rule(self, cluster: CloudStackCluster) -> LoadBalancerRule:
        """Return the existing rule, creating a round-robin TCP rule if there is none."""
        try:
            return self.resolve_load_balancer_rule_details(cluster)
        except NoLoadBalancerRuleError:
            pass

        rule = self.client.create_load_balancer_rule(
            name=LB_RULE_NAME,
            algorithm=LB_ALGORITHM,
            private_port=self.config.default_api_port,
            public_port=self.endpoint_port(cluster),
            network_id=cluster.status.public_ip_network_id,
            public_ip_id=cluster.status.public_ip_id,
            protocol=PROTOCOL_TCP,
            account=cluster.account,
            domain_id=cluster.status.domain_id,
        )
        cluster.status.lb_rule_id = rule.id
        self.log.info("Created load balancer rule %s on port %s", rule.id, rule.public_port)
        return rule

    def assign_vm_to_load_balancer_rule(self, cluster: CloudStackCluster, instance_id: str) -> bool:
        """Add an instance to the cluster's rule unless it is already a member.

        Returns:
            True if the instance was assigned by this call
        """
        rule_id = cluster.status.lb_rule_id
        members = self.client.list_load_balancer_rule_instances(rule_id)
        if instance_id in members:
            return False
        self.client.assign_to_load_balancer_rule(rule_id, [instance_id])
        self.log.info("Assigned instance %s to load balancer rule %s", instance_id, rule_id)
        return True
