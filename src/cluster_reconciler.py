"""Reconciliation of a CloudStackCluster's infrastructure.

Composes the failure domain, credential and resource components into the
ordered passes run by the kopf handlers. Every step is idempotent: a pass
interrupted anywhere is completed by the next one, using the status fields
already recorded on the cluster.
"""

from credentials import CloudClientExtension
from models import (
    CredentialError,
    FailureDomainSpec,
    NoMatchError,
    Phase,
)
from resources.failure_domain import FailureDomainManager
from resources.firewall import FirewallRuleManager
from resources.load_balancer import LoadBalancerRuleManager
from resources.network import NetworkResolver, uses_isolated_network
from resources.public_ip import PublicIPAllocator
from resources.tags import TagLedger
from runner import ReconciliationRunner, Result, run_steps
from utils import now_iso


class ClusterReconciliation:
    """One reconcile of one cluster, driven through a ReconciliationRunner."""

    def __init__(self, runner: ReconciliationRunner, ext: CloudClientExtension) -> None:
        self.runner = runner
        self.cluster = runner.cluster
        self.ext: CloudClientExtension = runner.register(ext)
        self.failure_domains = FailureDomainManager(runner)

        self.tags: TagLedger | None = None
        self.networks: NetworkResolver | None = None
        self.public_ips: PublicIPAllocator | None = None
        self.firewall: FirewallRuleManager | None = None
        self.load_balancer: LoadBalancerRuleManager | None = None

        self._missing_zones: list[str] = []

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _create_failure_domains(self) -> Result:
        return self.failure_domains.create_failure_domains(
            self.cluster.spec.failure_domains
        )

    def _prune_failure_domains(self) -> Result:
        items, result = self.failure_domains.get_failure_domains_and_requeue_if_missing()
        if result.should_return:
            return result
        self.failure_domains.remove_extraneous_failure_domains(items)
        return Result()

    def _control_plane_failure_domain(self) -> FailureDomainSpec | None:
        fds = self.cluster.spec.failure_domains
        return fds[0] if fds else None

    def _use_credentials(self, fd_spec: FailureDomainSpec | None = None) -> Result:
        """Scope cloud calls to a failure domain and build the components."""
        fd_spec = fd_spec or self._control_plane_failure_domain()
        if fd_spec is None:
            return self.runner.requeue_with_message(
                "no failure domains in cluster spec, requeueing"
            )
        result = self.ext.as_failure_domain_user(fd_spec)
        if result.should_return:
            return result

        user = self.ext.user
        if user.domain_id:
            self.cluster.status.domain_id = user.domain_id

        config = self.runner.config
        log = self.runner.log
        self.tags = TagLedger(user, config, log)
        self.networks = NetworkResolver(user, self.tags, config, log)
        self.public_ips = PublicIPAllocator(user, self.tags, log)
        self.firewall = FirewallRuleManager(user, log)
        self.load_balancer = LoadBalancerRuleManager(user, config, log)
        return result

    def _resolve_networks(self) -> None:
        self._missing_zones = self.networks.resolve_network_statuses(self.cluster)

    def _ensure_network(self) -> None:
        if not self._missing_zones:
            return
        if uses_isolated_network(self.cluster):
            self.networks.create_isolated_network(self.cluster)
            self._missing_zones = []
            return
        # Shared networks are never created by the operator
        raise NoMatchError(
            "No match found for networks of zones " + ", ".join(self._missing_zones)
        )

    def _associate_public_ip(self) -> None:
        self.public_ips.associate_public_ip_address(self.cluster)
        endpoint = self.cluster.spec.control_plane_endpoint
        if not endpoint.port:
            endpoint.port = self.runner.config.default_api_port

    def _open_firewall(self) -> None:
        self.firewall.open_firewall_rules(self.cluster)

    def _ensure_load_balancer_rule(self) -> None:
        self.load_balancer.get_or_create_load_balancer_rule(self.cluster)

    def _isolated_network_steps(self) -> Result:
        if not uses_isolated_network(self.cluster):
            self.runner.log.debug(
                "Cluster %s uses shared networks, skipping endpoint setup",
                self.cluster.name,
            )
            return Result()
        return run_steps(
            self._associate_public_ip,
            self._open_firewall,
            self._ensure_load_balancer_rule,
        )

    # -------------------------------------------------------------------------
    # Passes
    # -------------------------------------------------------------------------

    def reconcile(self) -> Result:
        """Bring the cluster's remote infrastructure in line with its spec."""
        self.cluster.status.phase = Phase.PROVISIONING
        result = run_steps(
            self._create_failure_domains,
            self._prune_failure_domains,
            self._use_credentials,
            self._resolve_networks,
            self._ensure_network,
            self._isolated_network_steps,
        )
        if result.should_return:
            return result
        self.cluster.status.phase = Phase.READY
        self.cluster.status.last_sync_time = now_iso()
        return result

    def reconcile_delete(self) -> Result:
        """Release the cluster's claim on its zone networks.

        Networks are destroyed only once no cluster claims them and they
        were created by the operator. Failure domains are owned by the
        cluster and are removed by Kubernetes garbage collection.
        """
        self.cluster.status.phase = Phase.DELETING
        if self._control_plane_failure_domain() is None:
            self.runner.log.info(
                "Cluster %s has no failure domains, nothing to release",
                self.cluster.name,
            )
            return Result()

        result = self._use_credentials()
        if result.should_return:
            return result

        for zone in self.cluster.status.zones.values():
            if not zone.network.id:
                continue
            self.tags.remove_cluster_tag_from_network(self.cluster, zone.network)
            self.tags.delete_network_if_not_in_use(zone.network)
        return Result()

    def assign_instance(self, instance_id: str, fd_name: str = "") -> Result:
        """Add a control-plane instance to the cluster's load balancer rule."""
        fd_spec = None
        if fd_name:
            fd_spec = self.cluster.failure_domain(fd_name)
            if fd_spec is None:
                raise CredentialError(fd_name, "not listed in cluster spec")

        result = self._use_credentials(fd_spec)
        if result.should_return:
            return result

        if not uses_isolated_network(self.cluster):
            return Result()
        if not self.cluster.status.lb_rule_id:
            return self.runner.requeue_with_message(
                f"load balancer rule of cluster {self.cluster.name} not ready, requeueing"
            )
        self.load_balancer.assign_vm_to_load_balancer_rule(self.cluster, instance_id)
        return Result()
