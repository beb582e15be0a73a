"""CloudStack API wrapper with connection management and call metrics."""

import logging
import time
from typing import Any

import requests
from cs import CloudStack, CloudStackException

from metrics import CLOUDSTACK_API_CALLS, CLOUDSTACK_API_DURATION
from models import (
    AmbiguousMatchError,
    CloudStackAPIError,
    ConfigurationError,
    LoadBalancerRule,
    Network,
    NoMatchError,
    PublicIpAddress,
)
from utils import scoping_params

logger = logging.getLogger(__name__)

# Keys of the endpoint credentials secret
SECRET_API_URL = "api-url"
SECRET_API_KEY = "api-key"
SECRET_SECRET_KEY = "secret-key"
SECRET_VERIFY_SSL = "verify-ssl"

DEFAULT_TIMEOUT = 10


def _error_text(error: CloudStackException) -> str:
    """Extract the CloudStack error text from a cs exception."""
    details = getattr(error, "error", None)
    if isinstance(details, dict) and details.get("errortext"):
        return str(details["errortext"])
    return str(error)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in ("false", "0", "no", "")


class CloudStackClient:
    """Wrapper around the cs library with convenience methods.

    Lookups return ``(value, match_count)`` so callers can tell "nothing",
    "exactly one" and "ambiguous" apart. Account and domain scoping fields
    are only sent when non-empty.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        secret_key: str,
        verify: bool = True,
        timeout: int = DEFAULT_TIMEOUT,
        account: str = "",
        domain_id: str = "",
    ) -> None:
        """Initialize the client.

        Args:
            endpoint: CloudStack API URL
            api_key: API key of the calling user
            secret_key: Secret key of the calling user
            verify: Whether to verify the TLS certificate
            timeout: Request timeout in seconds
            account: Account this client is scoped to, if any
            domain_id: Domain ID this client is scoped to, if any
        """
        self.endpoint = endpoint
        self.verify = verify
        self.timeout = timeout
        self.account = account
        self.domain_id = domain_id
        self._api_key = api_key
        self._secret_key = secret_key
        self._cs: CloudStack | None = None

    @classmethod
    def from_secret_data(
        cls,
        secret_data: dict[str, str],
        client_config: dict[str, Any] | None = None,
    ) -> "CloudStackClient":
        """Build a client from decoded secret data and optional client config.

        Keys of ``client_config`` (``timeout``, ``verify``) take precedence
        over the matching secret values.
        """
        endpoint = secret_data.get(SECRET_API_URL, "")
        api_key = secret_data.get(SECRET_API_KEY, "")
        secret_key = secret_data.get(SECRET_SECRET_KEY, "")
        if not endpoint or not api_key or not secret_key:
            raise ConfigurationError(
                f"secret must contain {SECRET_API_URL}, {SECRET_API_KEY} and {SECRET_SECRET_KEY}"
            )

        verify = _parse_bool(secret_data.get(SECRET_VERIFY_SSL, "true"))
        timeout = DEFAULT_TIMEOUT
        config = client_config or {}
        if "verify" in config:
            verify = _parse_bool(config["verify"])
        if "timeout" in config:
            try:
                timeout = int(config["timeout"])
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"invalid client config timeout: {config['timeout']!r}"
                ) from e

        return cls(endpoint, api_key, secret_key, verify=verify, timeout=timeout)

    @property
    def cs(self) -> CloudStack:
        """Get or create the underlying cs connection."""
        if self._cs is None:
            logger.info("Connecting to CloudStack API: %s", self.endpoint)
            self._cs = CloudStack(
                endpoint=self.endpoint,
                key=self._api_key,
                secret=self._secret_key,
                timeout=self.timeout,
                verify=self.verify,
            )
        return self._cs

    def _call(self, command: str, **params: Any) -> Any:
        """Run a CloudStack command, recording metrics and wrapping errors."""
        start = time.monotonic()
        status = "success"
        try:
            return getattr(self.cs, command)(**params)
        except CloudStackException as e:
            status = "error"
            raise CloudStackAPIError(f"{command} failed: {_error_text(e)}") from e
        except requests.RequestException as e:
            status = "error"
            raise CloudStackAPIError(f"{command} failed: {e}") from e
        finally:
            CLOUDSTACK_API_CALLS.labels(command=command, status=status).inc()
            CLOUDSTACK_API_DURATION.labels(command=command).observe(
                time.monotonic() - start
            )

    # -------------------------------------------------------------------------
    # Account and domain operations
    # -------------------------------------------------------------------------

    def resolve_domain_id(self, domain: str) -> str:
        """Get the ID of a domain given as a path such as 'ROOT/sub'."""
        path = domain.strip("/") or "ROOT"
        if path.upper() != "ROOT" and not path.upper().startswith("ROOT/"):
            path = f"ROOT/{path}"
        name = path.rsplit("/", 1)[-1]

        domains = self._call("listDomains", name=name, listall=True, fetch_list=True)
        matches = [d for d in domains if d.get("path", "").lower() == path.lower()]
        if not matches:
            raise NoMatchError(f"No match found for domain {domain}")
        if len(matches) > 1:
            raise AmbiguousMatchError(
                f"Expected 1 domain with path {path}, but got {len(matches)}"
            )
        return matches[0]["id"]

    def new_client_in_domain_and_account(
        self, domain: str, account: str
    ) -> "CloudStackClient":
        """Get a client that acts as a user of the given account.

        Uses the user's existing API keys, registering new ones if the user
        has none.
        """
        domain_id = self.resolve_domain_id(domain)
        accounts = self._call(
            "listAccounts", name=account, domainid=domain_id, listall=True, fetch_list=True
        )
        if not accounts:
            raise NoMatchError(f"No match found for account {account} in domain {domain}")
        if len(accounts) > 1:
            raise AmbiguousMatchError(
                f"Expected 1 account with name {account}, but got {len(accounts)}"
            )

        users = accounts[0].get("user") or []
        if not users:
            raise CloudStackAPIError(f"Account {account} has no users")
        user_id = users[0]["id"]

        keys = self._call("getUserKeys", id=user_id).get("userkeys") or {}
        if not keys.get("apikey"):
            logger.info("Registering API keys for user %s of account %s", user_id, account)
            keys = self._call("registerUserKeys", id=user_id).get("userkeys") or {}

        return CloudStackClient(
            self.endpoint,
            keys.get("apikey", ""),
            keys.get("secretkey", ""),
            verify=self.verify,
            timeout=self.timeout,
            account=account,
            domain_id=domain_id,
        )

    # -------------------------------------------------------------------------
    # Zone operations
    # -------------------------------------------------------------------------

    def get_zone_id(self, name: str) -> tuple[str, int]:
        """Get a zone ID by exact name."""
        zones = self._call("listZones", name=name, fetch_list=True)
        matches = [z for z in zones if z.get("name") == name]
        return (matches[0]["id"] if len(matches) == 1 else "", len(matches))

    # -------------------------------------------------------------------------
    # Network operations
    # -------------------------------------------------------------------------

    def get_network_id(self, name: str) -> tuple[str, int]:
        """Get a network ID by exact name."""
        networks = self._call("listNetworks", keyword=name, listall=True, fetch_list=True)
        matches = [n for n in networks if n.get("name") == name]
        return (matches[0]["id"] if len(matches) == 1 else "", len(matches))

    def get_network_by_id(self, network_id: str) -> tuple[Network | None, int]:
        """Get network details by ID."""
        networks = self._call("listNetworks", id=network_id, listall=True, fetch_list=True)
        if len(networks) != 1:
            return None, len(networks)
        details = networks[0]
        return (
            Network(
                name=details.get("name", ""),
                id=details.get("id", ""),
                type=details.get("type", ""),
            ),
            1,
        )

    def get_network_offering_id(self, name: str) -> tuple[str, int]:
        """Get a network offering ID by exact name."""
        offerings = self._call("listNetworkOfferings", name=name, fetch_list=True)
        matches = [o for o in offerings if o.get("name") == name]
        return (matches[0]["id"] if len(matches) == 1 else "", len(matches))

    def create_network(
        self,
        name: str,
        offering_id: str,
        zone_id: str,
        account: str = "",
        domain_id: str = "",
    ) -> Network:
        """Create a network, using the name as display text."""
        logger.info("Creating network: %s in zone %s", name, zone_id)
        resp = self._call(
            "createNetwork",
            name=name,
            displaytext=name,
            networkofferingid=offering_id,
            zoneid=zone_id,
            **scoping_params(account, domain_id),
        )
        created = resp.get("network", resp)
        return Network(
            name=created.get("name", name),
            id=created.get("id", ""),
            type=created.get("type", ""),
        )

    def delete_network(self, network_id: str) -> None:
        """Delete a network."""
        logger.info("Deleting network: %s", network_id)
        self._call("deleteNetwork", id=network_id, fetch_result=True)

    # -------------------------------------------------------------------------
    # Public IP address operations
    # -------------------------------------------------------------------------

    def list_public_ip_addresses(
        self,
        account: str = "",
        domain_id: str = "",
        ip_address: str = "",
    ) -> list[PublicIpAddress]:
        """List public IP addresses, allocated or not."""
        params = scoping_params(account, domain_id)
        if ip_address:
            params["ipaddress"] = ip_address
        addresses = self._call(
            "listPublicIpAddresses", allocatedonly=False, fetch_list=True, **params
        )
        return [PublicIpAddress.from_api(a) for a in addresses]

    def associate_ip_address(
        self,
        ip_address: str,
        account: str = "",
        domain_id: str = "",
    ) -> PublicIpAddress:
        """Associate a public IP address with the caller's network."""
        logger.info("Associating public IP address: %s", ip_address)
        resp = self._call(
            "associateIpAddress",
            ipaddress=ip_address,
            fetch_result=True,
            **scoping_params(account, domain_id),
        )
        return PublicIpAddress.from_api(resp.get("ipaddress", resp))

    # -------------------------------------------------------------------------
    # Firewall operations
    # -------------------------------------------------------------------------

    def create_egress_firewall_rule(self, network_id: str, protocol: str) -> None:
        """Create an egress firewall rule on a network."""
        logger.info("Creating %s egress firewall rule on network %s", protocol, network_id)
        self._call(
            "createEgressFirewallRule",
            networkid=network_id,
            protocol=protocol,
            fetch_result=True,
        )

    # -------------------------------------------------------------------------
    # Load balancer operations
    # -------------------------------------------------------------------------

    def list_load_balancer_rules(
        self,
        public_ip_id: str,
        account: str = "",
        domain_id: str = "",
    ) -> list[LoadBalancerRule]:
        """List load balancer rules of a public IP address."""
        rules = self._call(
            "listLoadBalancerRules",
            publicipid=public_ip_id,
            listall=True,
            fetch_list=True,
            **scoping_params(account, domain_id),
        )
        return [LoadBalancerRule.from_api(r) for r in rules]

    def create_load_balancer_rule(
        self,
        name: str,
        algorithm: str,
        private_port: int,
        public_port: int,
        network_id: str,
        public_ip_id: str,
        protocol: str,
        account: str = "",
        domain_id: str = "",
    ) -> LoadBalancerRule:
        """Create a load balancer rule on a public IP address."""
        logger.info(
            "Creating load balancer rule %s on public IP %s (port %d -> %d)",
            name,
            public_ip_id,
            public_port,
            private_port,
        )
        resp = self._call(
            "createLoadBalancerRule",
            name=name,
            algorithm=algorithm,
            privateport=private_port,
            publicport=public_port,
            networkid=network_id,
            publicipid=public_ip_id,
            protocol=protocol,
            fetch_result=True,
            **scoping_params(account, domain_id),
        )
        return LoadBalancerRule.from_api(resp.get("loadbalancer", resp))

    def list_load_balancer_rule_instances(self, rule_id: str) -> list[str]:
        """List the IDs of instances assigned to a load balancer rule."""
        instances = self._call(
            "listLoadBalancerRuleInstances", id=rule_id, fetch_list=True
        )
        return [i.get("id", "") for i in instances]

    def assign_to_load_balancer_rule(self, rule_id: str, instance_ids: list[str]) -> None:
        """Assign instances to a load balancer rule."""
        logger.info("Assigning instances %s to load balancer rule %s", instance_ids, rule_id)
        self._call(
            "assignToLoadBalancerRule",
            id=rule_id,
            virtualmachineids=instance_ids,
            fetch_result=True,
        )

    # -------------------------------------------------------------------------
    # Tag operations
    # -------------------------------------------------------------------------

    def get_tags(self, resource_type: str, resource_id: str) -> dict[str, str]:
        """Get the tags of a resource as a key/value map."""
        tags = self._call(
            "listTags",
            resourcetype=resource_type,
            resourceid=resource_id,
            listall=True,
            fetch_list=True,
        )
        return {t["key"]: t.get("value", "") for t in tags}

    def add_tags(self, resource_type: str, resource_id: str, tags: dict[str, str]) -> None:
        """Add tags to a resource."""
        logger.debug("Adding tags %s to %s %s", sorted(tags), resource_type, resource_id)
        self._call(
            "createTags",
            resourcetype=resource_type,
            resourceids=[resource_id],
            tags=[{"key": k, "value": v} for k, v in tags.items()],
            fetch_result=True,
        )

    def delete_tags(self, resource_type: str, resource_id: str, tags: dict[str, str]) -> None:
        """Delete tags from a resource."""
        logger.debug("Deleting tags %s from %s %s", sorted(tags), resource_type, resource_id)
        self._call(
            "deleteTags",
            resourcetype=resource_type,
            resourceids=[resource_id],
            tags=[{"key": k, "value": v} for k, v in tags.items()],
            fetch_result=True,
        )
