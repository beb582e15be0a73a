"""Per failure domain CloudStack credentials.

CloudClientExtension turns the endpoint secret referenced by a failure
domain into CloudStack clients: ``client`` acts with the secret's own keys,
``user`` acts inside the failure domain's account and domain. All resource
calls for a failure domain go through ``user`` so tenants stay isolated.
"""

from collections.abc import Callable
from typing import Any

import yaml
from kubernetes.client import ApiException

from cloudstack_client import CloudStackClient
from constants import CLIENT_CONFIG_KEY
from models import (
    ConfigurationError,
    CredentialError,
    FailureDomainSpec,
    OperatorError,
)
from runner import ReconciliationRunner, Result

ClientFactory = Callable[[dict[str, str], dict[str, Any]], CloudStackClient]


class CloudClientExtension:
    """Credential scoping attached to a ReconciliationRunner."""

    def __init__(self, client_factory: ClientFactory = CloudStackClient.from_secret_data) -> None:
        self._client_factory = client_factory
        self.runner: ReconciliationRunner | None = None
        self.client: CloudStackClient | None = None
        self.user: CloudStackClient | None = None
        self.failure_domain: FailureDomainSpec | None = None

    def register_extension(self, runner: ReconciliationRunner) -> "CloudClientExtension":
        """Bind this extension to the runner whose store and config it uses."""
        self.runner = runner
        return self

    def _require_runner(self) -> ReconciliationRunner:
        if self.runner is None:
            raise OperatorError("CloudClientExtension used before register_extension")
        return self.runner

    def _load_client_config(self, runner: ReconciliationRunner) -> dict[str, Any]:
        """Read the shared client config map; its absence is not an error."""
        config = runner.config
        try:
            data = runner.store.get_config_map(
                config.client_config_namespace, config.client_config_map
            )
        except ApiException as e:
            runner.log.debug(
                "No client config %s/%s (%s), using defaults",
                config.client_config_namespace,
                config.client_config_map,
                e.reason,
            )
            return {}

        raw = data.get(CLIENT_CONFIG_KEY, "")
        if not raw:
            return {}
        try:
            parsed = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            runner.log.debug("Ignoring unparsable client config: %s", e)
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def as_failure_domain_user(self, fd_spec: FailureDomainSpec) -> Result:
        """Set ``client`` and ``user`` from the failure domain's credentials."""
        runner = self._require_runner()
        ref = fd_spec.acs_endpoint

        try:
            secret_data = runner.store.get_secret(ref.namespace, ref.name)
        except ApiException as e:
            raise CredentialError(
                fd_spec.name, f"getting ACSEndpoint secret with ref {ref}: {e.reason}"
            ) from e
        except ValueError as e:
            # Undecodable base64 or non UTF-8 secret data
            raise CredentialError(
                fd_spec.name, f"decoding ACSEndpoint secret with ref {ref}: {e}"
            ) from e

        client_config = self._load_client_config(runner)

        try:
            client = self._client_factory(secret_data, client_config)
        except ConfigurationError as e:
            raise CredentialError(
                fd_spec.name, f"parsing ACSEndpoint secret with ref {ref}: {e}"
            ) from e

        if fd_spec.account:
            try:
                user = client.new_client_in_domain_and_account(
                    fd_spec.domain, fd_spec.account
                )
            except OperatorError as e:
                raise CredentialError(
                    fd_spec.name,
                    f"scoping client to account {fd_spec.account} in domain "
                    f"{fd_spec.domain or 'ROOT'}: {e}",
                ) from e
        else:
            user = client

        self.client = client
        self.user = user
        self.failure_domain = fd_spec
        runner.log.debug("Using CloudStack credentials of failure domain %s", fd_spec.name)
        return Result()
