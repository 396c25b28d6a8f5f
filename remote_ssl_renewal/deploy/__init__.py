# Copyright 2025 Jared Hendrickson
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
Certificate deployment. An endpoint provider exposes a small set of capabilities (upload a certificate, list, create
and repoint endpoints, delete a certificate); the `DeploymentReconciler` combines them into an idempotent "make the
endpoint serve this certificate" operation that is safe to re-run after a partial failure.
"""
import dataclasses
import datetime
import enum
import logging
from typing import AsyncIterator, Optional, Protocol

from .. import errors
from ..config import Settings, load_credentials, parse_provider_type
from ..events import EventEmitter
from ..models import Certificate, EndpointConfig

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class RemoteEndpoint:
    """An endpoint (e.g. a CDN distribution) as reported by the provider."""
    id: str
    origin: str
    endpoint: str
    ttl: int
    certificate_id: Optional[str]
    custom_domain: Optional[str]


class DeploymentAction(str, enum.Enum):
    """What the reconciler had to do to make the endpoint serve the certificate."""
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclasses.dataclass(frozen=True)
class DeploymentResult:
    """
    The outcome of a deployment. `cleanup_error` is set when the superseded certificate could not be deleted; the
    endpoint still serves the new certificate in that case.
    """
    action: DeploymentAction
    endpoint_id: str
    certificate_id: str
    previous_certificate_id: Optional[str] = None
    cleanup_error: Optional[str] = None


class EndpointApi(Protocol):
    """The capabilities an endpoint provider adapter must offer."""

    async def upload_certificate(self, name: str, certificate: Certificate) -> str:
        """Uploads a certificate and returns its id. Raises `DeploymentConflict` if its fingerprint already exists."""

    async def find_certificate_id(self, name: str) -> str:
        """Returns the id of the certificate stored under `name`."""

    def iter_endpoints(self) -> AsyncIterator[RemoteEndpoint]:
        """Yields every endpoint, fetching further pages as needed."""

    async def update_endpoint(self, endpoint: RemoteEndpoint, certificate_id: str) -> RemoteEndpoint:
        """Repoints an endpoint at another certificate."""

    async def create_endpoint(self, origin: str, custom_domain: str, certificate_id: str) -> RemoteEndpoint:
        """Creates a new endpoint serving `custom_domain` with the given certificate."""

    async def resolve_origin(self, custom_domain: str) -> str:
        """Returns the origin a new endpoint for `custom_domain` should front."""

    async def delete_certificate(self, certificate_id: str) -> None:
        """Deletes a certificate."""

    async def aclose(self) -> None:
        """Releases any connections held by the adapter."""


class EndpointProviderType(str, enum.Enum):
    """Supported endpoint provider kinds, as stored in the `provider` column of an endpoint configuration."""
    DIGITAL_OCEAN = "DigitalOcean"

    @property
    def token_variable(self) -> str:
        """The environment variable holding this provider's API token when none is stored."""
        return {EndpointProviderType.DIGITAL_OCEAN: "DIGITAL_OCEAN_TOKEN"}[self]


class DeploymentReconciler:
    """Makes the endpoint serving one subdomain use a given certificate."""

    def __init__(self, api: EndpointApi, subdomain: str, events: EventEmitter = None) -> None:
        """
        Args:
            api (EndpointApi): The provider adapter.
            subdomain (str): The custom domain the endpoint serves.
            events (remote_ssl_renewal.events.EventEmitter): Receives step events.
        """
        self.api = api
        self.subdomain = subdomain
        self.events = events or EventEmitter()

    async def deploy_certificate(self, certificate: Certificate, endpoint_must_exist: bool = False) -> DeploymentResult:
        """
        Uploads the certificate and points the subdomain's endpoint at it, creating the endpoint when allowed.

        Args:
            certificate (remote_ssl_renewal.models.Certificate): The certificate to serve.
            endpoint_must_exist (bool): Fail instead of creating a new endpoint when none serves the subdomain.

        Returns:
            remote_ssl_renewal.deploy.DeploymentResult: What was done.

        Raises:
            remote_ssl_renewal.errors.DeploymentError: When the provider rejects a request or the key does not
                belong to the chain.
            remote_ssl_renewal.errors.EndpointNotFound: When no endpoint exists and `endpoint_must_exist` is set.
        """
        if not certificate.key_matches():
            raise errors.DeploymentError(f"Private key for '{self.subdomain}' does not match its certificate chain.")

        certificate_id, uploaded = await self.upload(certificate)
        endpoint = await self.find_endpoint()

        if endpoint is None:
            if endpoint_must_exist:
                if uploaded:
                    await self.delete_superseded(certificate_id)
                raise errors.EndpointNotFound(f"No endpoint serves '{self.subdomain}'.")
            try:
                origin = await self.api.resolve_origin(self.subdomain)
                endpoint = await self.api.create_endpoint(origin, self.subdomain, certificate_id)
            except errors.DeploymentError:
                if uploaded:
                    await self.delete_superseded(certificate_id)
                raise
            self.events.step(self.subdomain, f"Created endpoint {endpoint.id} for origin {origin}")
            logger.info("Created endpoint %s for %s with certificate %s", endpoint.id, self.subdomain, certificate_id)
            return DeploymentResult(DeploymentAction.CREATED, endpoint.id, certificate_id)

        if endpoint.certificate_id == certificate_id:
            logger.info("Endpoint %s already serves certificate %s", endpoint.id, certificate_id)
            return DeploymentResult(DeploymentAction.UNCHANGED, endpoint.id, certificate_id)

        await self.api.update_endpoint(endpoint, certificate_id)
        self.events.step(self.subdomain, f"Endpoint {endpoint.id} now serves certificate {certificate_id}")
        logger.info("Repointed endpoint %s from certificate %s to %s", endpoint.id, endpoint.certificate_id,
                    certificate_id)

        cleanup_error = None
        if endpoint.certificate_id:
            cleanup_error = await self.delete_superseded(endpoint.certificate_id)
        return DeploymentResult(
            DeploymentAction.UPDATED, endpoint.id, certificate_id,
            previous_certificate_id=endpoint.certificate_id, cleanup_error=cleanup_error
        )

    async def upload(self, certificate: Certificate) -> tuple:
        """
        Uploads the certificate. When the provider already holds one with the same fingerprint, the existing
        certificate's id is used instead.

        Returns:
            tuple: `(certificate_id, uploaded)` where `uploaded` is False if an existing certificate was reused.
        """
        name = f"{self.subdomain}-{datetime.datetime.now(datetime.timezone.utc):%Y%m%d%H%M%S}"
        try:
            certificate_id = await self.api.upload_certificate(name, certificate)
        except errors.DeploymentConflict as conflict:
            logger.info("Certificate for %s already uploaded as '%s', reusing it", self.subdomain,
                        conflict.existing_name)
            return await self.api.find_certificate_id(conflict.existing_name), False

        self.events.step(self.subdomain, f"Uploaded certificate '{name}'")
        return certificate_id, True

    async def find_endpoint(self) -> Optional[RemoteEndpoint]:
        """Returns the endpoint whose custom domain is the subdomain, if any."""
        async for endpoint in self.api.iter_endpoints():
            if endpoint.custom_domain and endpoint.custom_domain.rstrip(".").lower() == self.subdomain.lower():
                return endpoint
        return None

    async def delete_superseded(self, certificate_id: str) -> Optional[str]:
        """
        Deletes a certificate that is no longer served. Failures are logged and returned, not raised.

        Returns:
            str: The failure description, or None when the certificate was deleted.
        """
        try:
            await self.api.delete_certificate(certificate_id)
        except errors.DeploymentError as err:
            logger.warning("Could not delete superseded certificate %s for %s: %s", certificate_id, self.subdomain,
                           err)
            return str(err)
        logger.debug("Deleted certificate %s", certificate_id)
        return None

    async def aclose(self) -> None:
        """Closes the provider adapter."""
        await self.api.aclose()


def create_deployer(
        config: EndpointConfig,
        subdomain: str,
        settings: Settings = None,
        events: EventEmitter = None,
        transport=None
) -> DeploymentReconciler:
    """
    Builds the reconciler for a stored endpoint configuration.

    Args:
        config (remote_ssl_renewal.models.EndpointConfig): The endpoint configuration.
        subdomain (str): The custom domain to deploy to.
        settings (remote_ssl_renewal.config.Settings): Timeouts to apply to API calls.
        events (remote_ssl_renewal.events.EventEmitter): Receives step events.
        transport (httpx.AsyncBaseTransport): Overrides the HTTP transport. Used by tests.

    Returns:
        remote_ssl_renewal.deploy.DeploymentReconciler: A reconciler bound to the provider's adapter.
    """
    # pylint: disable=import-outside-toplevel
    from .digitalocean import DigitalOcean

    settings = settings or Settings()
    kind = parse_provider_type(config.provider, EndpointProviderType)
    credentials = load_credentials(config.credential, kind.token_variable)

    if kind is EndpointProviderType.DIGITAL_OCEAN:
        api = DigitalOcean(credentials, timeout=settings.http_timeout, transport=transport)
        return DeploymentReconciler(api, subdomain, events=events)
    raise errors.UnsupportedProvider(f"No endpoint adapter for provider '{kind.value}'.")
