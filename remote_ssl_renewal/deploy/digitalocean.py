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
"""DigitalOcean CDN endpoint adapter."""
import json
import logging
import re
from typing import AsyncIterator

import httpx

from .. import USER_AGENT
from .. import errors
from ..models import Certificate
from . import RemoteEndpoint

logger = logging.getLogger(__name__)

DIGITAL_OCEAN_API = "https://api.digitalocean.com"
PAGE_SIZE = 200
DEFAULT_TTL = 3600

# The duplicate-upload error names the certificate already holding the fingerprint, quoted or as the last word
_CONFLICT_NAME_PATTERNS = (
    re.compile(r"fingerprint.*?already exists.*?[\"'](?P<name>[^\"']+)[\"']", re.IGNORECASE | re.DOTALL),
    re.compile(r"fingerprint.*?already exists.*?(?:name|as)[:\s]+(?P<name>[\w.\-]+)", re.IGNORECASE | re.DOTALL),
)


def parse_conflict_name(message: str) -> str:
    """
    Extracts the existing certificate's name from a duplicate-fingerprint upload error.

    Args:
        message (str): The `message` member of the error response.

    Returns:
        str: The existing certificate's name, or None when `message` is not a duplicate-fingerprint error.

    Examples:
        >>> parse_conflict_name('certificate with the same SHA-1 fingerprint already exists: "a-20250101"')
        'a-20250101'
    """
    for pattern in _CONFLICT_NAME_PATTERNS:
        match = pattern.search(message or "")
        if match:
            return match.group("name")
    return None


def _endpoint_from_json(data: dict) -> RemoteEndpoint:
    return RemoteEndpoint(
        id=data["id"],
        origin=data.get("origin", ""),
        endpoint=data.get("endpoint", ""),
        ttl=data.get("ttl", DEFAULT_TTL),
        certificate_id=data.get("certificate_id") or None,
        custom_domain=data.get("custom_domain") or None,
    )


class DigitalOcean:
    """Manages certificates and CDN endpoints through the DigitalOcean v2 API."""

    def __init__(self, credentials: dict, timeout: float = 30.0, transport: httpx.AsyncBaseTransport = None) -> None:
        """
        Args:
            credentials (dict): The provider credential. `token` is required; `origin` (or an `origins` mapping keyed
                by subdomain) names the origin new endpoints are created for.
            timeout (float): Timeout (in seconds) for each API call.
            transport (httpx.AsyncBaseTransport): Overrides the HTTP transport. Used by tests.
        """
        self.origin = credentials.get("origin")
        self.origins = credentials.get("origins") or {}
        self.client = httpx.AsyncClient(
            base_url=DIGITAL_OCEAN_API,
            headers={"Authorization": f"Bearer {credentials['token']}", "User-Agent": USER_AGENT},
            timeout=timeout,
            transport=transport,
        )

    async def request(self, method: str, path: str, action: str, **kwargs) -> httpx.Response:
        """
        Sends an API request.

        Raises:
            remote_ssl_renewal.errors.DeploymentError: On transport failures and error responses, with the status
                and body of the response when there was one.
        """
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as err:
            raise errors.DeploymentError(f"Failed to {action}: {err}") from err
        if response.is_error:
            raise errors.DeploymentError(f"Failed to {action}", status=response.status_code, body=response.text)
        return response

    async def paginate(self, path: str, key: str, action: str) -> AsyncIterator[dict]:
        """Yields every item of a paginated collection, following `links.pages.next` until it is absent."""
        page = 1
        while True:
            response = await self.request("GET", path, action, params={"page": page, "per_page": PAGE_SIZE})
            body = response.json()
            for item in body.get(key, []):
                yield item
            if not body.get("links", {}).get("pages", {}).get("next"):
                return
            page += 1

    async def upload_certificate(self, name: str, certificate: Certificate) -> str:
        """
        Uploads a custom certificate.

        Returns:
            str: The new certificate's id.

        Raises:
            remote_ssl_renewal.errors.DeploymentConflict: When a certificate with the same fingerprint exists.
            remote_ssl_renewal.errors.DeploymentError: When the upload is otherwise rejected.
        """
        payload = {
            "name": name,
            "type": "custom",
            "private_key": certificate.key,
            "leaf_certificate": certificate.leaf_pem,
        }
        intermediates = certificate.intermediates_pem
        if intermediates:
            payload["certificate_chain"] = intermediates

        try:
            response = await self.request("POST", "/v2/certificates", "upload certificate", json=payload)
        except errors.DeploymentError as err:
            existing_name = self._conflicting_name(err)
            if existing_name is None:
                raise
            raise errors.DeploymentConflict(
                f"Certificate already uploaded as '{existing_name}'", existing_name=existing_name
            ) from err

        certificate_id = response.json()["certificate"]["id"]
        logger.debug("Uploaded certificate '%s' as %s", name, certificate_id)
        return certificate_id

    @staticmethod
    def _conflicting_name(err: errors.DeploymentError) -> str:
        if err.status not in (409, 422) or not err.body:
            return None
        try:
            message = json.loads(err.body).get("message", "")
        except (ValueError, AttributeError):
            message = err.body
        return parse_conflict_name(message)

    async def find_certificate_id(self, name: str) -> str:
        """
        Looks up a certificate by name.

        Raises:
            remote_ssl_renewal.errors.DeploymentError: When no certificate has that name.
        """
        async for certificate in self.paginate("/v2/certificates", "certificates", "list certificates"):
            if certificate.get("name") == name:
                return certificate["id"]
        raise errors.DeploymentError(f"Certificate '{name}' reported as a duplicate but not found")

    async def iter_endpoints(self) -> AsyncIterator[RemoteEndpoint]:
        """Yields every CDN endpoint on the account."""
        async for endpoint in self.paginate("/v2/cdn/endpoints", "endpoints", "list CDN endpoints"):
            yield _endpoint_from_json(endpoint)

    async def update_endpoint(self, endpoint: RemoteEndpoint, certificate_id: str) -> RemoteEndpoint:
        """Repoints an endpoint at another certificate. Every writable field is resent, as the API requires."""
        payload = {
            "ttl": endpoint.ttl,
            "certificate_id": certificate_id,
            "custom_domain": endpoint.custom_domain,
        }
        response = await self.request("PUT", f"/v2/cdn/endpoints/{endpoint.id}", "update CDN endpoint", json=payload)
        return _endpoint_from_json(response.json()["endpoint"])

    async def create_endpoint(self, origin: str, custom_domain: str, certificate_id: str) -> RemoteEndpoint:
        """Creates a CDN endpoint for `origin` serving `custom_domain`."""
        payload = {
            "origin": origin,
            "ttl": DEFAULT_TTL,
            "certificate_id": certificate_id,
            "custom_domain": custom_domain,
        }
        response = await self.request("POST", "/v2/cdn/endpoints", "create CDN endpoint", json=payload)
        return _endpoint_from_json(response.json()["endpoint"])

    async def resolve_origin(self, custom_domain: str) -> str:
        """
        Returns the configured origin for a new endpoint.

        Raises:
            remote_ssl_renewal.errors.DeploymentError: When no origin is configured for `custom_domain`.
        """
        origin = self.origins.get(custom_domain) or self.origin
        if not origin:
            raise errors.DeploymentError(f"No origin configured to create an endpoint for '{custom_domain}'")
        return origin

    async def delete_certificate(self, certificate_id: str) -> None:
        """Deletes a certificate."""
        await self.request("DELETE", f"/v2/certificates/{certificate_id}", "delete certificate")

    async def aclose(self) -> None:
        """Closes the underlying HTTP client."""
        await self.client.aclose()
