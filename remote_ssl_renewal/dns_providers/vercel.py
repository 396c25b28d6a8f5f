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
"""Vercel DNS adapter."""
import logging

import httpx

from .. import USER_AGENT
from .. import errors
from . import RecordHandle, split_zone

logger = logging.getLogger(__name__)

VERCEL_API = "https://api.vercel.com"
CHALLENGE_TTL = 60


class VercelDns:
    """Publishes and removes ACME challenge records through the Vercel domains API."""

    def __init__(self, credentials: dict, timeout: float = 30.0, transport: httpx.AsyncBaseTransport = None) -> None:
        """
        Args:
            credentials (dict): The provider credential. `token` is required; `domain` pins the zone records are
                created in and `team_id` scopes requests to a Vercel team.
            timeout (float): Timeout (in seconds) for each API call.
            transport (httpx.AsyncBaseTransport): Overrides the HTTP transport. Used by tests.
        """
        self.zone = credentials.get("domain")
        params = {"teamId": credentials["team_id"]} if credentials.get("team_id") else None
        self.client = httpx.AsyncClient(
            base_url=VERCEL_API,
            headers={"Authorization": f"Bearer {credentials['token']}", "User-Agent": USER_AGENT},
            params=params,
            timeout=timeout,
            transport=transport,
        )

    async def add_challenge_record(self, fqdn: str, value: str) -> RecordHandle:
        """
        Creates a TXT record.

        Args:
            fqdn (str): The fully qualified record name, e.g. `_acme-challenge.a.example.com.`.
            value (str): The TXT value.

        Returns:
            remote_ssl_renewal.dns_providers.RecordHandle: The handle needed to remove the record.

        Raises:
            remote_ssl_renewal.errors.DnsProviderError: When Vercel rejects the request or cannot be reached.
        """
        zone, name = split_zone(fqdn, self.zone)
        payload = {"name": name, "type": "TXT", "value": value, "ttl": CHALLENGE_TTL}

        try:
            response = await self.client.post(f"/v2/domains/{zone}/records", json=payload)
        except httpx.HTTPError as err:
            raise errors.DnsProviderError(f"Failed to add challenge record '{fqdn}': {err}") from err
        if response.is_error:
            raise errors.DnsProviderError(
                f"Failed to add challenge record '{fqdn}'", status=response.status_code, body=response.text
            )

        record_id = response.json()["uid"]
        logger.debug("Added TXT record %s (%s) in zone %s", name, record_id, zone)
        return RecordHandle(zone=zone, record_id=record_id, name=fqdn)

    async def remove_record(self, handle: RecordHandle) -> None:
        """
        Deletes a record created by `add_challenge_record()`.

        Raises:
            remote_ssl_renewal.errors.DnsProviderError: When Vercel rejects the request or cannot be reached.
        """
        try:
            response = await self.client.delete(f"/v2/domains/{handle.zone}/records/{handle.record_id}")
        except httpx.HTTPError as err:
            raise errors.DnsProviderError(f"Failed to delete challenge record '{handle.name}': {err}") from err
        if response.is_error:
            raise errors.DnsProviderError(
                f"Failed to delete challenge record '{handle.name}'", status=response.status_code, body=response.text
            )
        logger.debug("Removed TXT record %s from zone %s", handle.record_id, handle.zone)

    async def aclose(self) -> None:
        """Closes the underlying HTTP client."""
        await self.client.aclose()
