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
DNS provider adapters. Each provider kind only needs two capabilities: publish a TXT record and remove it again
using the handle returned when it was published. The kind stored with a provider configuration selects the adapter.
"""
import dataclasses
import enum
from typing import Protocol

from .. import errors
from ..config import Settings, load_credentials, parse_provider_type
from ..models import DnsProviderConfig


@dataclasses.dataclass(frozen=True)
class RecordHandle:
    """Identifies a record published by a DNS provider so the very same record can be removed later."""
    zone: str
    record_id: str
    name: str


class DnsProvider(Protocol):
    """The capabilities the DNS-01 challenge coordinator needs from a DNS vendor."""

    async def add_challenge_record(self, fqdn: str, value: str) -> RecordHandle:
        """Publishes a TXT record at `fqdn` holding `value`."""

    async def remove_record(self, handle: RecordHandle) -> None:
        """Removes a record previously published by `add_challenge_record()`."""

    async def aclose(self) -> None:
        """Releases any connections held by the adapter."""


class DnsProviderType(str, enum.Enum):
    """Supported DNS provider kinds, as stored in the `provider` column of a DNS provider configuration."""
    VERCEL = "Vercel"

    @property
    def token_variable(self) -> str:
        """The environment variable holding this provider's API token when none is stored."""
        return {DnsProviderType.VERCEL: "VERCEL_TOKEN"}[self]


def split_zone(fqdn: str, zone: str = None) -> tuple:
    """
    Splits a record name into the zone it lives in and its name relative to that zone.

    Args:
        fqdn (str): The fully qualified record name, with or without the trailing dot.
        zone (str): The zone to split on. Defaults to the last two labels of `fqdn`.

    Returns:
        tuple: `(zone, relative_name)`.

    Examples:
        >>> split_zone("_acme-challenge.a.example.com.")
        ('example.com', '_acme-challenge.a')
    """
    fqdn = fqdn.rstrip(".")
    zone = zone.rstrip(".") if zone else ".".join(fqdn.split(".")[-2:])
    if fqdn == zone:
        return zone, ""
    if not fqdn.endswith(f".{zone}"):
        raise errors.InvalidDomain(f"Record '{fqdn}' is not inside zone '{zone}'.")
    return zone, fqdn[:-len(zone) - 1]


def create_dns_provider(config: DnsProviderConfig, settings: Settings = None, transport=None) -> DnsProvider:
    """
    Builds the adapter for a stored DNS provider configuration.

    Args:
        config (remote_ssl_renewal.models.DnsProviderConfig): The DNS provider configuration.
        settings (remote_ssl_renewal.config.Settings): Timeouts to apply to API calls.
        transport (httpx.AsyncBaseTransport): Overrides the HTTP transport. Used by tests.

    Returns:
        DnsProvider: The adapter for `config.provider`.
    """
    # pylint: disable=import-outside-toplevel
    from .vercel import VercelDns

    settings = settings or Settings()
    kind = parse_provider_type(config.provider, DnsProviderType)
    credentials = load_credentials(config.credential, kind.token_variable)

    if kind is DnsProviderType.VERCEL:
        return VercelDns(credentials, timeout=settings.http_timeout, transport=transport)
    raise errors.UnsupportedProvider(f"No DNS adapter for provider '{kind.value}'.")
