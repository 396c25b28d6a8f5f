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
The credential store collaborator. Persistence lives outside this package; anything that implements
`CredentialStore` (a SQLite database, a secrets manager, an in-memory dict in tests) can back the scheduler.
Implementations should acquire a connection per call rather than per job.
"""
import enum
from typing import Protocol

from ..models import Certificate, Subdomain


class StoreKind(str, enum.Enum):
    """The kinds of stored configuration `CredentialStore.get_all()` can list."""
    ACME_ACCOUNTS = "acme_accounts"
    DNS_PROVIDERS = "dns_providers"
    ENDPOINTS = "endpoints"


class CredentialStore(Protocol):
    """What the renewal scheduler reads from and writes to persistent storage."""

    async def get_all(self, kind: StoreKind) -> list:
        """Returns every stored `AcmeAccount` or `ProviderConfig` of `kind`, ordered by name."""

    async def get_subdomain(self, name: str) -> Subdomain:
        """Returns one subdomain. Raises `remote_ssl_renewal.errors.SubdomainNotFound` if it does not exist."""

    async def get_by_subdomain(self, name: str) -> tuple:
        """Returns the `(AcmeAccount, ProviderConfig, ProviderConfig)` linked to a subdomain: account, DNS, endpoint."""

    async def update_certificate(self, subdomain: str, certificate: Certificate, expiry: int) -> None:
        """Stores a newly issued certificate and its expiry for a subdomain."""

    async def list_due_for_renewal(self, threshold: int) -> list:
        """Returns the enabled subdomains whose certificate is missing or expires before `threshold`."""

