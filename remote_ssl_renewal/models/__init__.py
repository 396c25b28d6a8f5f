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
"""Data model shared by the ACME, DNS, deployment and scheduling layers."""
import dataclasses
import json
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization

from .. import errors

PEM_CERT_HEADER = "-----BEGIN CERTIFICATE-----"


@dataclasses.dataclass(frozen=True)
class AcmeAccount:
    """An ACME account registered with a CA. The credential is an opaque JSON blob."""
    name: str
    provider: str
    credential: str
    id: Optional[int] = None


@dataclasses.dataclass(frozen=True)
class ProviderConfig:
    """A configured DNS provider or deployment endpoint. The credential is an opaque JSON blob."""
    name: str
    provider: str
    credential: str
    id: Optional[int] = None


# Both kinds of provider configuration share a shape, they only differ in which variant `provider` names.
DnsProviderConfig = ProviderConfig
EndpointConfig = ProviderConfig


@dataclasses.dataclass(frozen=True)
class Certificate:
    """
    An issued certificate: the PEM chain (leaf first) and the PEM private key it was issued for. The pair is
    immutable and travels together so a key is never deployed without its chain.
    """
    chain: str
    key: str

    def to_blob(self) -> str:
        """
        Serializes the certificate to the opaque text blob kept by the credential store.

        Returns:
            str: A JSON string with `cert` and `key` members.
        """
        return json.dumps({"cert": self.chain, "key": self.key})

    @staticmethod
    def from_blob(blob: str) -> 'Certificate':
        """
        Loads a certificate previously serialized with `to_blob()`.

        Args:
            blob (str): The JSON blob to load.

        Returns:
            remote_ssl_renewal.models.Certificate: The loaded certificate.

        Raises:
            remote_ssl_renewal.errors.CertificateParseError: When the blob is not a serialized certificate.
        """
        try:
            data = json.loads(blob)
            return Certificate(chain=data["cert"], key=data["key"])
        except (TypeError, ValueError, KeyError) as err:
            raise errors.CertificateParseError(f"Stored certificate blob is unreadable: {err}") from err

    def certificates(self) -> list:
        """
        Parses every certificate in the chain.

        Returns:
            list: The `cryptography.x509.Certificate` objects in chain order, leaf first.

        Raises:
            remote_ssl_renewal.errors.CertificateParseError: When the chain is empty or is not valid PEM.
        """
        if not self.chain or PEM_CERT_HEADER not in self.chain:
            raise errors.CertificateParseError("Certificate chain is empty.")

        try:
            return x509.load_pem_x509_certificates(self.chain.encode())
        except ValueError as err:
            raise errors.CertificateParseError(f"Certificate chain could not be parsed: {err}") from err

    @property
    def leaf(self) -> x509.Certificate:
        """The end-entity certificate at the head of the chain."""
        return self.certificates()[0]

    @property
    def leaf_pem(self) -> str:
        """The PEM text of the leaf certificate alone."""
        return self.leaf.public_bytes(serialization.Encoding.PEM).decode()

    @property
    def intermediates_pem(self) -> str:
        """The PEM text of every certificate after the leaf, or an empty string for a bare leaf."""
        return "".join(cert.public_bytes(serialization.Encoding.PEM).decode() for cert in self.certificates()[1:])

    @property
    def expiry(self) -> int:
        """The leaf's not-after time as a unix timestamp."""
        return int(self.leaf.not_valid_after_utc.timestamp())

    @property
    def fingerprint(self) -> str:
        """The SHA-1 fingerprint of the leaf, hex encoded, as endpoint providers report it."""
        return self.leaf.fingerprint(hashes.SHA1()).hex()

    def key_matches(self) -> bool:
        """
        Checks that the private key belongs to the leaf certificate.

        Returns:
            bool: True when the public half of `key` is the leaf's public key.
        """
        try:
            private_key = serialization.load_pem_private_key(self.key.encode(), password=None)
        except (TypeError, ValueError):
            return False

        public_format = serialization.PublicFormat.SubjectPublicKeyInfo
        ours = private_key.public_key().public_bytes(serialization.Encoding.PEM, public_format)
        theirs = self.leaf.public_key().public_bytes(serialization.Encoding.PEM, public_format)
        return ours == theirs


@dataclasses.dataclass(frozen=True)
class Subdomain:
    """A fully qualified name whose certificate is managed, with the configuration it is linked to."""
    name: str
    acme_account: str
    dns_provider: str
    endpoint: str
    last_cert: Optional[str] = None
    expires: Optional[int] = None
    enabled: bool = True

    @property
    def certificate(self) -> Optional[Certificate]:
        """The cached certificate, if one was ever issued."""
        return Certificate.from_blob(self.last_cert) if self.last_cert else None

    def is_due(self, threshold: int) -> bool:
        """
        Checks whether the subdomain should be renewed by a batch run.

        Args:
            threshold (int): The unix timestamp a certificate must outlive to be left alone.

        Returns:
            bool: True when the subdomain is enabled and its certificate is missing or expires before `threshold`.
        """
        if not self.enabled:
            return False
        return self.expires is None or self.expires < threshold

    def relink(self, acme_account: str = None, dns_provider: str = None, endpoint: str = None) -> 'Subdomain':
        """
        Points the subdomain at different configuration. The cached certificate is only dropped when the ACME
        account changes; moving to another DNS provider or endpoint keeps it, so it can still be reinstalled.

        Returns:
            remote_ssl_renewal.models.Subdomain: A copy of this subdomain with the new links applied.
        """
        changes = {}
        if acme_account is not None and acme_account != self.acme_account:
            changes.update(acme_account=acme_account, last_cert=None, expires=None)
        if dns_provider is not None:
            changes["dns_provider"] = dns_provider
        if endpoint is not None:
            changes["endpoint"] = endpoint
        return dataclasses.replace(self, **changes)


@dataclasses.dataclass(frozen=True)
class Challenge:
    """A DNS-01 challenge awaiting proof: the TXT name, the CA's challenge URL and the expected TXT value."""
    dns_name: str
    url: str
    value: str


@dataclasses.dataclass(frozen=True)
class RenewalJob:
    """Everything one renewal needs: the subdomain and its resolved account, DNS and endpoint configuration."""
    subdomain: Subdomain
    account: AcmeAccount
    dns_provider: DnsProviderConfig
    endpoint: EndpointConfig

    @property
    def name(self) -> str:
        """The subdomain being renewed."""
        return self.subdomain.name
