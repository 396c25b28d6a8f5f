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
"""Custom exception classes for remote_ssl_renewal."""


class RenewalError(Exception):
    """Base class for every error raised while issuing or deploying a certificate"""
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TransientProtocolError(RenewalError):
    """Error occurs when a network call fails in a way that is worth retrying (connection reset, 5xx, etc.)"""


class UnsupportedChallenge(RenewalError):
    """Error occurs when a pending authorization does not offer the DNS-01 challenge"""


class ChallengeTimeout(RenewalError):
    """Error occurs when the ACME order does not settle within the allowed number of poll attempts"""


class DnsPropagationTimeout(RenewalError):
    """Error occurs when the challenge TXT record never becomes visible before the propagation deadline"""


class ChallengeRejected(RenewalError):
    """Error occurs when the CA declares the order or one of its authorizations invalid"""
    def __init__(self, message: str, detail: str = None) -> None:
        super().__init__(message)
        self.detail = detail


class CertificateParseError(RenewalError):
    """Error occurs when the issued certificate chain is empty or cannot be parsed"""


class DeploymentConflict(RenewalError):
    """Error occurs when the endpoint provider already holds a certificate with the same fingerprint"""
    def __init__(self, message: str, existing_name: str) -> None:
        super().__init__(message)
        self.existing_name = existing_name


class DeploymentError(RenewalError):
    """Error occurs when the endpoint provider rejects a request"""
    def __init__(self, message: str, status: int = None, body: str = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.message} (HTTP {self.status}: {self.body})"


class EndpointNotFound(RenewalError):
    """Error occurs when no endpoint serves the subdomain and creating one is not allowed"""


class DnsProviderError(RenewalError):
    """Error occurs when the DNS provider rejects a record change"""
    def __init__(self, message: str, status: int = None, body: str = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class InvalidDomain(RenewalError):
    """Error occurs when a subdomain name is not a valid fully qualified domain name"""


class InvalidKeyType(RenewalError):
    """Error occurs when the requested private key type is unsupported"""


class InvalidAccount(RenewalError):
    """Error occurs when the stored ACME account credential cannot be loaded"""


class InvalidEmail(RenewalError):
    """Error occurs when registering an ACME account with an invalid email address"""


class InvalidCredentials(RenewalError):
    """Error occurs when a provider credential is missing or malformed"""


class UnsupportedProvider(RenewalError):
    """Error occurs when a stored provider kind has no matching adapter"""


class SubdomainNotFound(RenewalError):
    """Error occurs when the requested subdomain does not exist in the credential store"""


class CertificateNotIssued(RenewalError):
    """Error occurs when a cached certificate is required but the subdomain has never been issued one"""
