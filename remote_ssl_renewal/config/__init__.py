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
"""Tunable settings for renewal runs. Defaults follow Let's Encrypt's published guidance."""
import dataclasses
import json
import os
from typing import Optional

from .. import errors

ENV_PREFIX = "RSR_"


@dataclasses.dataclass(frozen=True)
class Settings:
    """
    Timing and resolver settings shared by every renewal job.

    Attributes:
        renewal_days (int): Renew certificates expiring within this many days.
        staging (bool): Use the CA's staging directory when registering new accounts.
        order_poll_initial (float): First delay (in seconds) between ACME order status polls.
        order_poll_factor (float): Multiplier applied to the order poll delay after each attempt.
        order_poll_cap (float): Largest delay (in seconds) between order polls.
        order_poll_attempts (int): Order polls allowed before giving up.
        dns_poll_initial (float): First delay (in seconds) between DNS propagation checks.
        dns_poll_factor (float): Multiplier applied to the DNS poll delay after each check.
        dns_poll_cap (float): Largest delay (in seconds) between DNS checks.
        dns_poll_deadline (float): Total time (in seconds) to wait for the TXT record to become visible.
        dns_grace (float): Time (in seconds) to wait after the first successful lookup so the remaining
            authoritative servers catch up.
        finalize_timeout (float): Time (in seconds) to wait for the CA to issue after finalizing.
        nameservers (list): DNS servers to query for propagation. `None` uses the system resolver.
        http_timeout (float): Timeout (in seconds) for DNS and endpoint provider API calls.
        max_concurrency (int): Upper bound on concurrent batch jobs. `None` runs every job at once.
    """
    renewal_days: int = 14
    staging: bool = False
    order_poll_initial: float = 0.25
    order_poll_factor: float = 2.0
    order_poll_cap: float = 60.0
    order_poll_attempts: int = 10
    dns_poll_initial: float = 2.0
    dns_poll_factor: float = 2.0
    dns_poll_cap: float = 60.0
    dns_poll_deadline: float = 600.0
    dns_grace: float = 15.0
    nameservers: Optional[list] = None
    finalize_timeout: float = 90.0
    http_timeout: float = 30.0
    max_concurrency: Optional[int] = None

    @property
    def renewal_window(self) -> int:
        """The renewal window in seconds."""
        return self.renewal_days * 24 * 60 * 60

    @staticmethod
    def from_env(environ: dict = None) -> 'Settings':
        """
        Builds settings from `RSR_*` environment variables, falling back to the defaults for anything unset.

        Args:
            environ (dict): The environment to read. Defaults to `os.environ`.

        Returns:
            remote_ssl_renewal.config.Settings: The resulting settings.

        Examples:
            >>> Settings.from_env({"RSR_NAMESERVERS": "8.8.8.8,1.1.1.1", "RSR_MAX_CONCURRENCY": "4"})
            Settings(renewal_days=14, ..., nameservers=['8.8.8.8', '1.1.1.1'], ..., max_concurrency=4)
        """
        environ = os.environ if environ is None else environ
        overrides = {}

        nameservers = environ.get(f"{ENV_PREFIX}NAMESERVERS", "")
        if nameservers.strip():
            overrides["nameservers"] = [ns.strip() for ns in nameservers.split(",") if ns.strip()]
        if environ.get(f"{ENV_PREFIX}RENEWAL_DAYS"):
            overrides["renewal_days"] = int(environ[f"{ENV_PREFIX}RENEWAL_DAYS"])
        if environ.get(f"{ENV_PREFIX}MAX_CONCURRENCY"):
            overrides["max_concurrency"] = int(environ[f"{ENV_PREFIX}MAX_CONCURRENCY"])
        if environ.get(f"{ENV_PREFIX}STAGING"):
            overrides["staging"] = environ[f"{ENV_PREFIX}STAGING"].lower() in ("1", "true", "yes")

        return Settings(**overrides)


def credential_from_env(credential: str, variable: str, environ: dict = None) -> str:
    """
    Returns the stored credential, or the value of `variable` when nothing was stored.

    Args:
        credential (str): The credential blob saved with the provider configuration. May be empty.
        variable (str): The environment variable to fall back to.
        environ (dict): The environment to read. Defaults to `os.environ`.

    Returns:
        str: The credential to use, or an empty string when neither is set.
    """
    environ = os.environ if environ is None else environ
    return credential if credential else environ.get(variable, "")


def parse_provider_type(kind: str, enum_cls: type):
    """
    Looks up a provider variant by its stored name, case-insensitively.

    Args:
        kind (str): The stored provider kind, e.g. `Vercel` or `DigitalOcean`.
        enum_cls (type): The enum of supported variants.

    Raises:
        remote_ssl_renewal.errors.UnsupportedProvider: When no variant matches.
    """
    for member in enum_cls:
        if str(kind).lower() in (member.value.lower(), member.name.lower()):
            return member
    options = [member.value for member in enum_cls]
    raise errors.UnsupportedProvider(f"Unsupported provider '{kind}'. Options {options}")


def load_credentials(credential: str, variable: str, environ: dict = None) -> dict:
    """
    Parses a stored provider credential. A credential without a token falls back to the token in `variable`.

    Args:
        credential (str): The stored JSON credential blob. May be empty.
        variable (str): The environment variable holding the fallback API token.
        environ (dict): The environment to read. Defaults to `os.environ`.

    Returns:
        dict: The credential members. Always contains a non-empty `token`.

    Raises:
        remote_ssl_renewal.errors.InvalidCredentials: When the credential is malformed or no token is available.
    """
    data = {}
    if credential:
        try:
            data = json.loads(credential)
        except ValueError as err:
            raise errors.InvalidCredentials(f"Stored provider credential is not valid JSON: {err}") from err
        if not isinstance(data, dict):
            raise errors.InvalidCredentials("Stored provider credential must be a JSON object.")

    data["token"] = credential_from_env(data.get("token", ""), variable, environ)
    if not data["token"]:
        raise errors.InvalidCredentials(f"No API token stored and ${variable} is not set.")
    return data
