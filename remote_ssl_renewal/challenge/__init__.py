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
The DNS-01 challenge coordinator: publishes the challenge TXT record, waits until resolvers can see it, tells the CA
the challenge is ready and removes the record again once the caller is done with it.
"""
import asyncio
import contextlib
import logging
import time
from typing import Awaitable, Callable

from .. import errors
from ..config import Settings
from ..dns_providers import DnsProvider, RecordHandle
from ..events import EventEmitter
from ..models import Challenge
from ..tools import DNSQuery, backoff

logger = logging.getLogger(__name__)


class DNSChallengeCoordinator:
    """
    Drives one DNS-01 challenge at a time against a single DNS provider.

    The record stays published for as long as the caller holds the `publish()` context, so the CA can validate it
    while the order is polled. Removal always happens on the way out, whatever the outcome.
    """
    # pylint: disable=too-many-arguments

    def __init__(
            self,
            provider: DnsProvider,
            settings: Settings = None,
            events: EventEmitter = None,
            query_factory: Callable = DNSQuery,
            sleep: Callable[[float], Awaitable] = asyncio.sleep,
            clock: Callable[[], float] = time.monotonic
    ) -> None:
        """
        Args:
            provider (DnsProvider): The adapter used to add and remove the TXT record.
            settings (remote_ssl_renewal.config.Settings): Backoff, deadline, grace period and nameservers.
            events (remote_ssl_renewal.events.EventEmitter): Receives step events.
            query_factory (callable): Builds the `DNSQuery` used for propagation checks.
            sleep (callable): Coroutine used for every wait.
            clock (callable): Monotonic clock used to enforce the propagation deadline.
        """
        self.provider = provider
        self.settings = settings or Settings()
        self.events = events or EventEmitter()
        self.query_factory = query_factory
        self.sleep = sleep
        self.clock = clock

    @contextlib.asynccontextmanager
    async def publish(self, challenge: Challenge, on_ready: Callable[[], Awaitable], subdomain: str = ""):
        """
        Publishes the challenge record, waits for propagation plus the grace period, then awaits `on_ready` so the
        CA is told to validate. The record is removed when the context exits.

        Args:
            challenge (remote_ssl_renewal.models.Challenge): The challenge to prove.
            on_ready (callable): Coroutine function that marks the challenge ready with the CA.
            subdomain (str): Subdomain to report in status events.

        Yields:
            remote_ssl_renewal.dns_providers.RecordHandle: The handle of the published record.

        Raises:
            remote_ssl_renewal.errors.DnsPropagationTimeout: When the record is not visible before the deadline.

        Examples:
            >>> async with coordinator.publish(challenge, answer_challenge):
            ...     await poll_order()
        """
        handle = None
        try:
            handle = await self.provider.add_challenge_record(challenge.dns_name, challenge.value)
            self.events.step(subdomain, f"Published TXT record {challenge.dns_name}")

            await self.wait_for_propagation(challenge)
            self.events.step(subdomain, f"TXT record visible, waiting {self.settings.dns_grace:g}s for other servers")
            await self.sleep(self.settings.dns_grace)

            await on_ready()
            self.events.step(subdomain, "Challenge marked ready with the CA")
            yield handle
        finally:
            if handle is not None:
                await self.cleanup(handle)

    async def wait_for_propagation(self, challenge: Challenge) -> list:
        """
        Polls DNS until the challenge value is visible, backing off exponentially between checks.

        Returns:
            list: The TXT values seen on the successful lookup.

        Raises:
            remote_ssl_renewal.errors.DnsPropagationTimeout: When the deadline passes first.
        """
        query = self.query_factory(
            challenge.dns_name, rtype="TXT", nameservers=self.settings.nameservers, round_robin=True
        )
        delays = backoff(self.settings.dns_poll_initial, self.settings.dns_poll_factor, self.settings.dns_poll_cap)
        deadline = self.clock() + self.settings.dns_poll_deadline
        checks = 0

        while True:
            values = await query.resolve()
            checks += 1
            if challenge.value in values:
                logger.debug("Challenge record %s visible after %d checks", challenge.dns_name, checks)
                return values

            remaining = deadline - self.clock()
            if remaining <= 0:
                msg = (f"TXT record '{challenge.dns_name}' was not visible after {checks} checks "
                       f"({self.settings.dns_poll_deadline:g}s).")
                raise errors.DnsPropagationTimeout(msg)

            delay = min(next(delays), remaining)
            logger.debug("Challenge record %s not visible yet (%s), retrying in %.2fs", challenge.dns_name, values,
                         delay)
            await self.sleep(delay)

    async def cleanup(self, handle: RecordHandle) -> None:
        """
        Removes a published record. Failures are logged, never raised, so the first error of the challenge is the
        one that propagates.
        """
        try:
            await self.provider.remove_record(handle)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Failed to remove challenge record %s; it must be deleted manually", handle.name)
        else:
            logger.debug("Removed challenge record %s", handle.name)
