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
The renewal scheduler. Picks the subdomains that need a certificate, runs one job per subdomain concurrently and
reports which ones failed. A job issues a certificate, persists it, then deploys it.
"""
import asyncio
import dataclasses
import logging
import time
from typing import Callable, Optional

from .. import errors
from ..challenge import DNSChallengeCoordinator
from ..config import Settings
from ..deploy import DeploymentResult, create_deployer
from ..dns_providers import create_dns_provider
from ..events import EventEmitter
from ..issuance import ACMEClient
from ..models import Certificate, RenewalJob, Subdomain
from ..store import CredentialStore

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class JobResult:
    """The outcome of one subdomain's renewal."""
    subdomain: str
    renewed: bool
    message: str
    expiry: Optional[int] = None
    deployment: Optional[DeploymentResult] = None


@dataclasses.dataclass
class BatchResult:
    """
    The aggregate outcome of a batch run: successful jobs, the names of candidates that turned out not to be due,
    and the error each failed job ended with.
    """
    succeeded: list = dataclasses.field(default_factory=list)
    skipped: list = dataclasses.field(default_factory=list)
    failed: dict = dataclasses.field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """True when no job failed."""
        return not self.failed

    @property
    def exit_code(self) -> int:
        """A process exit status: 0 when every job succeeded, 1 otherwise."""
        return 0 if self.ok else 1

    def failure_lines(self) -> list:
        """
        Returns one line per failed subdomain, suitable for printing.

        Examples:
            >>> result.failure_lines()
            ['a.example.com: DnsPropagationTimeout: TXT record ... was not visible after 9 checks (600s).']
        """
        return [f"{name}: {type(error).__name__}: {error}" for name, error in sorted(self.failed.items())]


class RenewalScheduler:
    """Runs renewal jobs against a credential store."""
    # pylint: disable=too-many-arguments,too-many-instance-attributes

    def __init__(
            self,
            store: CredentialStore,
            settings: Settings = None,
            events: EventEmitter = None,
            acme_factory: Callable = ACMEClient.from_account,
            dns_factory: Callable = create_dns_provider,
            deployer_factory: Callable = create_deployer,
            coordinator_factory: Callable = DNSChallengeCoordinator,
            clock: Callable[[], float] = time.time
    ) -> None:
        """
        Args:
            store (remote_ssl_renewal.store.CredentialStore): Source of subdomains and credentials, and the
                destination for issued certificates.
            settings (remote_ssl_renewal.config.Settings): Renewal threshold, concurrency and timing settings.
            events (remote_ssl_renewal.events.EventEmitter): Receives start/step/success/failure events.
            acme_factory (callable): Coroutine function building an `ACMEClient` from an `AcmeAccount`.
            dns_factory (callable): Builds a DNS provider adapter from its configuration.
            deployer_factory (callable): Builds a `DeploymentReconciler` from an endpoint configuration.
            coordinator_factory (callable): Builds a `DNSChallengeCoordinator` around a DNS provider adapter.
            clock (callable): Returns the current unix time.
        """
        self.store = store
        self.settings = settings or Settings()
        self.events = events or EventEmitter()
        self.acme_factory = acme_factory
        self.dns_factory = dns_factory
        self.deployer_factory = deployer_factory
        self.coordinator_factory = coordinator_factory
        self.clock = clock

    def threshold(self) -> int:
        """The unix time a certificate must outlive to be left alone."""
        return int(self.clock()) + self.settings.renewal_window

    async def renew_due(self) -> BatchResult:
        """
        Renews every enabled subdomain whose certificate is missing or expires within the renewal window. Jobs
        run concurrently (bounded by `max_concurrency` when set); a failing job never stops the others.

        Returns:
            remote_ssl_renewal.scheduler.BatchResult: Successful jobs and the error of each failed one.
        """
        threshold = self.threshold()
        candidates = await self.store.list_due_for_renewal(threshold)
        due = [subdomain for subdomain in candidates if subdomain.is_due(threshold)]
        logger.info("%d of %d candidate subdomains are due for renewal", len(due), len(candidates))

        semaphore = asyncio.Semaphore(self.settings.max_concurrency) if self.settings.max_concurrency else None
        outcomes = await asyncio.gather(*(self._run_isolated(subdomain, semaphore) for subdomain in due))

        result = BatchResult(skipped=sorted(subdomain.name for subdomain in candidates if subdomain not in due))
        for subdomain, outcome in zip(due, outcomes):
            if isinstance(outcome, JobResult):
                result.succeeded.append(outcome)
            else:
                result.failed[subdomain.name] = outcome
        for line in result.failure_lines():
            logger.error("Renewal failed for %s", line)
        if result.failed:
            logger.error("%d of %d renewals failed", len(result.failed), len(due))
        return result

    async def _run_isolated(self, subdomain: Subdomain, semaphore: Optional[asyncio.Semaphore]):
        try:
            if semaphore is None:
                return await self.run_job(subdomain)
            async with semaphore:
                return await self.run_job(subdomain)
        except Exception as err:  # pylint: disable=broad-except
            return err

    async def renew(self, name: str, force: bool = False) -> JobResult:
        """
        Renews one subdomain if it was never issued a certificate, its certificate expires within the renewal
        window, or `force` is set. Otherwise nothing is done and the CA is not contacted.

        Args:
            name (str): The subdomain to renew.
            force (bool): Renew regardless of the current certificate's expiry. Mind the CA's rate limits.

        Returns:
            remote_ssl_renewal.scheduler.JobResult: The outcome; `renewed` is False when the certificate was not due.

        Raises:
            remote_ssl_renewal.errors.RenewalError: The error that ended the job.
        """
        subdomain = await self.store.get_subdomain(name)
        if not force and subdomain.expires is not None and subdomain.expires >= self.threshold():
            days = (subdomain.expires - int(self.clock())) // 86400
            message = f"Certificate is not due for renewal (expires in {days} days)"
            self.events.success(name, message)
            return JobResult(subdomain=name, renewed=False, message=message, expiry=subdomain.expires)
        return await self.run_job(subdomain)

    async def resolve_job(self, subdomain: Subdomain) -> RenewalJob:
        """Loads the account, DNS provider and endpoint linked to a subdomain."""
        account, dns_provider, endpoint = await self.store.get_by_subdomain(subdomain.name)
        return RenewalJob(subdomain=subdomain, account=account, dns_provider=dns_provider, endpoint=endpoint)

    async def run_job(self, subdomain: Subdomain) -> JobResult:
        """
        Issues, persists and deploys a certificate for one subdomain. The certificate is persisted before deployment
        starts, so a deployment failure never loses it; `reinstall_certificate()` can retry the deployment alone.

        Raises:
            remote_ssl_renewal.errors.RenewalError: The error that ended the job.
        """
        name = subdomain.name
        self.events.start(name, "Renewing certificate")
        try:
            job = await self.resolve_job(subdomain)
            certificate, expiry = await self.issue(job)

            await self.persist(name, certificate, expiry)
            self.events.step(name, "Saved certificate")

            deployment = await self.deploy(job.endpoint, name, certificate)
        except Exception as err:
            self.events.failure(name, "Renewal failed", error=err)
            raise

        message = f"Certificate renewed and deployed ({deployment.action.value})"
        self.events.success(name, message)
        return JobResult(subdomain=name, renewed=True, message=message, expiry=expiry, deployment=deployment)

    async def issue(self, job: RenewalJob) -> tuple:
        """Runs the ACME order for a job. Returns `(certificate, expiry)`."""
        acme = await self.acme_factory(job.account, settings=self.settings, events=self.events)
        try:
            dns_provider = self.dns_factory(job.dns_provider, settings=self.settings)
            try:
                coordinator = self.coordinator_factory(dns_provider, settings=self.settings, events=self.events)
                return await acme.get_certificate(job.name, coordinator)
            finally:
                await dns_provider.aclose()
        finally:
            await acme.aclose()

    async def persist(self, name: str, certificate: Certificate, expiry: int) -> None:
        """Writes a certificate and its expiry back to the store."""
        if expiry is None:
            raise errors.CertificateParseError(f"Refusing to store a certificate for '{name}' without an expiry.")
        await self.store.update_certificate(name, certificate, expiry)

    async def deploy(self, endpoint, name: str, certificate: Certificate) -> DeploymentResult:
        """Deploys a certificate to the subdomain's endpoint, creating the endpoint if needed."""
        deployer = self.deployer_factory(endpoint, name, settings=self.settings, events=self.events)
        try:
            result = await deployer.deploy_certificate(certificate, endpoint_must_exist=False)
        finally:
            await deployer.aclose()

        if result.cleanup_error:
            self.events.step(name, f"Could not delete superseded certificate {result.previous_certificate_id}")
        return result

    async def reinstall_certificate(self, name: str) -> DeploymentResult:
        """
        Redeploys the certificate already stored for a subdomain without contacting the CA.

        Raises:
            remote_ssl_renewal.errors.CertificateNotIssued: When the subdomain has no stored certificate.
        """
        subdomain = await self.store.get_subdomain(name)
        certificate = subdomain.certificate
        if certificate is None:
            raise errors.CertificateNotIssued(f"'{name}' does not have a certificate yet.")

        _, _, endpoint = await self.store.get_by_subdomain(name)
        self.events.start(name, "Reinstalling stored certificate")
        try:
            result = await self.deploy(endpoint, name, certificate)
        except Exception as err:
            self.events.failure(name, "Reinstall failed", error=err)
            raise
        self.events.success(name, f"Certificate reinstalled ({result.action.value})")
        return result
