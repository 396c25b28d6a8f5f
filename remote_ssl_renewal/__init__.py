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
remote_ssl_renewal keeps TLS certificates for subdomains served by remote endpoints (such as a CDN) current. It issues
certificates from an ACME CA using the DNS-01 challenge, publishes the challenge records through a DNS provider's API,
stores the result and deploys it to the endpoint serving the subdomain. Certificates close to expiry are renewed in
concurrent batches where one failing subdomain never holds back the others.
"""
# Constants and Variables
__version__ = "1.0.0"
DNS_LABEL = '_acme-challenge'
USER_AGENT = f"remote-ssl-renewal/{__version__}"
__pdoc__ = {"tests": False}    # Excludes 'tests' submodule from documentation

# pylint: disable=wrong-import-position
from . import errors
from .config import Settings
from .events import EventEmitter, EventKind, StatusEvent, logging_listener
from .models import AcmeAccount, Certificate, ProviderConfig, Subdomain
from .challenge import DNSChallengeCoordinator
from .issuance import ACMEClient, AcmeProvider, load_account, register_account
from .deploy import DeploymentReconciler, create_deployer
from .dns_providers import create_dns_provider
from .scheduler import BatchResult, JobResult, RenewalScheduler
