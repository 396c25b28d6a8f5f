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
"""Tests the Vercel DNS adapter against a mocked API."""
import json
import unittest
from unittest import mock

import httpx

from remote_ssl_renewal import errors
from remote_ssl_renewal.dns_providers import RecordHandle, create_dns_provider, split_zone
from remote_ssl_renewal.dns_providers.vercel import VercelDns
from remote_ssl_renewal.models import ProviderConfig
from remote_ssl_renewal.tests import TEST_SUBDOMAIN

FQDN = f"_acme-challenge.{TEST_SUBDOMAIN}."


class TestSplitZone(unittest.TestCase):
    """Checks splitting record names into zone and relative name."""

    def test_split_zone(self):
        """Checks the default two label zone and an explicit zone."""
        self.assertEqual(split_zone(FQDN), ("example.com", "_acme-challenge.cdn"))
        self.assertEqual(split_zone(FQDN, "cdn.example.com."), ("cdn.example.com", "_acme-challenge"))
        self.assertEqual(split_zone("example.com", "example.com"), ("example.com", ""))
        with self.assertRaises(errors.InvalidDomain):
            split_zone(FQDN, "example.org")


class TestVercelDns(unittest.IsolatedAsyncioTestCase):
    """Checks the requests the adapter sends and how it interprets responses."""

    def setUp(self):
        self.requests = []
        self.status = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        """Answers record creation with a uid and deletion with an empty body."""
        self.requests.append(request)
        if self.status >= 400:
            return httpx.Response(self.status, json={"error": {"code": "forbidden", "message": "Not authorized"}})
        if request.method == "POST":
            return httpx.Response(200, json={"uid": "rec_123", "updated": 1})
        return httpx.Response(200, json={})

    def adapter(self, **credentials) -> VercelDns:
        """Builds an adapter bound to the mocked API."""
        adapter = VercelDns({"token": "vercel-token", **credentials}, transport=httpx.MockTransport(self.handler))
        self.addAsyncCleanup(adapter.aclose)
        return adapter

    async def test_add_challenge_record(self):
        """Checks that a short-lived TXT record is created relative to the zone."""
        handle = await self.adapter().add_challenge_record(FQDN, "token-digest")

        request = self.requests[0]
        self.assertEqual(handle, RecordHandle(zone="example.com", record_id="rec_123", name=FQDN))
        self.assertEqual(request.url.path, "/v2/domains/example.com/records")
        self.assertEqual(request.headers["Authorization"], "Bearer vercel-token")
        payload = json.loads(request.content)
        self.assertEqual(payload, {"name": "_acme-challenge.cdn", "type": "TXT", "value": "token-digest", "ttl": 60})

    async def test_team_and_zone(self):
        """Checks that the team is passed on every request and a configured zone is used."""
        await self.adapter(team_id="team_1", domain="cdn.example.com").add_challenge_record(FQDN, "token-digest")

        request = self.requests[0]
        self.assertEqual(request.url.params["teamId"], "team_1")
        self.assertEqual(request.url.path, "/v2/domains/cdn.example.com/records")
        self.assertEqual(json.loads(request.content)["name"], "_acme-challenge")

    async def test_remove_record(self):
        """Checks that records are deleted by the id they were created with."""
        await self.adapter().remove_record(RecordHandle(zone="example.com", record_id="rec_123", name=FQDN))

        self.assertEqual(self.requests[0].method, "DELETE")
        self.assertEqual(self.requests[0].url.path, "/v2/domains/example.com/records/rec_123")

    async def test_rejected(self):
        """Checks that API errors raise DnsProviderError with the status and body."""
        self.status = 403
        adapter = self.adapter()

        with self.assertRaises(errors.DnsProviderError) as context:
            await adapter.add_challenge_record(FQDN, "token-digest")
        self.assertEqual(context.exception.status, 403)
        self.assertIn("Not authorized", context.exception.body)

        with self.assertRaises(errors.DnsProviderError):
            await adapter.remove_record(RecordHandle(zone="example.com", record_id="rec_123", name=FQDN))

    async def test_create_dns_provider(self):
        """Checks adapter selection and the token environment fallback."""
        with mock.patch.dict("os.environ", {"VERCEL_TOKEN": "from-env"}):
            provider = create_dns_provider(ProviderConfig("vercel", "vercel", ""))
        self.addAsyncCleanup(provider.aclose)
        self.assertIsInstance(provider, VercelDns)
        self.assertEqual(provider.client.headers["Authorization"], "Bearer from-env")

        with self.assertRaises(errors.UnsupportedProvider):
            create_dns_provider(ProviderConfig("route53", "Route53", '{"token": "t"}'))


if __name__ == "__main__":
    unittest.main()
