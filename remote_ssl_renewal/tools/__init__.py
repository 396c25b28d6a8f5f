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
"""DNS and polling tools to assist ACME verification."""
import dns.asyncresolver
import dns.exception
import dns.resolver


def backoff(initial: float, factor: float, cap: float):
    """
    Yields an endless capped exponential backoff sequence.

    Args:
        initial (float): The first delay.
        factor (float): The multiplier applied after each delay.
        cap (float): The largest delay ever yielded.

    Examples:
        >>> delays = backoff(0.25, 2, 60)
        >>> [next(delays) for _ in range(10)]
        [0.25, 0.5, 1.0, 2.0, 4.0, 8.0, 16.0, 32.0, 60, 60]
    """
    delay = min(initial, cap)
    while True:
        yield delay
        delay = min(delay * factor, cap)


class DNSQuery:
    """A basic class to make uncached asynchronous DNS queries"""

    def __init__(
        self,
        domain: str,
        rtype: str = "TXT",
        nameservers: list = None,
        round_robin: bool = False,
        lifetime: float = 10.0
    ) -> None:
        """
        Args:
            domain (str): The fully qualified name to query.
            rtype (str): The DNS request type (e.g. `A`, `TXT`, `CNAME`, etc.).
            nameservers (list): Nameservers to query. Defaults to the system's resolvers.
            round_robin (bool): Rotate between each nameserver instead of the default fail-over method.
            lifetime (float): Total time (in seconds) a single query may take.
        """
        self.round_robin = round_robin
        self.type = rtype.upper()
        self.domain = domain
        self.lifetime = lifetime
        self.nameservers = list(nameservers) if nameservers else None
        self.values = []
        self.last_nameserver = ""

    async def resolve(self) -> list:
        """
        Queries the nameservers with our configured object values. A missing name, an empty answer or an
        unreachable server all count as "nothing visible yet" rather than an error.

        Returns:
            list: The answer values. TXT values are returned unquoted with their strings joined.
        """
        resolver = dns.asyncresolver.Resolver()
        resolver.cache = None
        resolver.lifetime = self.lifetime
        if self.nameservers:
            resolver.nameservers = self.nameservers

        try:
            answer = await resolver.resolve(self.domain, self.type)
            self.values = self.__parse_values__(answer)
        except (dns.resolver.NoAnswer, dns.resolver.NXDOMAIN, dns.resolver.NoNameservers, dns.exception.Timeout):
            self.values = []

        # Rotate the nameservers if round robin mode is enabled
        if self.round_robin and self.nameservers and len(self.nameservers) > 1:
            self.last_nameserver = self.nameservers[0]
            self.nameservers = self.nameservers[1:] + [self.last_nameserver]

        return self.values

    def __parse_values__(self, answer) -> list:
        """
        Parses each record of the answer into its value.

        Args:
            answer (dns.resolver.Answer): The answer returned by the resolver.
        Returns:
            list: A list of non-empty values, one per record.
        """
        values = []
        for rdata in answer:
            if self.type == "TXT":
                values.append(b"".join(rdata.strings).decode())
            else:
                values.append(rdata.to_text())
        return list(filter(None, values))
