"""Unit tests and testing tools for the remote_ssl_renewal package."""

BASE_DOMAIN = "example.com"
TEST_SUBDOMAIN = f"cdn.{BASE_DOMAIN}"
TEST_EMAIL = f"admin@{BASE_DOMAIN}"
TEST_NAMESERVERS = ["8.8.8.8", "1.1.1.1"]
DAY = 24 * 60 * 60
