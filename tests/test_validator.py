"""Tests for seed URL validation."""

import pytest

from bookify.errors import ValidationError, ValidationErrorKind
from bookify.net import FetchResult
from bookify.validator import UrlValidator, is_forbidden_host

from conftest import FakeFetcher, FakeResolver, page


def _validator(site=None, resolver=None, **fetcher_kwargs):
    site = site if site is not None else {"https://example.com": page("Example")}
    return UrlValidator(resolver or FakeResolver(), FakeFetcher(site, **fetcher_kwargs))


class TestUrlValidator:
    def test_valid_url_is_returned(self):
        assert _validator().validate("https://example.com") == "https://example.com"

    @pytest.mark.parametrize("url", ["not a url", "", "example.com/docs", "/docs"])
    def test_malformed_url_rejected(self, url):
        with pytest.raises(ValidationError) as exc:
            _validator().validate(url)
        assert exc.value.kind == ValidationErrorKind.MALFORMED_URL

    @pytest.mark.parametrize("url", ["ftp://example.com/file", "file:///etc/passwd"])
    def test_disallowed_scheme_rejected(self, url):
        with pytest.raises(ValidationError) as exc:
            _validator().validate(url)
        assert exc.value.kind == ValidationErrorKind.DISALLOWED_SCHEME

    @pytest.mark.parametrize("host", [
        "127.0.0.1", "10.0.0.1", "192.168.1.1", "172.16.0.1", "172.31.255.255", "localhost",
    ])
    def test_private_hosts_rejected(self, host):
        with pytest.raises(ValidationError) as exc:
            _validator().validate(f"http://{host}/")
        assert exc.value.kind in (ValidationErrorKind.FORBIDDEN_HOST, ValidationErrorKind.FORBIDDEN_IP)

    def test_ipv6_loopback_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _validator().validate("http://[::1]/")
        assert exc.value.kind == ValidationErrorKind.FORBIDDEN_HOST

    def test_host_prefix_check_is_case_insensitive(self):
        assert is_forbidden_host("LOCALHOST")
        assert not is_forbidden_host("172.32.0.1")

    def test_public_name_resolving_to_private_ip_rejected(self):
        resolver = FakeResolver({"internal.example.com": ["93.184.216.34", "192.168.1.1"]})
        with pytest.raises(ValidationError, match="Forbidden IP") as exc:
            _validator(resolver=resolver).validate("https://internal.example.com/")
        assert exc.value.kind == ValidationErrorKind.FORBIDDEN_IP

    def test_loopback_resolution_rejected(self):
        resolver = FakeResolver({"rebind.example.com": ["127.0.0.2"]})
        with pytest.raises(ValidationError) as exc:
            _validator(resolver=resolver).validate("https://rebind.example.com/")
        assert exc.value.kind == ValidationErrorKind.FORBIDDEN_IP

    def test_unresolvable_host_rejected(self):
        resolver = FakeResolver({"nowhere.example.com": None})
        with pytest.raises(ValidationError) as exc:
            _validator(resolver=resolver).validate("https://nowhere.example.com/")
        assert exc.value.kind == ValidationErrorKind.HTTP_FAILURE

    def test_http_error_status_rejected(self):
        with pytest.raises(ValidationError, match="status 404") as exc:
            _validator().validate("https://example.com/missing")
        assert exc.value.kind == ValidationErrorKind.HTTP_FAILURE

    def test_transport_failure_rejected(self):
        validator = _validator(broken={"https://example.com"})
        with pytest.raises(ValidationError) as exc:
            validator.validate("https://example.com")
        assert exc.value.kind == ValidationErrorKind.HTTP_FAILURE

    def test_non_html_content_rejected(self):
        site = {
            "https://example.com/api": FetchResult(
                url="https://example.com/api", status=200, content_type="application/json", text="{}",
            ),
        }
        with pytest.raises(ValidationError) as exc:
            _validator(site).validate("https://example.com/api")
        assert exc.value.kind == ValidationErrorKind.NON_HTML_CONTENT

    def test_final_url_after_redirect_without_fragment(self):
        site = {"https://example.com/docs/": page("Docs")}
        validator = _validator(site, redirects={"https://example.com/docs": "https://example.com/docs/"})
        assert validator.validate("https://example.com/docs#intro") == "https://example.com/docs/"

    def test_forbidden_host_skips_dns_and_http(self):
        fetcher = FakeFetcher({})
        resolver = FakeResolver()
        resolver.resolve = pytest.fail  # must not be reached
        with pytest.raises(ValidationError):
            UrlValidator(resolver, fetcher).validate("http://10.1.2.3/")
        assert fetcher.calls == []
