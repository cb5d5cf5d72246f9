"""
Unit tests for the certificate catalog adapter.

Uses respx to mock the DSM listing endpoints.

Test categories:
  - Listing: decoding, order, request shape
  - All-or-nothing: one malformed entry fails the whole listing
  - get: raw payload passthrough
  - API discovery: SYNO.API.Info map decoding
"""

from __future__ import annotations

from datetime import UTC, datetime

import httpx
import pytest
import respx
from railway import ErrorCode, ResultAssertions

from conftest import API_ROOT, DSM_URL, dsm_entry
from dsm_cert_sync.adapters.catalog import HttpCertificateCatalog, certificate_request, decode_certificate
from dsm_cert_sync.adapters.session import DsmSession

ENTRY_URL = f"{API_ROOT}/entry.cgi"
QUERY_URL = f"{API_ROOT}/query.cgi"


@pytest.fixture()
def catalog() -> HttpCertificateCatalog:
    return HttpCertificateCatalog(DsmSession(DSM_URL, timeout=5))


def _listing(*entries: dict[str, object]) -> httpx.Response:
    return httpx.Response(200, json={"success": True, "data": {"certificates": list(entries)}})


class TestCertificateRequest:
    def test_list_and_get_use_crt_sub_api(self) -> None:
        assert certificate_request("list").api == "SYNO.Core.Certificate.CRT"
        assert certificate_request("get").api == "SYNO.Core.Certificate.CRT"

    def test_import_uses_base_api(self) -> None:
        request = certificate_request("import")
        assert request.api == "SYNO.Core.Certificate"
        assert request.path == "entry.cgi"
        assert request.version == 1


class TestListCertificates:
    @respx.mock
    def test_decodes_entries_in_listing_order(self, catalog: HttpCertificateCatalog) -> None:
        """
        GIVEN the DSM lists two certificates
        WHEN list_certificates is called
        THEN both are decoded, in order, with their timestamps as UTC datetimes.
        """
        route = respx.get(ENTRY_URL, params={"method": "list"}).mock(
            return_value=_listing(
                dsm_entry("aaa", "first", is_default=True),
                dsm_entry("bbb", "second", valid_till="Mar 12 01:02:03 2026 GMT"),
            )
        )
        certs = ResultAssertions.assert_success(catalog.list_certificates())

        assert [c.id for c in certs] == ["aaa", "bbb"]
        assert certs[0].description == "first"
        assert certs[0].is_default is True
        assert certs[0].valid_till == datetime(2025, 1, 2, 15, 4, 5, tzinfo=UTC)
        assert certs[1].valid_till == datetime(2026, 3, 12, 1, 2, 3, tzinfo=UTC)
        assert certs[0].issuer.organization == "Let's Encrypt"
        assert certs[0].subject.alt_names == ("nas.example.com",)
        assert route.calls.last.request.url.params["api"] == "SYNO.Core.Certificate.CRT"

    @respx.mock
    def test_empty_listing(self, catalog: HttpCertificateCatalog) -> None:
        respx.get(ENTRY_URL).mock(return_value=_listing())
        assert ResultAssertions.assert_success(catalog.list_certificates()) == []

    @respx.mock
    def test_malformed_timestamp_fails_whole_listing(self, catalog: HttpCertificateCatalog) -> None:
        """
        GIVEN one good entry and one whose valid_till is ISO-8601
        WHEN list_certificates is called
        THEN the listing fails with PROTOCOL_ERROR instead of skipping the entry.
        """
        respx.get(ENTRY_URL).mock(
            return_value=_listing(
                dsm_entry("aaa", "good"),
                dsm_entry("bbb", "bad", valid_till="2025-01-02T15:04:05Z"),
            )
        )
        result = catalog.list_certificates()
        ResultAssertions.assert_failure(result, ErrorCode.PROTOCOL_ERROR)
        ResultAssertions.assert_failure_message_contains(result, "2025-01-02T15:04:05Z")

    @respx.mock
    def test_non_utc_zone_does_not_fail_listing(self, catalog: HttpCertificateCatalog) -> None:
        respx.get(ENTRY_URL).mock(
            return_value=_listing(
                dsm_entry("aaa", "good"),
                dsm_entry("bbb", "cst", valid_from="Oct  4 15:04:05 2024 CST"),
            )
        )
        certs = ResultAssertions.assert_success(catalog.list_certificates())
        assert [c.id for c in certs] == ["aaa", "bbb"]
        assert certs[1].valid_from == datetime(2024, 10, 4, 15, 4, 5, tzinfo=UTC)

    @respx.mock
    def test_missing_certificates_key_fails(self, catalog: HttpCertificateCatalog) -> None:
        respx.get(ENTRY_URL).mock(
            return_value=httpx.Response(200, json={"success": True, "data": {"certs": []}})
        )
        ResultAssertions.assert_failure(catalog.list_certificates(), ErrorCode.PROTOCOL_ERROR)

    @respx.mock
    def test_remote_error_is_propagated(self, catalog: HttpCertificateCatalog) -> None:
        respx.get(ENTRY_URL).mock(
            return_value=httpx.Response(200, json={"success": False, "error": {"code": 119}})
        )
        ResultAssertions.assert_failure(catalog.list_certificates(), ErrorCode.REMOTE_API_ERROR)


class TestDecodeCertificate:
    def test_entry_without_id_fails(self) -> None:
        entry = dsm_entry("x", "desc")
        del entry["id"]
        ResultAssertions.assert_failure(decode_certificate(entry), ErrorCode.PROTOCOL_ERROR)

    def test_non_utc_zone_entry_decodes(self) -> None:
        """
        GIVEN an entry whose valid_till carries a CST zone abbreviation
        WHEN it is decoded
        THEN it decodes (read as UTC) instead of failing the listing.
        """
        entry = dsm_entry("x", "desc", valid_till="Jan  2 15:04:05 2025 CST")
        cert = ResultAssertions.assert_success(decode_certificate(entry))
        assert cert.valid_till == datetime(2025, 1, 2, 15, 4, 5, tzinfo=UTC)

    @pytest.mark.parametrize("alt_names", ["nas.example.com", 7, {"dns": "nas"}])
    def test_non_list_alt_names_fail(self, alt_names: object) -> None:
        entry = dsm_entry("x", "desc")
        entry["subject"] = {"common_name": "nas", "sub_alt_name": alt_names}
        result = decode_certificate(entry)
        ResultAssertions.assert_failure(result, ErrorCode.PROTOCOL_ERROR)
        ResultAssertions.assert_failure_exception(result, TypeError)

    def test_missing_optional_sections_default_empty(self) -> None:
        entry = {
            "id": "x",
            "valid_from": "Jan  1 00:00:00 2024 GMT",
            "valid_till": "Jan  1 00:00:00 2025 GMT",
        }
        cert = ResultAssertions.assert_success(decode_certificate(entry))
        assert cert.description == ""
        assert cert.is_default is False
        assert cert.subject.alt_names == ()


class TestGetCertificate:
    @respx.mock
    def test_passes_id_and_returns_raw_payload(self, catalog: HttpCertificateCatalog) -> None:
        route = respx.get(ENTRY_URL, params={"method": "get"}).mock(
            return_value=httpx.Response(200, json={"success": True, "data": {"anything": [1, 2]}})
        )
        payload = ResultAssertions.assert_success(catalog.get_certificate("aaa"))

        assert payload == {"anything": [1, 2]}
        assert route.calls.last.request.url.params["id"] == "aaa"


class TestListApis:
    @respx.mock
    def test_decodes_api_map(self, catalog: HttpCertificateCatalog) -> None:
        route = respx.get(QUERY_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "success": True,
                    "data": {
                        "SYNO.API.Auth": {"path": "auth.cgi", "minVersion": 1, "maxVersion": 7},
                        "SYNO.Core.Certificate": {"path": "entry.cgi", "minVersion": 1, "maxVersion": 1},
                    },
                },
            )
        )
        apis = ResultAssertions.assert_success(catalog.list_apis())

        assert [a.name for a in apis] == ["SYNO.API.Auth", "SYNO.Core.Certificate"]
        assert apis[0].path == "auth.cgi"
        assert apis[0].max_version == 7
        assert route.calls.last.request.url.params["query"] == "all"
