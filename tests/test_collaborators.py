"""
Tests for Collaborators
=======================

Stub gatherers, timeouts, watchlists and the HTTP adapters (against a
local aiohttp server).
"""

import asyncio

import pytest
from aiohttp import test_utils, web

from core.collaborators import (
    AcceptingRegulatorGateway,
    HttpRegulatorGateway,
    HttpScreeningLookup,
    NullScreeningLookup,
    WatchlistScreeningLookup,
    call_with_timeout,
    default_gatherers,
)
from core.exceptions import CollaboratorTimeoutError, RegulatorGatewayError, ScreeningError
from core.models import FilingType, RegulatoryFiling, ReportType


def make_filing() -> RegulatoryFiling:
    return RegulatoryFiling(
        filing_id="fil_1",
        filing_type=FilingType.FINCEN_CTR,
        data={"report_id": "rpt_1"},
    )


class TestDataGatherers:
    """Test the stub payload shapes."""

    def test_one_gatherer_per_report_type(self):
        assert set(default_gatherers()) == set(ReportType)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("report_type,fields", [
        (ReportType.SAR, {"suspicious_activities", "total_amount", "affected_customers"}),
        (ReportType.CTR, {"transactions_over_10k", "total_amount", "transaction_count"}),
        (ReportType.STR, {"suspicious_transactions", "risk_categories"}),
        (ReportType.MIFIR, {"transactions", "lei_code", "total_volume"}),
        (ReportType.AML, {"monitored_transactions", "alerts_triggered", "compliance_actions"}),
        (ReportType.AUDIT, {"audit_events", "compliance_violations", "corrective_actions"}),
        (ReportType.TRANSACTION_MONITORING, {"monitored_transactions", "risk_assessments", "flagged_activities"}),
    ])
    async def test_payload_fields(self, period, report_type, fields):
        payload = await default_gatherers()[report_type].gather("US", period)

        assert fields <= set(payload)
        assert payload["jurisdiction"] == "US"
        assert payload["period"] == period.to_dict()

    @pytest.mark.asyncio
    async def test_payloads_do_not_share_state(self, period):
        gatherer = default_gatherers()[ReportType.SAR]

        first = await gatherer.gather("US", period)
        first["suspicious_activities"].append({"id": "x"})
        second = await gatherer.gather("US", period)

        assert second["suspicious_activities"] == []

    @pytest.mark.asyncio
    async def test_mifir_lei_code(self, period):
        payload = await default_gatherers("LEI123")[ReportType.MIFIR].gather("EU", period)
        assert payload["lei_code"] == "LEI123"


class TestCallWithTimeout:
    @pytest.mark.asyncio
    async def test_no_timeout(self):
        assert await call_with_timeout(asyncio.sleep(0, result="ok"), "x", None) == "ok"

    @pytest.mark.asyncio
    async def test_timeout_elapsed(self):
        with pytest.raises(CollaboratorTimeoutError) as exc_info:
            await call_with_timeout(asyncio.sleep(1.0), "sar_gatherer", 0.01)

        assert exc_info.value.collaborator == "sar_gatherer"
        assert exc_info.value.timeout_seconds == 0.01


class TestScreeningLookups:
    @pytest.mark.asyncio
    async def test_null_lookup_never_matches(self):
        assert await NullScreeningLookup("pep").check("anyone") is None

    @pytest.mark.asyncio
    async def test_watchlist(self):
        lookup = WatchlistScreeningLookup({"cust_1": {"program": "SDGT"}}, name="sanctions")
        lookup.add("cust_2")

        assert await lookup.check("cust_1") == {"customer_id": "cust_1", "list": "sanctions", "program": "SDGT"}
        assert await lookup.check("cust_2") == {"customer_id": "cust_2", "list": "sanctions"}
        assert await lookup.check("cust_3") is None

    @pytest.mark.asyncio
    async def test_accepting_gateway(self):
        receipt = await AcceptingRegulatorGateway().submit(make_filing())
        assert receipt.reference_number is None


class TestHttpAdapters:
    """Test the HTTP adapters against a local server."""

    @pytest.mark.asyncio
    async def test_regulator_gateway_success(self):
        received = []

        async def handle(request):
            received.append((request.match_info["filing_type"], request.headers.get("Authorization"),
                             await request.json()))
            return web.json_response({"reference_number": "BSA-77"})

        app = web.Application()
        app.router.add_post("/filings/{filing_type}", handle)

        async with test_utils.TestServer(app) as server:
            gateway = HttpRegulatorGateway(str(server.make_url("/")), api_key="secret")
            receipt = await gateway.submit(make_filing())

        assert receipt.reference_number == "BSA-77"
        filing_type, auth, body = received[0]
        assert filing_type == "fincen_ctr"
        assert auth == "Bearer secret"
        assert body["filing_id"] == "fil_1"
        assert body["data"] == {"report_id": "rpt_1"}

    @pytest.mark.asyncio
    async def test_regulator_gateway_rejection_carries_status_code(self):
        async def handle(request):
            return web.Response(status=422, text="missing subject")

        app = web.Application()
        app.router.add_post("/filings/{filing_type}", handle)

        async with test_utils.TestServer(app) as server:
            gateway = HttpRegulatorGateway(str(server.make_url("/")))
            with pytest.raises(RegulatorGatewayError) as exc_info:
                await gateway.submit(make_filing())

        assert exc_info.value.code == "422"
        assert "missing subject" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_regulator_gateway_unreachable(self):
        gateway = HttpRegulatorGateway("http://127.0.0.1:1", timeout_seconds=2.0)

        with pytest.raises(RegulatorGatewayError) as exc_info:
            await gateway.submit(make_filing())
        assert exc_info.value.code == "CONNECTION"

    @pytest.mark.asyncio
    async def test_screening_lookup(self):
        async def handle(request):
            customer_id = request.match_info["customer_id"]
            if customer_id == "cust_pep":
                return web.json_response({"position": "Minister"})
            if customer_id == "cust_error":
                return web.Response(status=503)
            return web.Response(status=404)

        app = web.Application()
        app.router.add_get("/pep/{customer_id}", handle)

        async with test_utils.TestServer(app) as server:
            lookup = HttpScreeningLookup(str(server.make_url("/pep")), "pep")

            assert await lookup.check("cust_pep") == {"position": "Minister"}
            assert await lookup.check("cust_clean") is None
            with pytest.raises(ScreeningError) as exc_info:
                await lookup.check("cust_error")

        assert exc_info.value.collaborator == "pep"
