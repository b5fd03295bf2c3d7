"""Tests for the reconciliation engine."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import httpx
import pytest

from conftest import FakeBmv, FakeClassifier, FakeKonzertmeister, make_activity, make_appointment
from km_bmv_sync.clients.base import ClientError
from km_bmv_sync.sync.engine import SyncEngine, SyncResult, run_sync, select_new_appointments
from km_bmv_sync.sync.transform import ActivityTransformer


def make_engine(bmv: FakeBmv, km: FakeKonzertmeister, **kwargs) -> SyncEngine:
    return SyncEngine(bmv, km, ActivityTransformer(FakeClassifier()), **kwargs)


class TestSelectNewAppointments:
    """Tests for known-ID filtering."""

    def test_filters_exactly_known_ids(self):
        appointments = [make_appointment(i) for i in (1, 2, 3, 4, 5)]
        selected = select_new_appointments(appointments, frozenset({2, 4, 99}))
        assert [a.id for a in selected] == [1, 3, 5]

    def test_nothing_known(self):
        appointments = [make_appointment(i) for i in (3, 1, 2)]
        assert select_new_appointments(appointments, frozenset()) == appointments

    def test_everything_known(self):
        appointments = [make_appointment(i) for i in (1, 2)]
        assert select_new_appointments(appointments, frozenset({1, 2})) == []


class TestSyncEngine:
    """Tests for a full run against fakes."""

    @pytest.mark.asyncio
    async def test_already_synced_appointment_is_not_submitted(self):
        bmv = FakeBmv(activities=[make_activity("a", "Notes\nKM_ID=100")])
        km = FakeKonzertmeister(appointments=[make_appointment(100)])

        result = await make_engine(bmv, km).run()

        assert result.success
        assert result.appointments_new == 0
        assert "post_activities" not in bmv.calls
        assert result.message == "No new appointments to sync"

    @pytest.mark.asyncio
    async def test_new_appointment_is_submitted_once(self):
        bmv = FakeBmv(activities=[make_activity("a", "Notes\nKM_ID=100")])
        km = FakeKonzertmeister(
            appointments=[make_appointment(100), make_appointment(200, "Gesamtprobe")]
        )

        result = await make_engine(bmv, km).run()

        assert result.success
        assert len(bmv.posted) == 1
        [batch] = bmv.posted
        assert len(batch) == 1
        assert batch[0].annotation.endswith("KM_ID=200")
        assert result.known_ids == 1
        assert result.appointments_found == 2
        assert result.appointments_new == 1
        assert result.activities_submitted == 1

    @pytest.mark.asyncio
    async def test_phase_order(self):
        bmv = FakeBmv()
        km = FakeKonzertmeister(appointments=[make_appointment(1)])

        await make_engine(bmv, km).run()

        assert bmv.calls == ["verify_credentials", "get_activities", "post_activities"]
        assert km.calls == ["login", "get_all_appointments"]

    @pytest.mark.asyncio
    async def test_lookback_window(self):
        bmv = FakeBmv()
        km = FakeKonzertmeister()

        await make_engine(bmv, km, lookback=timedelta(days=30)).run()

        expected = datetime.now(timezone.utc) - timedelta(days=30)
        assert abs(bmv.fetched_since - expected) < timedelta(minutes=1)

    @pytest.mark.asyncio
    async def test_empty_source_short_circuits(self):
        bmv = FakeBmv()
        km = FakeKonzertmeister(appointments=[])

        result = await make_engine(bmv, km).run()

        assert result.success
        assert bmv.posted == []

    @pytest.mark.asyncio
    async def test_bmv_credentials_rejected(self):
        bmv = FakeBmv(credentials_ok=False)
        km = FakeKonzertmeister(appointments=[make_appointment(1)])

        result = await make_engine(bmv, km).run()

        assert not result.success
        assert bmv.calls == ["verify_credentials"]
        assert km.calls == []

    @pytest.mark.asyncio
    async def test_known_fetch_failure_aborts(self):
        bmv = FakeBmv(fetch_error=ClientError("HTTP 500", service="bmv", status_code=500))
        km = FakeKonzertmeister(appointments=[make_appointment(1)])

        result = await make_engine(bmv, km).run()

        assert not result.success
        assert km.calls == []
        assert bmv.posted == []

    @pytest.mark.asyncio
    async def test_known_fetch_without_data_aborts(self):
        bmv = FakeBmv()
        bmv.get_activities = AsyncMock(return_value=None)
        km = FakeKonzertmeister(appointments=[make_appointment(1)])

        result = await make_engine(bmv, km).run()

        assert not result.success
        assert km.calls == []
        assert bmv.posted == []

    @pytest.mark.asyncio
    async def test_konzertmeister_login_failure_aborts(self):
        bmv = FakeBmv()
        km = FakeKonzertmeister(appointments=[make_appointment(1)], login_ok=False)

        result = await make_engine(bmv, km).run()

        assert not result.success
        assert km.calls == ["login"]
        assert bmv.posted == []

    @pytest.mark.asyncio
    async def test_page_failure_aborts(self):
        bmv = FakeBmv()
        km = FakeKonzertmeister(fetch_error=httpx.ConnectError("connection refused"))

        result = await make_engine(bmv, km).run()

        assert not result.success
        assert bmv.posted == []

    @pytest.mark.asyncio
    async def test_submit_failure_fails_run_without_retry(self):
        bmv = FakeBmv(post_ok=False)
        km = FakeKonzertmeister(appointments=[make_appointment(1), make_appointment(2)])

        result = await make_engine(bmv, km).run()

        assert not result.success
        assert bmv.calls.count("post_activities") == 1
        assert result.activities_submitted == 0
        assert result.message.startswith("Sync failed")

    @pytest.mark.asyncio
    async def test_limit_caps_processed_appointments(self):
        bmv = FakeBmv()
        km = FakeKonzertmeister(appointments=[make_appointment(i) for i in range(1, 6)])

        result = await make_engine(bmv, km).run(limit=2)

        assert result.appointments_new == 5
        assert result.activities_transformed == 2
        assert [a.annotation for a in bmv.posted[0]] == ["KM_ID=1", "KM_ID=2"]

    @pytest.mark.asyncio
    async def test_dry_run_does_not_submit(self):
        bmv = FakeBmv()
        km = FakeKonzertmeister(appointments=[make_appointment(1)])

        result = await make_engine(bmv, km).run(dry_run=True)

        assert result.success
        assert result.dry_run
        assert result.activities_transformed == 1
        assert bmv.posted == []
        assert result.message.startswith("Dry run")

    @pytest.mark.asyncio
    async def test_all_appointments_are_transformed(self):
        classifier = FakeClassifier()
        engine = SyncEngine(
            FakeBmv(),
            FakeKonzertmeister(appointments=[make_appointment(i) for i in range(10)]),
            ActivityTransformer(classifier),
        )

        result = await engine.run()

        assert result.activities_submitted == 10
        assert len(classifier.calls) == 10

    @pytest.mark.asyncio
    async def test_out_of_range_start_does_not_block_others(self):
        bmv = FakeBmv()
        km = FakeKonzertmeister(
            appointments=[
                make_appointment(300, "Probe", start="0001-01-01T00:30:00+01:00"),
                make_appointment(301, "Probe", start="2025-03-07T18:30:00Z"),
            ]
        )

        result = await make_engine(bmv, km).run()

        assert result.success
        [batch] = bmv.posted
        assert len(batch) == 2
        assert batch[0].date is None
        assert batch[0].start_time is None
        assert batch[1].date == "2025-03-07T18:30:00.000Z"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_reported(self):
        bmv = FakeBmv()
        bmv.verify_credentials = AsyncMock(side_effect=RuntimeError("boom"))

        result = await make_engine(bmv, FakeKonzertmeister()).run()

        assert not result.success
        assert "boom" in result.errors[0]


class TestSyncResult:
    """Tests for the result summary."""

    def test_success_without_errors(self):
        assert SyncResult().success

    def test_failure_message(self):
        result = SyncResult(errors=["Konzertmeister login failed"])
        assert not result.success
        assert result.message == "Sync failed: Konzertmeister login failed"

    def test_submitted_message(self):
        assert SyncResult(activities_submitted=3).message == (
            "Synced 3 new appointments to BMV"
        )


class TestRunSync:
    """Tests for wiring the engine from settings."""

    @pytest.mark.asyncio
    async def test_run_sync_uses_configured_clients(self, settings, monkeypatch):
        calls = []

        async def verify(self):
            calls.append(("verify", self.base_url))
            return False

        monkeypatch.setattr(
            "km_bmv_sync.clients.bmv.BmvClient.verify_credentials", verify
        )

        result = await run_sync(settings)

        assert not result.success
        assert calls == [("verify", "https://api.vbv-blasmusik.at/api/")]
