"""
Integration tests for the periodic procurement sweep.

WHAT: Sweep notifications landing in sessions, and the task lifecycle
WHY: Completion and expiry are only noticed by the sweep when no reply arrives
HOW: run_once with explicit clocks; start/stop on the running loop
"""

import asyncio
from datetime import datetime, timedelta

import pytest

from supplyscout.models.procurement import SupplierContact
from supplyscout.core.session_manager import session_manager
from supplyscout.services.procurement_tracker import procurement_tracker
from supplyscout.services.supplier_responses import upsert_supplier_response
from supplyscout.services.sweep_scheduler import SweepScheduler

T0 = datetime(2024, 9, 1, 9, 0)


@pytest.fixture
def scheduler():
    return SweepScheduler(interval_minutes=60)


def open_request(session_id):
    return procurement_tracker.open_request(
        session_id,
        "Flat Washer M8",
        [
            SupplierContact(email="sales@acme.example", name="Acme Fasteners"),
            SupplierContact(email="quotes@boltco.example", name="Bolt Co"),
        ],
        now=T0,
    )


@pytest.mark.integration
class TestRunOnce:

    @pytest.mark.asyncio
    async def test_status_update_is_delivered(self, scheduler):
        session_manager.create_session(session_id="s1")
        open_request("s1")

        delivered = await scheduler.run_once(now=T0 + timedelta(hours=1))

        assert delivered == 1
        [message] = session_manager.get_state("s1").messages
        assert message.role == "assistant"
        assert message.is_system_notification is True
        assert message.content.startswith('Status update for "Flat Washer M8": 0/2')

    @pytest.mark.asyncio
    async def test_completion_is_delivered_once(self, scheduler):
        session_manager.create_session(session_id="s1")
        open_request("s1")
        for email in ["sales@acme.example", "quotes@boltco.example"]:
            upsert_supplier_response(
                supplier_email=email, supplier_name="", price=0.05, response_text="$0.05",
                received_at=T0 + timedelta(hours=2),
            )

        assert await scheduler.run_once(now=T0 + timedelta(hours=3)) == 1
        assert await scheduler.run_once(now=T0 + timedelta(hours=4)) == 0

        messages = session_manager.get_state("s1").messages
        assert len(messages) == 1
        assert messages[0].content.startswith("All 2 suppliers have responded")

    @pytest.mark.asyncio
    async def test_expiry_for_deleted_session_is_dropped(self, scheduler):
        session_manager.create_session(session_id="s1")
        open_request("s1")
        session_manager.delete_session("s1")

        assert await scheduler.run_once(now=T0 + timedelta(days=8)) == 0
        assert session_manager.session_exists("s1") is False


@pytest.mark.integration
class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_and_stop(self, scheduler):
        assert scheduler.running is False

        scheduler.start()
        first_task = scheduler._task
        scheduler.start()

        assert scheduler.running is True
        assert scheduler._task is first_task

        await scheduler.stop()
        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_loop_survives_a_failing_sweep(self, monkeypatch):
        scheduler = SweepScheduler(interval_minutes=0.0001)
        calls = []

        def failing_sweep(now=None):
            calls.append(now)
            raise RuntimeError("database locked")

        monkeypatch.setattr(scheduler.tracker, "run_sweep", failing_sweep)

        scheduler.start()
        await asyncio.sleep(0.1)
        assert scheduler.running is True
        await scheduler.stop()

        assert len(calls) >= 2
