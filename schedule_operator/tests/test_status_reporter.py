"""
Status Reporter tests

Conditions are keyed by type and only move lastTransitionTime on a status
change.
"""

from datetime import datetime, timedelta, timezone

import pytest

from schedule_common.schemas import (
    CONDITION_READY,
    CONDITION_SYNCED,
    ScaleOutcome,
    TimeSnapshot,
    WorkloadSchedule,
    WorkloadScheduleStatus,
)
from schedule_operator.services.errors import StatusUpdateError
from schedule_operator.services.status_reporter import StatusReporter, set_condition

from conftest import make_schedule

T0 = datetime(2025, 6, 2, 14, 0, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(minutes=1)


class TestSetCondition:

    def test_adds_new_condition(self):
        status = WorkloadScheduleStatus()
        set_condition(status, CONDITION_READY, "True", "Reconciled", "ok", T0)

        assert len(status.conditions) == 1
        condition = status.get_condition(CONDITION_READY)
        assert condition.status == "True"
        assert condition.last_transition_time == "2025-06-02T14:00:00Z"

    def test_one_entry_per_type(self):
        status = WorkloadScheduleStatus()
        set_condition(status, CONDITION_READY, "True", "Reconciled", "ok", T0)
        set_condition(status, CONDITION_READY, "False", "ScaleError", "boom", T1)
        set_condition(status, CONDITION_SYNCED, "True", "Synced", "ok", T1)

        assert [c.type for c in status.conditions] == [CONDITION_READY, CONDITION_SYNCED]

    def test_transition_time_moves_only_on_status_change(self):
        status = WorkloadScheduleStatus()
        set_condition(status, CONDITION_READY, "False", "ScaleError", "first", T0)
        set_condition(status, CONDITION_READY, "False", "NamespaceError", "second", T1)

        condition = status.get_condition(CONDITION_READY)
        assert condition.reason == "NamespaceError"
        assert condition.message == "second"
        assert condition.last_transition_time == "2025-06-02T14:00:00Z"

        set_condition(status, CONDITION_READY, "True", "Reconciled", "ok", T1)
        assert condition.last_transition_time == "2025-06-02T14:01:00Z"


class TestStatusReporter:

    @pytest.fixture
    def reporter(self, gateway):
        return StatusReporter(gateway, clock=lambda: T0)

    @pytest.fixture
    def snapshot(self):
        return TimeSnapshot(
            timezone="America/Toronto",
            datetime=datetime(2025, 6, 2, 10, 30, 12, 345678, tzinfo=timezone(timedelta(hours=-4))),
        )

    def test_mark_success_fills_status(self, reporter, snapshot):
        schedule = WorkloadSchedule.from_dict(make_schedule())
        reporter.mark_success(schedule, snapshot, True, ScaleOutcome(action="scaled from 0 to 3", replicas=3))

        status = schedule.status
        assert status.current_local_time == "2025-06-02T10:30:12-04:00"
        assert status.within_active_window is True
        assert status.last_scale_action == "scaled from 0 to 3"
        assert status.last_sync_time == "2025-06-02T14:00:00Z"
        assert status.current_replicas == 3
        assert status.get_condition(CONDITION_READY).reason == "Reconciled"
        assert status.get_condition(CONDITION_SYNCED).message == "Successfully synced with World Time API"

    def test_mark_failure_leaves_other_fields(self, reporter):
        schedule = WorkloadSchedule.from_dict(make_schedule(status={
            "withinActiveWindow": True,
            "currentReplicas": 3,
            "lastScaleAction": "scaled from 0 to 3",
        }))
        reporter.mark_failure(schedule, CONDITION_SYNCED, "TimeAPIError", "World Time API returned status 500")

        assert schedule.status.within_active_window is True
        assert schedule.status.current_replicas == 3
        condition = schedule.status.get_condition(CONDITION_SYNCED)
        assert condition.status == "False"
        assert condition.observed_generation == 1

    @pytest.mark.asyncio
    async def test_persist_writes_camel_case_status(self, reporter, gateway, snapshot):
        key = gateway.add_schedule(make_schedule())
        schedule = WorkloadSchedule.from_dict(make_schedule())
        reporter.mark_success(schedule, snapshot, False, ScaleOutcome(action="no change needed (replicas=0)", replicas=0))

        await reporter.persist(schedule)

        stored = gateway.schedules[key]["status"]
        assert stored["withinActiveWindow"] is False
        assert stored["currentReplicas"] == 0
        assert stored["conditions"][0]["lastTransitionTime"] == "2025-06-02T14:00:00Z"

    @pytest.mark.asyncio
    async def test_persist_failure_raises(self, reporter, gateway):
        gateway.add_schedule(make_schedule())
        gateway.fail("update_schedule_status", status=409, reason="Conflict")

        with pytest.raises(StatusUpdateError, match="Conflict"):
            await reporter.persist(WorkloadSchedule.from_dict(make_schedule()))
