from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from agency_crm.errors import InvalidTransitionError
from agency_crm.models.enums import CampaignStatus, TaskStatus
from agency_crm.tasks.service import transition_task
from agency_crm.workflow import (
    CAMPAIGN_TRANSITIONS,
    TASK_TRANSITIONS,
    allowed_transitions,
    can_transition,
    is_terminal,
    validate_transition,
)

TASK_ALLOWED = {
    (TaskStatus.not_started, TaskStatus.in_progress),
    (TaskStatus.not_started, TaskStatus.cancelled),
    (TaskStatus.in_progress, TaskStatus.under_review),
    (TaskStatus.in_progress, TaskStatus.completed),
    (TaskStatus.in_progress, TaskStatus.blocked),
    (TaskStatus.in_progress, TaskStatus.cancelled),
    (TaskStatus.under_review, TaskStatus.completed),
    (TaskStatus.under_review, TaskStatus.in_progress),
    (TaskStatus.under_review, TaskStatus.cancelled),
    (TaskStatus.blocked, TaskStatus.in_progress),
    (TaskStatus.blocked, TaskStatus.cancelled),
}

@pytest.mark.parametrize("current", list(TaskStatus))
@pytest.mark.parametrize("new", list(TaskStatus))
def test_task_matrix_is_closed(current, new):
    expected = (current, new) in TASK_ALLOWED
    assert can_transition(TASK_TRANSITIONS, current, new) is expected

    if expected:
        validate_transition(TASK_TRANSITIONS, current, new)
    else:
        with pytest.raises(InvalidTransitionError):
            validate_transition(TASK_TRANSITIONS, current, new)

@pytest.mark.parametrize("status", [TaskStatus.completed, TaskStatus.cancelled])
def test_task_terminal_states(status):
    assert is_terminal(TASK_TRANSITIONS, status)
    assert allowed_transitions(TASK_TRANSITIONS, status) == []

def test_not_started_cannot_jump_to_completed():
    with pytest.raises(InvalidTransitionError) as exc:
        validate_transition(TASK_TRANSITIONS, TaskStatus.not_started, TaskStatus.completed)

    err = exc.value
    assert err.status_code == 400
    assert err.allowed == [TaskStatus.in_progress, TaskStatus.cancelled]
    assert "not_started" in err.message
    assert "in_progress, cancelled" in err.message

def test_terminal_error_message_names_terminal_state():
    with pytest.raises(InvalidTransitionError) as exc:
        validate_transition(TASK_TRANSITIONS, TaskStatus.completed, TaskStatus.in_progress)
    assert "terminal" in exc.value.message

def test_same_status_is_not_a_transition():
    for status in TaskStatus:
        assert not can_transition(TASK_TRANSITIONS, status, status)

def test_transition_tables_are_read_only():
    with pytest.raises(TypeError):
        TASK_TRANSITIONS[TaskStatus.completed] = frozenset({TaskStatus.in_progress})  # type: ignore[index]

@pytest.mark.parametrize(
    "current,new,ok",
    [
        (CampaignStatus.planning, CampaignStatus.active, True),
        (CampaignStatus.planning, CampaignStatus.paused, False),
        (CampaignStatus.active, CampaignStatus.paused, True),
        (CampaignStatus.paused, CampaignStatus.active, True),
        (CampaignStatus.paused, CampaignStatus.completed, True),
        (CampaignStatus.completed, CampaignStatus.active, False),
        (CampaignStatus.cancelled, CampaignStatus.planning, False),
    ],
)
def test_campaign_workflow(current, new, ok):
    assert can_transition(CAMPAIGN_TRANSITIONS, current, new) is ok

# status side effects on a task

def _task(status: TaskStatus, start_date=None):
    return SimpleNamespace(status=status, start_date=start_date, completed_at=None)

def test_completing_stamps_completed_at():
    at = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
    t = _task(TaskStatus.in_progress)

    old = transition_task(t, TaskStatus.completed, at=at)

    assert old == TaskStatus.in_progress
    assert t.status == TaskStatus.completed
    assert t.completed_at == at

def test_starting_stamps_start_date_once():
    at = datetime(2026, 5, 1, tzinfo=timezone.utc)
    t = _task(TaskStatus.not_started)
    transition_task(t, TaskStatus.in_progress, at=at)
    assert t.start_date == at

    earlier = datetime(2026, 4, 1, tzinfo=timezone.utc)
    t = _task(TaskStatus.blocked, start_date=earlier)
    transition_task(t, TaskStatus.in_progress, at=at)
    assert t.start_date == earlier

def test_rejected_transition_leaves_task_untouched():
    t = _task(TaskStatus.not_started)
    with pytest.raises(InvalidTransitionError):
        transition_task(t, TaskStatus.completed)
    assert t.status == TaskStatus.not_started
    assert t.completed_at is None
