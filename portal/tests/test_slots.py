import pytest

from portal.services.slots import (
    InvalidAppointmentData,
    available_slots,
    compute_slots,
    normalize_duration,
    parse_time_of_day,
    standard_grid,
)

FULL_GRID = [f"{h:02d}:{m:02d}" for h in range(9, 17) for m in (0, 30)]


def appt(when, duration=30, status='SCHEDULED', **extra):
    return {'id': extra.pop('id', 1), 'appointmentDateTime': when, 'duration': duration, 'status': status, **extra}


def to_minutes(hhmm):
    h, m = hhmm.split(':')
    return int(h) * 60 + int(m)


def test_empty_day_gives_standard_grid():
    result = compute_slots([], 30)
    assert result.slots == FULL_GRID
    assert len(result.slots) == 16
    # an empty day is not an anomaly
    assert result.fallback is False
    assert result.active_blockers == 0


def test_whole_day_booking_leaves_nothing():
    result = compute_slots([appt('2024-03-04T09:00:00', duration=480)], 30)
    assert result.slots == []
    assert result.fallback is False
    assert result.active_blockers == 1


def test_cancelled_and_completed_do_not_block():
    appointments = [
        appt('2024-03-04T10:00:00', status='CANCELLED'),
        appt('2024-03-04T11:00:00', status='COMPLETED'),
    ]
    slots = available_slots(appointments, 30)
    assert '10:00' in slots
    assert '11:00' in slots
    assert slots == FULL_GRID


def test_sixty_minutes_around_blocker():
    slots = available_slots([appt('2024-03-04T10:00:00', duration=30)], 60)
    assert '09:00' in slots
    assert '09:30' not in slots
    assert '10:00' not in slots
    assert '10:30' in slots
    assert slots[-1] == '16:00'
    assert '16:30' not in slots


def test_morning_booking_excludes_only_its_start():
    slots = available_slots([appt('2024-03-04T09:00:00')], 30)
    assert '09:00' not in slots
    assert slots[:3] == ['09:30', '10:00', '10:30']


@pytest.mark.parametrize('duration', [15, 30, 45, 60])
def test_slots_never_overlap_and_stay_in_window(duration):
    appointments = [
        appt('2024-03-04T09:15:00', duration=20),
        appt('2024-03-04 11:00:00', duration=45),
        appt('2024-03-04T14:30:00', duration=60, status='CHECKED_IN'),
        appt('2024-03-04T15:00:00', duration=30, status='CANCELLED'),
    ]
    blockers = [(9 * 60 + 15, 9 * 60 + 35), (11 * 60, 11 * 60 + 45), (14 * 60 + 30, 15 * 60 + 30)]
    slots = available_slots(appointments, duration)
    assert slots == sorted(slots)
    for s in slots:
        start = to_minutes(s)
        end = start + duration
        assert start >= 9 * 60
        assert end <= 17 * 60
        for b_start, b_end in blockers:
            assert not (start < b_end and end > b_start)


def test_result_is_deterministic():
    appointments = [appt('2024-03-04T13:00:00', duration=45), appt('2024-03-04T09:30:00')]
    assert compute_slots(appointments, 45) == compute_slots(list(appointments), 45)


def test_status_match_is_exact():
    slots = available_slots([appt('2024-03-04T10:00:00', status='cancelled')], 30)
    assert '10:00' not in slots


def test_missing_status_blocks_as_scheduled():
    record = {'id': 3, 'appointmentDateTime': '2024-03-04T12:00:00', 'duration': 30}
    assert '12:00' not in available_slots([record], 30)


def test_missing_duration_counts_as_thirty():
    slots = available_slots([appt('2024-03-04T12:00:00', duration=None)], 30)
    assert '12:00' not in slots
    assert '12:30' in slots


def test_unparseable_records_are_skipped():
    appointments = [
        appt('not a date', id=1),
        appt(None, id=2),
        'garbage',
        appt('2024-03-04T10:00:00', id=4),
    ]
    result = compute_slots(appointments, 30)
    assert '10:00' not in result.slots
    assert len(result.skipped) == 3
    assert result.active_blockers == 1


def test_non_list_raises():
    with pytest.raises(InvalidAppointmentData):
        compute_slots({'content': []}, 30)
    with pytest.raises(InvalidAppointmentData):
        compute_slots(None, 30)


def test_fallback_when_nothing_fits_and_nothing_booked():
    # A duration longer than the working window produces no candidate at all
    result = compute_slots([], 600)
    assert result.fallback is True
    assert result.slots == FULL_GRID
    assert result.as_dict()['fallback'] is True


@pytest.mark.parametrize('raw, expected', [
    ('2024-03-04T10:30:00', (10, 30)),
    ('2024-03-04T10:30', (10, 30)),
    ('2024-03-04T10:30:00.000Z', (10, 30)),
    ('2024-03-04 14:05:00', (14, 5)),
    ('2024-03-04 9:45', (9, 45)),
    ('Mon, 04 Mar 2024 16:15:00 GMT', (16, 15)),
    ('  2024-03-04T08:00:00  ', (8, 0)),
])
def test_parse_time_of_day(raw, expected):
    assert parse_time_of_day(raw) == expected


@pytest.mark.parametrize('raw', ['', '   ', 'tomorrow', None, 42, '2024-03-04T25:00:00', '2024-03-04 10:75'])
def test_parse_time_of_day_rejects(raw):
    assert parse_time_of_day(raw) is None


@pytest.mark.parametrize('value, expected', [
    (45, 45), ('60', 60), (None, 30), ('', 30), ('abc', 30), (0, 30), (-15, 30), (True, 30),
])
def test_normalize_duration(value, expected):
    assert normalize_duration(value) == expected


def test_invalid_requested_duration_defaults_to_thirty():
    result = compute_slots([], 'soon')
    assert result.duration == 30
    assert result.slots == FULL_GRID


def test_standard_grid_bounds():
    grid = standard_grid()
    assert grid[0] == 9 * 60
    assert grid[-1] == 16 * 60 + 30
    assert len(grid) == 16
