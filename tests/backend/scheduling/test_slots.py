from datetime import date, datetime, time, timedelta, timezone

import pytest

from backend.scheduling.slots import (
    DateOverride,
    RecurringRule,
    compute_expected_slots,
    compute_horizon,
    day_of_week,
    expand_window,
    get_timezone,
    group_overrides,
    local_to_utc,
    to_offset,
    to_utc,
)

SAO_PAULO = get_timezone('America/Sao_Paulo')
NEW_YORK = get_timezone('America/New_York')
MONDAY = date(2026, 1, 5)
TUESDAY = date(2026, 1, 6)
NOW = datetime(2026, 1, 4, 12, 0, tzinfo=timezone.utc)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def local_times(slots, day: date, tz=SAO_PAULO) -> list[time]:
    return sorted(
        start.astimezone(tz).time()
        for start in slots
        if start.astimezone(tz).date() == day
    )


def expected_for(rules, overrides=(), now=NOW, tz=SAO_PAULO, months=1):
    horizon = compute_horizon(now, tz, months)
    return compute_expected_slots(rules, overrides, horizon, tz, 30)


@pytest.mark.parametrize(
    ('value', 'expected'),
    [
        (time(9, 30), timedelta(hours=9, minutes=30)),
        (timedelta(hours=14), timedelta(hours=14)),
        ('08:15:00', timedelta(hours=8, minutes=15)),
        ('08:15', timedelta(hours=8, minutes=15)),
        ('23:59:59', timedelta(hours=23, minutes=59, seconds=59)),
        ('24:00:00', timedelta(hours=24)),
    ],
)
def test_to_offset_accepts_time_representations(value, expected) -> None:
    assert to_offset(value) == expected


@pytest.mark.parametrize('value', ['9h', '10:75:00', '25:00:00', '-01:00', 930])
def test_to_offset_rejects_invalid_values(value) -> None:
    with pytest.raises(ValueError):
        to_offset(value)


def test_to_utc_treats_naive_values_as_utc() -> None:
    assert to_utc(datetime(2026, 1, 5, 12, 0)) == utc(2026, 1, 5, 12, 0)
    assert to_utc(SAO_PAULO.localize(datetime(2026, 1, 5, 9, 0))) == utc(2026, 1, 5, 12, 0)


def test_day_of_week_counts_from_sunday() -> None:
    assert day_of_week(date(2026, 1, 4)) == 0
    assert day_of_week(MONDAY) == 1
    assert day_of_week(date(2026, 1, 10)) == 6


def test_local_to_utc_handles_end_of_day_midnight() -> None:
    assert local_to_utc(MONDAY, '24:00:00', SAO_PAULO) == utc(2026, 1, 6, 3, 0)


def test_compute_horizon_uses_the_clinic_calendar_day() -> None:
    # 02:00 UTC on the 5th is still the evening of the 4th in Sao Paulo.
    horizon = compute_horizon(utc(2026, 1, 5, 2, 0), SAO_PAULO, 12)

    assert horizon.start_date == date(2026, 1, 4)
    assert horizon.end_date == date(2027, 1, 4)
    assert horizon.range_start == utc(2026, 1, 4, 3, 0)
    assert horizon.range_end == utc(2027, 1, 5, 3, 0)
    days = list(horizon.days())
    assert days[0] == date(2026, 1, 4)
    assert days[-1] == date(2027, 1, 4)
    assert len(days) == 366


def test_group_overrides_splits_blocks_from_openings() -> None:
    block = DateOverride(MONDAY, '10:00:00', '11:00:00', False)
    opening = DateOverride(MONDAY, '14:00:00', '15:00:00', True)
    other_day = DateOverride(TUESDAY, '08:00:00', '09:00:00', True)

    grouped = group_overrides([block, opening, other_day])

    assert grouped[MONDAY].blocking == [block]
    assert grouped[MONDAY].opening == [opening]
    assert grouped[TUESDAY].blocking == []


def test_expand_window_never_creates_partial_slots() -> None:
    starts = expand_window(utc(2026, 1, 5, 12, 0), utc(2026, 1, 5, 13, 45), [], timedelta(minutes=30))

    assert starts == [utc(2026, 1, 5, 12, 0), utc(2026, 1, 5, 12, 30), utc(2026, 1, 5, 13, 0)]
    assert all(start + timedelta(minutes=30) <= utc(2026, 1, 5, 13, 45) for start in starts)


def test_expand_window_drops_slots_touching_a_block() -> None:
    block = (utc(2026, 1, 5, 12, 50), utc(2026, 1, 5, 13, 10))

    starts = expand_window(utc(2026, 1, 5, 12, 0), utc(2026, 1, 5, 14, 0), [block], timedelta(minutes=30))

    assert starts == [utc(2026, 1, 5, 12, 0), utc(2026, 1, 5, 13, 30)]


def test_expand_window_with_end_before_start_is_empty() -> None:
    assert expand_window(utc(2026, 1, 5, 15, 0), utc(2026, 1, 5, 12, 0), [], timedelta(minutes=30)) == []


def test_recurring_rule_produces_half_hour_slots() -> None:
    expected = expected_for([RecurringRule(1, '09:00:00', '12:00:00')])

    assert local_times(expected, MONDAY) == [
        time(9, 0), time(9, 30), time(10, 0), time(10, 30), time(11, 0), time(11, 30),
    ]
    slot = expected[utc(2026, 1, 5, 12, 0)]
    assert slot.end_time == utc(2026, 1, 5, 12, 30)


def test_blocking_override_removes_covered_slots() -> None:
    expected = expected_for(
        [RecurringRule(1, '09:00:00', '12:00:00')],
        [DateOverride(MONDAY, '10:00:00', '11:00:00', False)],
    )

    assert local_times(expected, MONDAY) == [time(9, 0), time(9, 30), time(11, 0), time(11, 30)]
    # The block only applies to its own date.
    assert len(local_times(expected, date(2026, 1, 12))) == 6


def test_full_day_block_leaves_no_slots() -> None:
    expected = expected_for(
        [RecurringRule(1, '08:00:00', '18:00:00')],
        [DateOverride(MONDAY, '00:00:00', '23:59:59', False)],
    )

    assert local_times(expected, MONDAY) == []


def test_opening_override_adds_slots_on_a_day_without_rules() -> None:
    expected = expected_for(
        [RecurringRule(1, '09:00:00', '12:00:00')],
        [DateOverride(TUESDAY, '14:00:00', '15:00:00', True)],
    )

    assert local_times(expected, TUESDAY) == [time(14, 0), time(14, 30)]


def test_blocks_also_apply_to_opening_overrides() -> None:
    expected = expected_for(
        [],
        [
            DateOverride(TUESDAY, '14:00:00', '16:00:00', True),
            DateOverride(TUESDAY, '14:30:00', '15:00:00', False),
        ],
    )

    assert local_times(expected, TUESDAY) == [time(14, 0), time(15, 0), time(15, 30)]


def test_overlapping_windows_are_deduplicated_by_start() -> None:
    expected = expected_for(
        [RecurringRule(1, '09:00:00', '11:00:00'), RecurringRule(1, '09:00:00', '11:00:00')],
        [DateOverride(MONDAY, '10:00:00', '12:00:00', True)],
    )

    assert local_times(expected, MONDAY) == [
        time(9, 0), time(9, 30), time(10, 0), time(10, 30), time(11, 0), time(11, 30),
    ]


def test_misaligned_windows_keep_their_own_grid() -> None:
    expected = expected_for(
        [RecurringRule(1, '09:00:00', '10:00:00')],
        [DateOverride(MONDAY, '09:15:00', '10:15:00', True)],
    )

    assert local_times(expected, MONDAY) == [time(9, 0), time(9, 15), time(9, 30), time(9, 45)]


def test_slot_count_over_a_twelve_month_horizon() -> None:
    expected = expected_for([RecurringRule(1, '09:00:00', '12:00:00')], months=12)

    # 53 Mondays between 2026-01-04 and 2027-01-04 inclusive.
    assert len(expected) == 53 * 6


def test_slots_follow_daylight_saving_changes() -> None:
    now = utc(2026, 3, 1, 12, 0)
    expected = expected_for([RecurringRule(0, '09:00:00', '10:00:00')], now=now, tz=NEW_YORK)

    assert utc(2026, 3, 1, 14, 0) in expected
    assert utc(2026, 3, 8, 13, 0) in expected
    assert local_times(expected, date(2026, 3, 8), tz=NEW_YORK) == [time(9, 0), time(9, 30)]


def test_window_across_the_spring_forward_gap_covers_elapsed_time() -> None:
    now = utc(2026, 3, 1, 12, 0)
    expected = expected_for(
        [],
        [DateOverride(date(2026, 3, 8), '01:00:00', '04:00:00', True)],
        now=now,
        tz=NEW_YORK,
    )

    assert sorted(expected) == [
        utc(2026, 3, 8, 6, 0),
        utc(2026, 3, 8, 6, 30),
        utc(2026, 3, 8, 7, 0),
        utc(2026, 3, 8, 7, 30),
    ]
