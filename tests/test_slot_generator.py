"""
Tests for the slot generator.
"""

from datetime import date, datetime

import pendulum
import pytest

from clinicslots.domain.exceptions import InvalidArgumentError
from clinicslots.domain.models import CLINIC_SCHEDULE, WeeklySchedule
from clinicslots.domain.slot_generator import SlotGenerator, generate_slots

TZ = "America/New_York"
LONG_AGO = pendulum.datetime(2024, 1, 1, tz="UTC")


def _local_times(slots):
    return [slot.start.in_timezone(TZ).format("HH:mm") for slot in slots]


def _local_minutes(instant):
    local = instant.in_timezone(TZ)
    return local.hour * 60 + local.minute


class TestSlotGenerator:
    """Tests for SlotGenerator with the clinic schedule."""

    def test_tuesday_thirty_minute_slots(self):
        """Tuesday covers 02:00-14:00 in 24 half-hour slots."""
        generator = SlotGenerator()

        slots = generator.generate("2024-11-26", 30, now=LONG_AGO)

        assert len(slots) == 24
        assert slots[0].start == pendulum.datetime(2024, 11, 26, 7, 0, tz="UTC")
        assert _local_times(slots)[0] == "02:00"
        assert _local_times(slots)[-1] == "13:30"
        assert slots[-1].end.in_timezone(TZ).format("HH:mm") == "14:00"
        assert all(slot.available for slot in slots)

    def test_friday_sixty_minute_slots_skip_midday_gap(self):
        """Friday has two windows and no slot spans 07:00-11:00."""
        generator = SlotGenerator()

        slots = generator.generate("2024-11-29", 60, now=LONG_AGO)

        assert _local_times(slots) == [
            "02:00", "03:00", "04:00", "05:00", "06:00", "11:00", "12:00", "13:00",
        ]
        assert all(slot.duration_minutes() == 60 for slot in slots)

    def test_monday_window(self):
        """Monday closes at 11:00."""
        generator = SlotGenerator()

        slots = generator.generate("2024-11-25", 60, now=LONG_AGO)

        assert len(slots) == 9
        assert slots[-1].end.in_timezone(TZ).format("HH:mm") == "11:00"

    @pytest.mark.parametrize("day", ["2024-11-30", "2024-12-01"])
    def test_weekend_is_closed(self, day):
        """Saturday and Sunday have no windows."""
        generator = SlotGenerator()

        assert generator.generate(day, 30, now=LONG_AGO) == []

    def test_past_slots_are_excluded(self):
        """Only slots starting strictly after now are returned."""
        generator = SlotGenerator()
        now = pendulum.datetime(2024, 11, 26, 5, 15, tz=TZ)

        slots = generator.generate("2024-11-26", 30, now=now)

        assert len(slots) == 17
        assert _local_times(slots)[0] == "05:30"
        assert all(slot.start > now for slot in slots)

    def test_slot_starting_exactly_now_is_excluded(self):
        """A slot that is just starting is no longer bookable."""
        generator = SlotGenerator()
        now = pendulum.datetime(2024, 11, 26, 5, 30, tz=TZ)

        slots = generator.generate("2024-11-26", 30, now=now)

        assert _local_times(slots)[0] == "06:00"

    def test_whole_day_in_the_past(self):
        """A day that has ended yields nothing."""
        generator = SlotGenerator()
        now = pendulum.datetime(2024, 11, 27, tz=TZ)

        assert generator.generate("2024-11-26", 30, now=now) == []

    @pytest.mark.parametrize("duration", [30, 60])
    def test_slots_stay_inside_one_window(self, duration):
        """Every slot lies within a single configured window of its day."""
        generator = SlotGenerator()

        for day in pendulum.interval(pendulum.date(2024, 11, 25), pendulum.date(2024, 11, 29)):
            windows = CLINIC_SCHEDULE.windows_for(day.weekday())
            for slot in generator.generate(day, duration, now=LONG_AGO):
                start = _local_minutes(slot.start)
                end = _local_minutes(slot.end)
                assert any(
                    w.start_minutes <= start and end <= w.end_minutes
                    for w in windows
                ), f"{slot} is outside the windows of {day}"

    @pytest.mark.parametrize("duration", [30, 60])
    def test_slots_are_sorted_and_disjoint(self, duration):
        """Slots never overlap and come back in ascending order."""
        generator = SlotGenerator()

        slots = generator.generate("2024-11-29", duration, now=LONG_AGO)

        for previous, current in zip(slots, slots[1:]):
            assert previous.end <= current.start

    def test_is_idempotent(self):
        """Identical inputs give identical output."""
        generator = SlotGenerator()
        now = pendulum.datetime(2024, 11, 26, 3, 0, tz=TZ)

        first = generator.generate("2024-11-26", 30, now=now)
        second = generator.generate("2024-11-26", 30, now=now)

        assert first == second

    def test_accepts_date_objects(self):
        """Plain dates and pendulum dates resolve to the same day."""
        generator = SlotGenerator()

        from_date = generator.generate(date(2024, 11, 26), 30, now=LONG_AGO)
        from_pendulum = generator.generate(pendulum.date(2024, 11, 26), 30, now=LONG_AGO)
        from_string = generator.generate("2024-11-26", 30, now=LONG_AGO)

        assert from_date == from_pendulum == from_string

    def test_instant_is_resolved_in_clinic_zone(self):
        """UTC midnight on Saturday is still Friday evening in New York."""
        generator = SlotGenerator()
        saturday_utc = pendulum.datetime(2024, 11, 30, 0, 0, tz="UTC")

        slots = generator.generate(saturday_utc, 60, now=LONG_AGO)

        assert len(slots) == 8
        assert slots[0].start.in_timezone(TZ).to_date_string() == "2024-11-29"

    def test_generate_slots_function_matches_generator(self):
        """The functional entry point uses the clinic defaults."""
        assert generate_slots("2024-11-26", 30, LONG_AGO) == SlotGenerator().generate(
            "2024-11-26", 30, now=LONG_AGO
        )


class TestPartialSlots:
    """Trailing remainders of a window are dropped, not shortened."""

    def test_thirty_minute_remainder_dropped(self):
        schedule = WeeklySchedule.from_hours({1: [(2, 2.75)]})

        slots = generate_slots("2024-11-26", 30, LONG_AGO, schedule=schedule, zone=TZ)

        assert _local_times(slots) == ["02:00"]
        assert slots[0].duration_minutes() == 30

    def test_sixty_minute_remainder_dropped(self):
        schedule = WeeklySchedule.from_hours({1: [(2, 4.5)]})

        slots = generate_slots("2024-11-26", 60, LONG_AGO, schedule=schedule, zone=TZ)

        assert _local_times(slots) == ["02:00", "03:00"]

    def test_window_shorter_than_duration(self):
        schedule = WeeklySchedule.from_hours({1: [(9, 9.5)]})

        assert generate_slots("2024-11-26", 60, LONG_AGO, schedule=schedule, zone=TZ) == []

    def test_fractional_window_start(self):
        schedule = WeeklySchedule.from_hours({1: [(9.5, 11)]})

        slots = generate_slots("2024-11-26", 30, LONG_AGO, schedule=schedule, zone=TZ)

        assert _local_times(slots) == ["09:30", "10:00", "10:30"]

    def test_window_until_midnight(self):
        schedule = WeeklySchedule.from_hours({1: [(23, 24)]})

        slots = generate_slots("2024-11-26", 30, LONG_AGO, schedule=schedule, zone=TZ)

        assert _local_times(slots) == ["23:00", "23:30"]
        assert slots[-1].end.in_timezone(TZ).to_date_string() == "2024-11-27"


class TestDaylightSaving:
    """Window bounds are wall-clock times on each specific date."""

    @pytest.mark.parametrize(
        "day, expected_utc_hour",
        [
            ("2025-03-07", 7),  # Friday before spring-forward, EST
            ("2025-03-10", 6),  # Monday after spring-forward, EDT
            ("2025-10-31", 6),  # Friday before fall-back, EDT
            ("2025-11-03", 7),  # Monday after fall-back, EST
        ],
    )
    def test_window_start_is_local_two_am(self, day, expected_utc_hour):
        generator = SlotGenerator()

        slots = generator.generate(day, 30, now=LONG_AGO)

        assert _local_times(slots)[0] == "02:00"
        assert slots[0].start.in_timezone("UTC").hour == expected_utc_hour

    def test_offset_follows_target_date_not_now(self):
        """A summer 'now' does not leak its offset into a winter date."""
        generator = SlotGenerator()
        summer_now = pendulum.datetime(2024, 7, 1, tz=TZ)

        slots = generator.generate("2024-11-26", 30, now=summer_now)

        assert slots[0].start == pendulum.datetime(2024, 11, 26, 7, 0, tz="UTC")

    def test_spring_forward_gap_is_skipped(self):
        """02:00-03:00 does not exist on 2025-03-09; those starts are skipped."""
        schedule = WeeklySchedule.from_hours({6: [(1, 4)]})

        slots = generate_slots("2025-03-09", 30, LONG_AGO, schedule=schedule, zone=TZ)

        assert _local_times(slots) == ["01:00", "01:30", "03:00", "03:30"]
        assert [s.start.in_timezone("UTC").format("HH:mm") for s in slots] == [
            "06:00", "06:30", "07:00", "07:30",
        ]
        for previous, current in zip(slots, slots[1:]):
            assert previous.end <= current.start

    def test_fall_back_day_has_no_overlaps(self):
        """The repeated 01:00 hour on 2025-11-02 yields one slot per wall-clock start."""
        schedule = WeeklySchedule.from_hours({6: [(0, 3)]})

        slots = generate_slots("2025-11-02", 60, LONG_AGO, schedule=schedule, zone=TZ)

        assert _local_times(slots) == ["00:00", "01:00", "02:00"]
        for previous, current in zip(slots, slots[1:]):
            assert previous.end <= current.start

    def test_fall_back_repeated_hour_resolves_to_standard_time(self):
        """Repeated wall-clock starts take the later (EST) occurrence, so 05:00Z-06:00Z is not offered."""
        schedule = WeeklySchedule.from_hours({6: [(0, 3)]})

        slots = generate_slots("2025-11-02", 30, LONG_AGO, schedule=schedule, zone=TZ)

        assert [s.start.in_timezone("UTC").format("HH:mm") for s in slots] == [
            "04:00", "04:30", "06:00", "06:30", "07:00", "07:30",
        ]


class TestInvalidArguments:
    """Bad input fails with InvalidArgumentError."""

    @pytest.mark.parametrize("duration", [0, 15, 45, 90, -30, True])
    def test_unsupported_duration(self, duration):
        with pytest.raises(InvalidArgumentError, match="Unsupported duration"):
            SlotGenerator().generate("2024-11-26", duration, now=LONG_AGO)

    @pytest.mark.parametrize("value", ["2024-13-40", "26.11.2024", "", 20241126, None])
    def test_malformed_date(self, value):
        with pytest.raises(InvalidArgumentError):
            SlotGenerator().generate(value, 30, now=LONG_AGO)

    def test_naive_now_rejected(self):
        with pytest.raises(InvalidArgumentError, match="timezone-aware"):
            SlotGenerator().generate("2024-11-26", 30, now=datetime(2024, 1, 1))

    def test_naive_target_instant_rejected(self):
        with pytest.raises(InvalidArgumentError, match="timezone-aware"):
            SlotGenerator().generate(datetime(2024, 11, 26, 12), 30, now=LONG_AGO)

    def test_unknown_timezone(self):
        with pytest.raises(InvalidArgumentError, match="Unknown timezone"):
            SlotGenerator(timezone="Mars/Olympus_Mons")

    def test_invalid_argument_is_value_error(self):
        """Callers catching ValueError also see generator errors."""
        with pytest.raises(ValueError):
            SlotGenerator().generate("2024-11-26", 45, now=LONG_AGO)
