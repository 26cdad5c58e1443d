# -*- coding: utf-8 -*-
from datetime import date, datetime, time

import pytest
from sqlalchemy import select, func

from trainerplus.models import ClassSession
from trainerplus.services.errors import CoreError, ErrorKind
from trainerplus.services.schedule import ScheduleGenerator, occurrences, sunday_based_weekday


@pytest.fixture
def generator(db_session):
    return ScheduleGenerator(db_session)


def _session_count(db_session):
    return db_session.execute(select(func.count(ClassSession.id))).scalar()


class TestOccurrences:

    def test_weekday_numbering_starts_on_sunday(self):
        assert sunday_based_weekday(date(2025, 11, 30)) == 0  # Sunday
        assert sunday_based_weekday(date(2025, 12, 1)) == 1
        assert sunday_based_weekday(date(2025, 12, 6)) == 6

    def test_mon_wed_fri(self):
        days = occurrences({1, 3, 5}, date(2025, 12, 1), date(2025, 12, 7))
        assert days == [date(2025, 12, 1), date(2025, 12, 3), date(2025, 12, 5)]


class TestExpand:

    def test_creates_one_session_per_matching_day(self, generator, world, db_session):
        before = _session_count(db_session)
        created = generator.expand(world["group"].id, [1, 3, 5], "18:30",
                                   date(2025, 12, 1), date(2025, 12, 7),
                                   duration_minutes=90, location="Hall A",
                                   actor_id=world["coach"].id)

        assert len(created) == 3
        assert [s.start_at for s in created] == [
            datetime(2025, 12, 1, 18, 30),
            datetime(2025, 12, 3, 18, 30),
            datetime(2025, 12, 5, 18, 30),
        ]
        assert all(s.duration_minutes == 90 and s.location == "Hall A" for s in created)
        assert _session_count(db_session) == before + 3

    def test_accepts_time_object(self, generator, world):
        created = generator.expand(world["group"].id, [0], time(9, 0),
                                   date(2025, 11, 30), date(2025, 11, 30))
        assert created[0].start_at == datetime(2025, 11, 30, 9, 0)

    @pytest.mark.parametrize("weekdays,start,end", [
        ([7], date(2025, 12, 1), date(2025, 12, 7)),
        ([-1], date(2025, 12, 1), date(2025, 12, 7)),
        ([1], date(2025, 12, 7), date(2025, 12, 1)),
        ([0], date(2025, 12, 1), date(2025, 12, 6)),
        ([0, 1, 2, 3, 4, 5, 6], date(2025, 1, 1), date(2026, 1, 1)),
    ])
    def test_rejected_without_writing(self, generator, world, db_session, weekdays, start, end):
        before = _session_count(db_session)
        with pytest.raises(CoreError) as exc:
            generator.expand(world["group"].id, weekdays, "10:00", start, end)
        assert exc.value.kind == ErrorKind.BAD_REQUEST
        assert _session_count(db_session) == before

    def test_exactly_365_is_allowed(self, generator, world):
        created = generator.expand(world["group"].id, [0, 1, 2, 3, 4, 5, 6], "07:00",
                                   date(2025, 1, 1), date(2025, 12, 31))
        assert len(created) == 365

    def test_bad_time_of_day(self, generator, world):
        with pytest.raises(CoreError) as exc:
            generator.expand(world["group"].id, [1], "25:99", date(2025, 12, 1), date(2025, 12, 7))
        assert exc.value.kind == ErrorKind.BAD_REQUEST

    def test_requires_authority(self, generator, make, world):
        stranger = make.user("coach")
        with pytest.raises(CoreError) as exc:
            generator.expand(world["group"].id, [1], "10:00", date(2025, 12, 1), date(2025, 12, 7),
                             actor_id=stranger.id)
        assert exc.value.kind == ErrorKind.FORBIDDEN


class TestCreateOne:

    def test_single_session(self, generator, world):
        created = generator.create_one(world["group"].id, datetime(2025, 12, 2, 17, 0),
                                       duration_minutes=45, actor_id=world["owner"].id)
        assert created.duration_minutes == 45
        listed = generator.list_for_group(world["group"].id,
                                          datetime(2025, 12, 1), datetime(2025, 12, 3))
        assert [s.id for s in listed] == [created.id]

    def test_list_for_club_spans_groups(self, generator, make, world):
        other = make.group(world["club"], title="Senior Judo")
        foreign = make.group(make.club(), title="Elsewhere")
        a = generator.create_one(world["group"].id, datetime(2025, 12, 2, 17, 0))
        b = generator.create_one(other.id, datetime(2025, 12, 2, 19, 0))
        generator.create_one(foreign.id, datetime(2025, 12, 2, 18, 0))

        listed = generator.list_for_club(world["club"].id,
                                         datetime(2025, 12, 1), datetime(2025, 12, 3))
        assert [s.id for s in listed] == [a.id, b.id]


class TestEditSession:

    @pytest.fixture
    def planned(self, make, world):
        return make.class_session(world["group"], start_at=datetime(2025, 12, 2, 17, 0))

    def test_reschedule(self, generator, world, planned):
        updated = generator.update(planned.id, start_at=datetime(2025, 12, 3, 18, 0),
                                   location="Hall B", actor_id=world["coach"].id)
        assert updated.start_at == datetime(2025, 12, 3, 18, 0)
        assert updated.location == "Hall B"
        assert updated.duration_minutes == 60

    def test_delete(self, generator, world, planned, db_session):
        before = _session_count(db_session)
        generator.delete(planned.id, actor_id=world["owner"].id)
        assert _session_count(db_session) == before - 1

    def test_frozen_once_attendance_exists(self, generator, make, world, planned):
        make.attendance(planned, world["student"], world["coach"])

        for edit in (lambda: generator.update(planned.id, duration_minutes=90),
                     lambda: generator.delete(planned.id)):
            with pytest.raises(CoreError) as exc:
                edit()
            assert exc.value.kind == ErrorKind.CONFLICT
        assert generator.get(planned.id).duration_minutes == 60

    def test_stranger_cannot_edit(self, generator, make, planned):
        stranger = make.user("coach")
        with pytest.raises(CoreError) as exc:
            generator.update(planned.id, location="Nowhere", actor_id=stranger.id)
        assert exc.value.kind == ErrorKind.FORBIDDEN

    def test_unknown_session(self, generator):
        with pytest.raises(CoreError) as exc:
            generator.get("7b0c1c52-30f4-4c43-9d1e-5a1a2f0b9c11")
        assert exc.value.kind == ErrorKind.NOT_FOUND
