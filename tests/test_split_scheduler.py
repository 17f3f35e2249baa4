import os
import sys
import datetime

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from models import Mesocycle, SplitDay, Workout
from split_scheduler import (
    calculate_mesocycle_week,
    describe_week,
    generate_default_split_days,
    is_week_complete,
    mesocycle_week_bounds,
    recommend_next_split,
    split_completion_status,
)

START = datetime.date(2024, 1, 1)


def make_mesocycle(split_count=3, current_week=1, duration_weeks=6, meso_id=1):
    return Mesocycle(
        id=meso_id,
        name="Hypertrophy",
        start_date=START,
        end_date=START + datetime.timedelta(weeks=duration_weeks, days=-1),
        duration_weeks=duration_weeks,
        deload_week=duration_weeks,
        current_week=current_week,
        split_days=[
            SplitDay(id=10 + i, name=f"Day {i + 1}", day_order=i + 1)
            for i in range(split_count)
        ],
        status="active",
    )


def done(split_day_id, week=1, meso_id=1, completed=True, day=0):
    return Workout(
        date=datetime.datetime(2024, 1, 1, 18) + datetime.timedelta(days=day),
        completed=completed,
        mesocycle_id=meso_id,
        week_number=week,
        split_day_id=split_day_id,
    )


def test_no_split_days():
    assert recommend_next_split(make_mesocycle(split_count=0), []) is None


def test_first_split_when_nothing_trained():
    meso = make_mesocycle()
    assert recommend_next_split(meso, []).id == 10


def test_skips_trained_splits():
    meso = make_mesocycle()
    assert recommend_next_split(meso, [done(10)]).id == 11
    assert recommend_next_split(meso, [done(10), done(12)]).id == 11


def test_wraps_when_week_complete():
    meso = make_mesocycle()
    workouts = [done(10), done(11), done(12)]
    assert is_week_complete(meso, workouts)
    assert recommend_next_split(meso, workouts).id == 10


@pytest.mark.parametrize(
    "workout",
    [
        done(10, week=2),
        done(10, meso_id=99),
        done(10, completed=False),
        done(None),
    ],
)
def test_ignores_unrelated_workouts(workout):
    meso = make_mesocycle()
    assert recommend_next_split(meso, [workout]).id == 10
    assert not is_week_complete(meso, [workout])


def test_split_completion_status():
    meso = make_mesocycle()
    status = split_completion_status(meso, [done(11, day=1), done(11, day=3)])
    assert [s.completed for s in status] == [False, True, False]
    assert status[1].completed_date == datetime.datetime(2024, 1, 4, 18)
    assert status[0].completed_date is None


def test_calculate_mesocycle_week():
    meso = make_mesocycle()
    assert calculate_mesocycle_week(meso, START) == 1
    assert calculate_mesocycle_week(meso, START + datetime.timedelta(days=6)) == 1
    assert calculate_mesocycle_week(meso, START + datetime.timedelta(days=7)) == 2
    assert calculate_mesocycle_week(meso, datetime.datetime(2024, 2, 11, 9)) == 6
    assert calculate_mesocycle_week(meso, START - datetime.timedelta(days=1)) is None
    assert calculate_mesocycle_week(meso, meso.end_date + datetime.timedelta(days=1)) is None


def test_week_bounds():
    meso = make_mesocycle()
    assert mesocycle_week_bounds(meso, 2) == (
        datetime.date(2024, 1, 8),
        datetime.date(2024, 1, 14),
    )
    assert mesocycle_week_bounds(meso, 0) is None
    assert mesocycle_week_bounds(meso, 7) is None


def test_describe_week():
    meso = make_mesocycle()
    assert describe_week(meso, 1) == "Week 1 - Accumulation"
    assert describe_week(meso, 3) == "Week 3"
    assert describe_week(meso, 5) == "Week 5 - Intensification"
    assert describe_week(meso, 6) == "Week 6 - Deload"


def test_default_split_days():
    days = generate_default_split_days("push_pull_legs")
    assert [d.name for d in days] == ["Push", "Pull", "Legs"]
    assert [d.day_order for d in days] == [1, 2, 3]
    with pytest.raises(ValueError):
        generate_default_split_days("yoga")


def test_push_pull_legs_week_two():
    meso = make_mesocycle(current_week=2)
    for split_day, name in zip(meso.split_days, ["Push", "Pull", "Legs"]):
        split_day.name = name
    push, pull, legs = meso.split_days
    assert recommend_next_split(meso, [done(pull.id, week=2)]).name == "Legs"
    all_done = [done(d.id, week=2) for d in (push, pull, legs)]
    assert recommend_next_split(meso, all_done).name == "Push"
    assert recommend_next_split(meso, all_done) == recommend_next_split(meso, list(reversed(all_done)))


def test_walk_starts_after_latest_trained_split():
    meso = make_mesocycle(split_count=4)
    assert recommend_next_split(meso, [done(13, day=0), done(10, day=1)]).id == 11
    assert recommend_next_split(meso, [done(10, day=1), done(13, day=0)]).id == 11
    assert recommend_next_split(meso, [done(11, day=0), done(12, day=1)]).id == 13
    assert recommend_next_split(meso, [done(11, day=0), done(12, day=1), done(13, day=2)]).id == 10
