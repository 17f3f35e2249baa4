import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from models import PlannedExercise, WorkoutSet
from workout_helpers import (
    create_empty_set,
    elapsed_minutes,
    renumber_sets,
    seed_planned_set,
    set_numbers_are_dense,
)


class CreateEmptySetTestCase(unittest.TestCase):
    def test_defaults_without_previous(self) -> None:
        s = create_empty_set(3, 1)
        self.assertEqual(s.exercise_id, 3)
        self.assertEqual(s.set_number, 1)
        self.assertEqual(s.target_reps, 8)
        self.assertEqual(s.weight, 0)
        self.assertIsNone(s.actual_reps)
        self.assertFalse(s.completed)

    def test_prefers_actual_reps(self) -> None:
        prev = WorkoutSet(exercise_id=3, set_number=1, target_reps=10, actual_reps=7, weight=60)
        s = create_empty_set(3, 2, prev)
        self.assertEqual(s.target_reps, 7)
        self.assertEqual(s.weight, 60)
        self.assertNotEqual(s.id, prev.id)

    def test_falls_back_to_target_reps(self) -> None:
        prev = WorkoutSet(exercise_id=3, set_number=1, target_reps=12, weight=20)
        self.assertEqual(create_empty_set(3, 2, prev).target_reps, 12)

    def test_custom_default(self) -> None:
        self.assertEqual(create_empty_set(1, 1, default_reps=5).target_reps, 5)


class SeedPlannedSetTestCase(unittest.TestCase):
    def test_planned_midpoint(self) -> None:
        planned = PlannedExercise(exercise_id=4, target_reps_min=6, target_reps_max=9)
        s = seed_planned_set(planned)
        self.assertEqual(s.target_reps, 7)
        self.assertEqual(s.weight, 0)
        self.assertEqual(s.set_number, 1)

    def test_previous_performance_wins(self) -> None:
        planned = PlannedExercise(exercise_id=4)
        prev = WorkoutSet(exercise_id=4, set_number=3, target_reps=8, actual_reps=11, weight=42.5)
        s = seed_planned_set(planned, prev)
        self.assertEqual(s.target_reps, 11)
        self.assertEqual(s.weight, 42.5)
        self.assertEqual(s.set_number, 1)


class SetNumberingTestCase(unittest.TestCase):
    def test_renumber(self) -> None:
        sets = [
            WorkoutSet(exercise_id=1, set_number=n, target_reps=8) for n in (1, 3, 4)
        ]
        self.assertFalse(set_numbers_are_dense(sets))
        renumbered = renumber_sets(sets)
        self.assertTrue(set_numbers_are_dense(renumbered))
        self.assertEqual([s.id for s in renumbered], [s.id for s in sets])
        self.assertTrue(set_numbers_are_dense([]))


class ElapsedMinutesTestCase(unittest.TestCase):
    def test_rounding(self) -> None:
        start = datetime.datetime(2024, 1, 1, 10, 0, 0)
        cases = {0: 0, 29: 0, 30: 1, 125: 2, 150: 3, 3599: 60}
        for seconds, minutes in cases.items():
            end = start + datetime.timedelta(seconds=seconds)
            self.assertEqual(elapsed_minutes(start, end), minutes)

    def test_clock_skew_is_zero(self) -> None:
        start = datetime.datetime(2024, 1, 1, 10, 0, 0)
        self.assertEqual(elapsed_minutes(start, start - datetime.timedelta(minutes=5)), 0)


if __name__ == "__main__":
    unittest.main()
