"""
Tests for the achievement catalog, evaluator, progress and levels
"""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from spark.achievements import (
	ACHIEVEMENT_CATEGORIES,
	ACHIEVEMENT_DEFINITIONS,
	ACHIEVEMENTS_BY_ID,
	check_user_achievements,
	get_achievement_progress,
	get_user_level,
)
from spark.schemas import UserStats


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _ids(earned):
	return [a.id for a in earned]


def _completed(make_project, n, **overrides):
	return [make_project(id=f"p{i}", status="completed", **overrides) for i in range(n)]


class TestCatalog:
	def test_ids_are_unique_and_ordered(self):
		ids = [a.id for a in ACHIEVEMENT_DEFINITIONS]
		assert len(ids) == len(set(ids)) == 16
		assert ids[0] == "first_project"
		assert ids[-1] == "variety_seeker"

	def test_every_category_is_described(self):
		assert {a.category for a in ACHIEVEMENT_DEFINITIONS} <= set(ACHIEVEMENT_CATEGORIES)

	def test_thresholds_are_data(self):
		assert ACHIEVEMENTS_BY_ID["project_streak_10"].threshold == 10
		assert ACHIEVEMENTS_BY_ID["time_master"].metric == "total_time_spent"
		assert ACHIEVEMENTS_BY_ID["full_stack"].predicate is not None


class TestCheckUserAchievements:
	def test_nothing_for_empty_history(self):
		assert check_user_achievements(UserStats(), [], now=NOW) == []

	def test_first_project(self, make_project):
		earned = check_user_achievements(UserStats(total_projects=1), [make_project()], now=NOW)
		assert _ids(earned) == ["first_project"]
		assert earned[0].earned_at == NOW
		assert earned[0].points == 10

	def test_tiers_unlock_together_in_catalog_order(self, make_project):
		projects = _completed(make_project, 10)
		stats = UserStats(total_projects=10, completed_projects=10, completion_rate=100)
		earned = _ids(check_user_achievements(stats, projects, now=NOW))
		assert earned == [
			"first_project",
			"first_completion",
			"project_streak_3",
			"project_streak_5",
			"project_streak_10",
			"perfectionist",
		]

	def test_three_completed_projects(self, make_project):
		projects = _completed(make_project, 3)
		stats = {"completedProjects": 3, "totalTimeSpent": 0, "currentStreak": 0}
		earned = _ids(check_user_achievements(stats, projects, [], now=NOW))
		assert "first_project" in earned
		assert "first_completion" in earned
		assert "project_streak_3" in earned
		assert "project_streak_5" not in earned

	def test_feeding_results_back_yields_nothing_new(self, make_project):
		projects = _completed(make_project, 5)
		stats = UserStats(total_projects=5, completed_projects=5, completion_rate=100, current_streak=7)
		first = check_user_achievements(stats, projects, [], now=NOW)
		assert first
		assert check_user_achievements(stats, projects, first, now=NOW) == []

	def test_already_earned_is_skipped(self, make_project):
		projects = _completed(make_project, 3)
		stats = UserStats(total_projects=3, completed_projects=3)
		earned = _ids(check_user_achievements(
			stats,
			projects,
			[{"id": "first_project"}, {"achievementId": "first_completion"}, SimpleNamespace(achievement_id="project_streak_3")],
			now=NOW,
		))
		assert "first_project" not in earned
		assert "first_completion" not in earned
		assert "project_streak_3" not in earned

	def test_perfectionist_needs_exactly_100(self, make_project):
		projects = _completed(make_project, 5)
		almost = UserStats(total_projects=5, completed_projects=5, completion_rate=99)
		assert "perfectionist" not in _ids(check_user_achievements(almost, projects, now=NOW))
		exact = UserStats(total_projects=5, completed_projects=5, completion_rate=100)
		assert "perfectionist" in _ids(check_user_achievements(exact, projects, now=NOW))

	def test_more_completions_never_revoke(self, make_project):
		previous = set()
		for n in range(0, 27, 2):
			projects = _completed(make_project, n)
			stats = UserStats(total_projects=n, completed_projects=n)
			current = set(_ids(check_user_achievements(stats, projects, now=NOW)))
			assert previous <= current
			previous = current

	def test_early_bird(self, make_project):
		created = datetime(2024, 1, 1, 9, 0)
		fast = make_project(status="completed", created_at=created, updated_at=created + timedelta(hours=24))
		slow = make_project(status="completed", created_at=created, updated_at=created + timedelta(hours=25))
		open_ = make_project(status="active", created_at=created, updated_at=created + timedelta(hours=1))
		assert "early_bird" in _ids(check_user_achievements(UserStats(), [fast], now=NOW))
		assert "early_bird" not in _ids(check_user_achievements(UserStats(), [slow, open_], now=NOW))

	def test_full_stack_across_projects(self, make_project):
		projects = [
			make_project(id="a", technologies=["React"]),
			make_project(id="b", technologies=["Python"]),
		]
		assert "full_stack" in _ids(check_user_achievements(UserStats(), projects, now=NOW))
		only_front = [make_project(technologies=["vue", "css"])]
		assert "full_stack" not in _ids(check_user_achievements(UserStats(), only_front, now=NOW))

	def test_tech_explorer_is_case_insensitive(self, make_project):
		projects = [make_project(technologies=["Python", "python", "Go", "Rust", "SQL"])]
		assert "tech_explorer" not in _ids(check_user_achievements(UserStats(), projects, now=NOW))
		projects = [make_project(technologies=["Python", "Go", "Rust", "SQL", "Docker"])]
		assert "tech_explorer" in _ids(check_user_achievements(UserStats(), projects, now=NOW))

	def test_time_based(self, make_project):
		quick = make_project(status="completed", time_spent=90)
		untracked = make_project(status="completed", time_spent=0)
		long_ = make_project(time_spent=601)
		assert "speed_runner" in _ids(check_user_achievements(UserStats(), [quick], now=NOW))
		assert "speed_runner" not in _ids(check_user_achievements(UserStats(), [untracked], now=NOW))
		assert "marathon_runner" in _ids(check_user_achievements(UserStats(), [long_], now=NOW))
		assert "time_master" in _ids(check_user_achievements(UserStats(total_time_spent=3000), [], now=NOW))

	def test_streaks(self):
		earned = _ids(check_user_achievements(UserStats(current_streak=30), [], now=NOW))
		assert "consistent_learner" in earned
		assert "dedication_master" in earned

	def test_variety_seeker(self, make_project):
		projects = [make_project(id=str(d), status="completed", difficulty=d) for d in (2, 5, 8)]
		assert "variety_seeker" in _ids(check_user_achievements(UserStats(), projects, now=NOW))

	def test_accepts_camel_case_mappings(self):
		earned = _ids(check_user_achievements({"completedProjects": 1}, [{"status": "completed"}], now=NOW))
		assert "first_completion" in earned


class TestAchievementProgress:
	def test_ratio(self):
		stats = UserStats(completed_projects=1)
		assert get_achievement_progress("project_streak_3", stats, []) == pytest.approx(100 / 3)

	def test_clamped(self):
		stats = UserStats(completed_projects=40)
		assert get_achievement_progress("project_streak_25", stats, []) == 100

	def test_binary(self, make_project):
		stats = UserStats()
		assert get_achievement_progress("speed_runner", stats, []) == 0
		quick = make_project(status="completed", time_spent=30)
		assert get_achievement_progress("speed_runner", stats, [quick]) == 100

	def test_accepts_definitions_and_records(self):
		stats = UserStats(current_streak=7)
		assert get_achievement_progress(ACHIEVEMENTS_BY_ID["consistent_learner"], stats, []) == 100
		assert get_achievement_progress({"id": "dedication_master"}, stats, []) == pytest.approx(7 / 30 * 100)

	def test_no_formula_or_unknown_is_zero(self):
		stats = UserStats(completed_projects=5, completion_rate=100)
		assert get_achievement_progress("perfectionist", stats, []) == 0
		assert get_achievement_progress("nope", stats, []) == 0

	def test_missing_inputs(self):
		assert get_achievement_progress("first_project", None, []) == 0
		assert get_achievement_progress("first_project", UserStats(), None) == 0

	def test_always_in_range(self, make_project):
		stats = UserStats(completed_projects=1000, total_time_spent=10 ** 6, current_streak=400)
		projects = [make_project(technologies=[f"t{i}" for i in range(50)])]
		for definition in ACHIEVEMENT_DEFINITIONS:
			assert 0 <= get_achievement_progress(definition, stats, projects) <= 100


class TestUserLevel:
	@pytest.mark.parametrize("completed,level,title,to_next", [
		(0, 1, "Beginner", 3),
		(2, 1, "Beginner", 1),
		(3, 2, "Explorer", 7),
		(10, 3, "Builder", 15),
		(99, 5, "Expert", 1),
	])
	def test_levels(self, completed, level, title, to_next):
		result = get_user_level(UserStats(completed_projects=completed))
		assert (result.level, result.title, result.projects_to_next) == (level, title, to_next)

	def test_max_level(self):
		result = get_user_level(UserStats(completed_projects=150))
		assert result.title == "Master"
		assert result.progress == 100
		assert result.next_level_at is None

	def test_progress_within_level(self):
		# Explorer runs from 3 to 10
		assert get_user_level(UserStats(completed_projects=6)).progress == 43

	def test_no_stats(self):
		assert get_user_level(None).title == "Beginner"
