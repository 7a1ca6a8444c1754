from __future__ import annotations
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Set

from .quiz_engine import round_half_up
from .schemas import ActivityEntry, ProjectRecord, SkillCount, UserStats


MAX_STREAK_DAYS = 365


def _activity_days(projects: Iterable[ProjectRecord]) -> Set[date]:
	return {p.last_worked_on.date() for p in projects if p.last_worked_on}


def calculate_current_streak(projects: Sequence[ProjectRecord], today: Optional[date] = None) -> int:
	"""Consecutive days, ending today, on which some project was worked on."""
	days = _activity_days(projects)
	current = today or datetime.now(timezone.utc).date()
	streak = 0
	while streak < MAX_STREAK_DAYS and current in days:
		streak += 1
		current -= timedelta(days=1)
	return streak


def calculate_longest_streak(projects: Sequence[ProjectRecord]) -> int:
	days = sorted(_activity_days(projects))
	if not days:
		return 0
	longest = run = 1
	for previous, current in zip(days, days[1:]):
		if (current - previous).days == 1:
			run += 1
		else:
			run = 1
		longest = max(longest, run)
	return longest


def favorite_skills(projects: Sequence[ProjectRecord], limit: int = 10) -> List[SkillCount]:
	counts: Counter[str] = Counter()
	for project in projects:
		counts.update(project.technologies)
		counts.update(project.tags)
	return [SkillCount(skill=skill, count=count) for skill, count in counts.most_common(limit)]


def recent_activity(projects: Sequence[ProjectRecord], limit: int = 10) -> List[ActivityEntry]:
	worked_on = sorted((p for p in projects if p.last_worked_on), key=lambda p: p.last_worked_on, reverse=True)
	return [
		ActivityEntry(
			id=p.id,
			name=p.name,
			action="completed" if p.status == "completed" else "worked on",
			date=p.last_worked_on,
			type=p.type or "project",
		)
		for p in worked_on[:limit]
	]


def calculate_user_stats(projects: Sequence[ProjectRecord], today: Optional[date] = None) -> UserStats:
	total = len(projects)
	completed = sum(1 for p in projects if p.status == "completed")
	return UserStats(
		total_projects=total,
		completed_projects=completed,
		total_time_spent=sum(p.time_spent for p in projects),
		completion_rate=round_half_up(completed / total * 100) if total else 0,
		current_streak=calculate_current_streak(projects, today),
		longest_streak=calculate_longest_streak(projects),
		favorite_skills=favorite_skills(projects),
		recent_activity=recent_activity(projects),
	)
