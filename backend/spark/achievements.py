from __future__ import annotations
import logging
import operator
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .quiz_engine import round_half_up
from .schemas import EarnedAchievement, ProjectRecord, UserLevel, UserStats


logger = logging.getLogger(__name__)

COMPLETED = "completed"

FRONTEND_TECHNOLOGIES = frozenset({"react", "vue", "angular", "html", "css", "javascript", "typescript"})
BACKEND_TECHNOLOGIES = frozenset({"node.js", "python", "java", "php", "ruby", "go", "rust", "c#"})

ACHIEVEMENT_CATEGORIES: Dict[str, Dict[str, str]] = {
	"beginner": {"name": "Beginner", "color": "blue", "icon": "star"},
	"progress": {"name": "Progress", "color": "green", "icon": "trophy"},
	"technology": {"name": "Technology", "color": "purple", "icon": "award"},
	"speed": {"name": "Speed", "color": "orange", "icon": "zap"},
	"dedication": {"name": "Dedication", "color": "red", "icon": "clock"},
	"consistency": {"name": "Consistency", "color": "indigo", "icon": "target"},
	"quality": {"name": "Quality", "color": "yellow", "icon": "star"},
	"variety": {"name": "Variety", "color": "pink", "icon": "target"},
}

Predicate = Callable[[UserStats, Sequence[ProjectRecord]], bool]


# ---- Metrics -------------------------------------------------------------

def _completed(projects: Sequence[ProjectRecord]) -> List[ProjectRecord]:
	return [p for p in projects if p.status == COMPLETED]


def _distinct_technologies(stats: UserStats, projects: Sequence[ProjectRecord]) -> int:
	return len({tech.lower() for p in projects for tech in p.technologies})


def _completed_difficulty_levels(stats: UserStats, projects: Sequence[ProjectRecord]) -> int:
	return len({p.difficulty for p in _completed(projects) if p.difficulty})


METRICS: Dict[str, Callable[[UserStats, Sequence[ProjectRecord]], float]] = {
	"projects_created": lambda stats, projects: len(projects),
	"completed_projects": lambda stats, projects: stats.completed_projects,
	"distinct_technologies": _distinct_technologies,
	"total_time_spent": lambda stats, projects: stats.total_time_spent,
	"current_streak": lambda stats, projects: stats.current_streak,
	"completed_difficulty_levels": _completed_difficulty_levels,
}


# ---- Structural predicates -----------------------------------------------

def _as_utc(value: datetime) -> datetime:
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value


def _finished_within_a_day(project: ProjectRecord) -> bool:
	if project.status != COMPLETED or not project.created_at or not project.updated_at:
		return False
	return _as_utc(project.updated_at) - _as_utc(project.created_at) <= timedelta(hours=24)


def _early_bird(stats: UserStats, projects: Sequence[ProjectRecord]) -> bool:
	return any(_finished_within_a_day(p) for p in projects)


def _full_stack(stats: UserStats, projects: Sequence[ProjectRecord]) -> bool:
	used = {tech.lower() for p in projects for tech in p.technologies}
	return bool(used & FRONTEND_TECHNOLOGIES) and bool(used & BACKEND_TECHNOLOGIES)


def _speed_runner(stats: UserStats, projects: Sequence[ProjectRecord]) -> bool:
	# time_spent of 0 means "not tracked", not "instant"
	return any(p.status == COMPLETED and 0 < p.time_spent < 120 for p in projects)


def _marathon_runner(stats: UserStats, projects: Sequence[ProjectRecord]) -> bool:
	return any(p.time_spent > 600 for p in projects)


def _perfectionist(stats: UserStats, projects: Sequence[ProjectRecord]) -> bool:
	return len(_completed(projects)) >= 5 and stats.completion_rate == 100


# ---- Catalog -------------------------------------------------------------

@dataclass(frozen=True)
class AchievementDefinition:
	id: str
	title: str
	description: str
	icon_name: str
	points: int
	category: str
	metric: Optional[str] = None
	threshold: float = 0
	comparator: Callable[[Any, Any], bool] = operator.ge
	predicate: Optional[Predicate] = None
	# "ratio": metric / threshold, "binary": 0 or 100, None: always 0
	progress: Optional[str] = "ratio"

	def condition(self, stats: UserStats, projects: Sequence[ProjectRecord]) -> bool:
		if self.predicate is not None:
			return self.predicate(stats, projects)
		return bool(self.comparator(METRICS[self.metric](stats, projects), self.threshold))

	def award(self, earned_at: datetime) -> EarnedAchievement:
		return EarnedAchievement(
			id=self.id,
			title=self.title,
			description=self.description,
			icon_name=self.icon_name,
			points=self.points,
			category=self.category,
			earned_at=earned_at,
		)


def _threshold(id: str, title: str, description: str, icon_name: str, points: int, category: str, metric: str, threshold: float) -> AchievementDefinition:
	return AchievementDefinition(id, title, description, icon_name, points, category, metric=metric, threshold=threshold)


def _structural(id: str, title: str, description: str, icon_name: str, points: int, category: str, predicate: Predicate, progress: Optional[str] = "binary") -> AchievementDefinition:
	return AchievementDefinition(id, title, description, icon_name, points, category, predicate=predicate, progress=progress)


ACHIEVEMENT_DEFINITIONS: Tuple[AchievementDefinition, ...] = (
	_threshold("first_project", "First Steps", "Create your first project", "star", 10, "beginner", "projects_created", 1),
	_threshold("first_completion", "Finisher", "Complete your first project", "trophy", 25, "beginner", "completed_projects", 1),
	_structural("early_bird", "Early Bird", "Complete a project within 24 hours of creation", "clock", 20, "speed", _early_bird),
	_threshold("project_streak_3", "Getting Started", "Complete 3 projects", "target", 30, "progress", "completed_projects", 3),
	_threshold("project_streak_5", "Momentum Builder", "Complete 5 projects", "zap", 50, "progress", "completed_projects", 5),
	_threshold("project_streak_10", "Dedicated Learner", "Complete 10 projects", "award", 75, "progress", "completed_projects", 10),
	_threshold("project_streak_25", "Expert Builder", "Complete 25 projects", "trophy", 150, "progress", "completed_projects", 25),
	_threshold("tech_explorer", "Technology Explorer", "Use 5 different technologies across projects", "star", 40, "technology", "distinct_technologies", 5),
	_structural("full_stack", "Full Stack Developer", "Complete projects using both frontend and backend technologies", "award", 60, "technology", _full_stack),
	_structural("speed_runner", "Speed Runner", "Complete a project in under 2 hours", "zap", 35, "speed", _speed_runner),
	_structural("marathon_runner", "Marathon Runner", "Spend more than 10 hours on a single project", "clock", 45, "dedication", _marathon_runner),
	_threshold("time_master", "Time Master", "Accumulate 50+ hours of total learning time", "clock", 100, "dedication", "total_time_spent", 3000),
	_threshold("consistent_learner", "Consistent Learner", "Maintain a 7-day learning streak", "target", 50, "consistency", "current_streak", 7),
	_threshold("dedication_master", "Dedication Master", "Maintain a 30-day learning streak", "award", 150, "consistency", "current_streak", 30),
	_structural("perfectionist", "Perfectionist", "Complete 5 projects with 100% completion rate", "star", 75, "quality", _perfectionist, progress=None),
	_threshold("variety_seeker", "Variety Seeker", "Complete projects in 3 different difficulty levels", "target", 60, "variety", "completed_difficulty_levels", 3),
)

ACHIEVEMENTS_BY_ID: Dict[str, AchievementDefinition] = {a.id: a for a in ACHIEVEMENT_DEFINITIONS}


# ---- Evaluation ----------------------------------------------------------

def _coerce_stats(stats: Any) -> UserStats:
	if stats is None:
		return UserStats()
	if isinstance(stats, UserStats):
		return stats
	return UserStats.model_validate(stats)


def _coerce_projects(projects: Optional[Iterable[Any]]) -> List[ProjectRecord]:
	return [p if isinstance(p, ProjectRecord) else ProjectRecord.model_validate(p) for p in projects or []]


def _earned_id(entry: Any) -> Optional[str]:
	if isinstance(entry, Mapping):
		return entry.get("id") or entry.get("achievementId") or entry.get("achievement_id")
	return getattr(entry, "achievement_id", None) or getattr(entry, "id", None)


def earned_ids(already_earned: Iterable[Any]) -> Set[str]:
	return {i for i in (_earned_id(e) for e in already_earned or ()) if i}


def check_user_achievements(
	stats: UserStats | Mapping[str, Any] | None,
	projects: Iterable[ProjectRecord | Mapping[str, Any]],
	already_earned: Iterable[Any] = (),
	*,
	now: Optional[datetime] = None,
) -> List[EarnedAchievement]:
	"""Achievements newly satisfied by ``stats``/``projects``, in catalog order.

	Anything listed in ``already_earned`` (matched on ``id``, or the legacy
	``achievementId``/``achievement_id`` keys) is never returned again.
	"""
	stats = _coerce_stats(stats)
	projects = _coerce_projects(projects)
	skip = earned_ids(already_earned)
	earned_at = now or datetime.now(timezone.utc)

	unlocked = [
		definition.award(earned_at)
		for definition in ACHIEVEMENT_DEFINITIONS
		if definition.id not in skip and definition.condition(stats, projects)
	]
	if unlocked:
		logger.info("achievements unlocked: %s", ", ".join(a.id for a in unlocked))
	return unlocked


def get_achievement_progress(achievement: Any, stats: Any, projects: Optional[Iterable[Any]]) -> float:
	"""Percent progress (0-100) toward ``achievement`` (a definition, record or id)."""
	if stats is None or projects is None:
		return 0
	achievement_id = achievement if isinstance(achievement, str) else _earned_id(achievement)
	definition = ACHIEVEMENTS_BY_ID.get(achievement_id or "")
	if definition is None or definition.progress is None:
		return 0

	stats = _coerce_stats(stats)
	projects = _coerce_projects(projects)
	if definition.progress == "binary":
		value = 100 if definition.condition(stats, projects) else 0
	elif definition.metric is not None and definition.threshold > 0:
		value = METRICS[definition.metric](stats, projects) / definition.threshold * 100
	else:
		value = 0
	return max(0, min(100, value))


# ---- Levels --------------------------------------------------------------

# (min completed projects, title, colour); each level runs up to the next one's min
LEVELS: Tuple[Tuple[int, str, str], ...] = (
	(0, "Beginner", "gray"),
	(3, "Explorer", "blue"),
	(10, "Builder", "green"),
	(25, "Creator", "purple"),
	(50, "Expert", "orange"),
	(100, "Master", "red"),
)


def get_user_level(stats: UserStats | Mapping[str, Any] | None) -> UserLevel:
	if stats is None:
		return UserLevel(level=1, title="Beginner", color="gray", progress=0, next_level_at=LEVELS[1][0], projects_to_next=LEVELS[1][0])
	completed = max(0, _coerce_stats(stats).completed_projects)

	index = 0
	for i, (minimum, _, _) in enumerate(LEVELS):
		if completed >= minimum:
			index = i
	minimum, title, color = LEVELS[index]

	if index + 1 < len(LEVELS):
		next_min = LEVELS[index + 1][0]
		progress = round_half_up((completed - minimum) / (next_min - minimum) * 100)
		return UserLevel(level=index + 1, title=title, color=color, progress=progress, next_level_at=next_min, projects_to_next=next_min - completed)
	return UserLevel(level=index + 1, title=title, color=color, progress=100, next_level_at=None, projects_to_next=0)
