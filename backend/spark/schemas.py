from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Difficulty(str, Enum):
	EASY = "easy"
	MEDIUM = "medium"
	HARD = "hard"


class QuestionType(str, Enum):
	MULTIPLE_CHOICE = "multiple_choice"
	TRUE_FALSE = "true_false"


def _none_to_list(value: Any) -> Any:
	return [] if value is None else value


class Step(BaseModel):
	"""One stage of a generated project.

	Accepts both the snake_case names and the camelCase keys the AI service
	emits, so a step dict from the project payload validates as-is.
	"""

	model_config = ConfigDict(populate_by_name=True, extra="ignore")

	title: Optional[str] = None
	description: Optional[str] = None
	estimated_time: Optional[str] = Field(default=None, alias="estimatedTime")
	learning_focus: Optional[str] = Field(default=None, alias="learningFocus")
	connection_to_goal: Optional[str] = Field(default=None, alias="connectionToGoal")
	# entries may be null in AI output
	hints: List[Optional[str]] = Field(default_factory=list)
	reflection_prompts: List[str] = Field(default_factory=list, alias="reflectionPrompts")

	@field_validator("hints", "reflection_prompts", mode="before")
	@classmethod
	def coerce_lists(cls, value: Any) -> Any:
		return _none_to_list(value)


class QuizOption(BaseModel):
	model_config = ConfigDict(frozen=True)

	id: str
	text: str
	correct: bool = False


class QuizQuestion(BaseModel):
	model_config = ConfigDict(frozen=True)

	id: str
	type: QuestionType
	question: str
	# multiple choice only
	options: Optional[List[QuizOption]] = None
	# true/false only
	correct: Optional[bool] = None
	explanation: str = ""
	difficulty: Difficulty
	points: int = Field(gt=0)

	def correct_option(self) -> Optional[QuizOption]:
		for option in self.options or []:
			if option.correct:
				return option
		return None


class QuizScore(BaseModel):
	model_config = ConfigDict(frozen=True)

	total_questions: int
	correct_answers: int
	total_points: int
	earned_points: int
	percentage: int
	passed: bool
	difficulty: Difficulty


class SkillCount(BaseModel):
	skill: str
	count: int


class ActivityEntry(BaseModel):
	id: Optional[str] = None
	name: Optional[str] = None
	action: str
	date: datetime
	type: str = "project"


class UserStats(BaseModel):
	model_config = ConfigDict(populate_by_name=True, extra="ignore")

	total_projects: int = Field(default=0, alias="totalProjects")
	completed_projects: int = Field(default=0, alias="completedProjects")
	# minutes
	total_time_spent: int = Field(default=0, alias="totalTimeSpent")
	completion_rate: float = Field(default=0, alias="completionRate")
	current_streak: int = Field(default=0, alias="currentStreak")
	longest_streak: int = Field(default=0, alias="longestStreak")
	favorite_skills: List[SkillCount] = Field(default_factory=list, alias="favoriteSkills")
	recent_activity: List[ActivityEntry] = Field(default_factory=list, alias="recentActivity")


class ProjectRecord(BaseModel):
	"""Read-only view of a stored project, as consumed by stats and achievements."""

	model_config = ConfigDict(populate_by_name=True, extra="ignore")

	id: Optional[str] = None
	name: Optional[str] = None
	status: str = "active"
	type: str = "manual"
	created_at: Optional[datetime] = Field(default=None, alias="createdAt")
	updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
	last_worked_on: Optional[datetime] = Field(default=None, alias="lastWorkedOn")
	# minutes
	time_spent: int = Field(default=0, alias="timeSpent")
	technologies: List[str] = Field(default_factory=list)
	tags: List[str] = Field(default_factory=list)
	difficulty: Optional[int] = None

	@field_validator("technologies", "tags", mode="before")
	@classmethod
	def coerce_lists(cls, value: Any) -> Any:
		return _none_to_list(value)


class EarnedAchievement(BaseModel):
	model_config = ConfigDict(frozen=True)

	id: str
	title: str
	description: str
	icon_name: str
	points: int
	category: str
	earned_at: datetime


class UserLevel(BaseModel):
	level: int
	title: str
	color: str
	progress: int
	next_level_at: Optional[int] = None
	projects_to_next: int = 0
