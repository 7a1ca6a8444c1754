from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import Boolean, Column, String, DateTime, Integer, Text, JSON, UniqueConstraint, Index
from .db import Base


def _new_id() -> str:
	return uuid.uuid4().hex


class AuthUser(Base):
	__tablename__ = "auth_users"
	# Primary key is username
	username = Column(String(128), primary_key=True, index=True)
	password_hash = Column(String(256), nullable=False)
	email = Column(String(256), nullable=True)
	phone = Column(String(32), nullable=True)
	# AI generation quota
	requests_used = Column(Integer, default=0, nullable=False)
	requests_limit = Column(Integer, default=1000, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	session_id = Column(String(64), primary_key=True)
	username = Column(String(128), nullable=False, index=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Project(Base):
	__tablename__ = "projects"
	id = Column(String(32), primary_key=True, default=_new_id)
	username = Column(String(128), nullable=False, index=True)
	name = Column(String(256), nullable=False)
	description = Column(Text, nullable=False, default="")
	domain = Column(String(32), nullable=False, default="coding")
	skill_level = Column(String(32), nullable=False, default="intermediate")
	difficulty = Column(Integer, nullable=False, default=5)
	estimated_time = Column(String(64), nullable=True)
	# "manual" | "generated" | "template"
	type = Column(String(16), nullable=False, default="manual")
	# "active" | "in_progress" | "completed"
	status = Column(String(16), nullable=False, default="active")
	input_source = Column(Text, nullable=True)
	technologies = Column(JSON, nullable=False, default=list)
	tags = Column(JSON, nullable=False, default=list)
	steps = Column(JSON, nullable=False, default=list)
	# Remaining generated content (objectives, resources, learning journey...)
	payload = Column(JSON, nullable=False, default=dict)
	# Progress
	time_spent = Column(Integer, nullable=False, default=0)  # minutes
	current_step = Column(Integer, nullable=False, default=0)
	completed_steps = Column(JSON, nullable=False, default=list)
	last_worked_on = Column(DateTime, nullable=True)
	completed_at = Column(DateTime, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class QuizAttempt(Base):
	__tablename__ = "quiz_attempts"
	__table_args__ = (Index("ix_quiz_attempts_step", "username", "project_id", "step_index"),)
	id = Column(String(32), primary_key=True, default=_new_id)
	username = Column(String(128), nullable=False)
	project_id = Column(String(32), nullable=False)
	step_index = Column(Integer, nullable=False)
	answers = Column(JSON, nullable=False, default=dict)
	score = Column(JSON, nullable=False)
	percentage = Column(Integer, nullable=False, default=0)
	passed = Column(Boolean, nullable=False, default=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class UserAchievement(Base):
	__tablename__ = "user_achievements"
	__table_args__ = (UniqueConstraint("username", "achievement_id", name="uq_user_achievement"),)
	id = Column(Integer, primary_key=True, autoincrement=True)
	username = Column(String(128), nullable=False, index=True)
	achievement_id = Column(String(64), nullable=False)
	title = Column(String(128), nullable=False)
	description = Column(Text, nullable=False, default="")
	icon_name = Column(String(32), nullable=False, default="star")
	points = Column(Integer, nullable=False, default=0)
	category = Column(String(32), nullable=False)
	earned_at = Column(DateTime, nullable=False)


class StepQuiz(Base):
	"""The question set currently issued for a step; regenerated on every retry."""
	__tablename__ = "step_quizzes"
	__table_args__ = (UniqueConstraint("username", "project_id", "step_index", name="uq_step_quiz"),)
	id = Column(String(32), primary_key=True, default=_new_id)
	username = Column(String(128), nullable=False)
	project_id = Column(String(32), nullable=False)
	step_index = Column(Integer, nullable=False)
	questions = Column(JSON, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
