from __future__ import annotations
import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..achievements import (
	ACHIEVEMENT_CATEGORIES,
	ACHIEVEMENT_DEFINITIONS,
	check_user_achievements,
	get_achievement_progress,
	get_user_level,
)
from ..db import get_db
from ..models import Project, UserAchievement
from ..schemas import ProjectRecord, UserStats
from ..stats import calculate_user_stats
from .auth import User, get_current_user
from .projects import project_to_record


router = APIRouter(prefix="/profile", tags=["profile"])
logger = logging.getLogger(__name__)


def _user_projects(db: Session, user: User) -> List[ProjectRecord]:
	rows = db.query(Project).filter(Project.username == user.username).all()
	return [project_to_record(r) for r in rows]


def _earned_rows(db: Session, user: User) -> List[UserAchievement]:
	return (
		db.query(UserAchievement)
		.filter(UserAchievement.username == user.username)
		.order_by(UserAchievement.earned_at.asc(), UserAchievement.id.asc())
		.all()
	)


def _earned_to_dict(row: UserAchievement) -> dict:
	return {
		"id": row.achievement_id,
		"title": row.title,
		"description": row.description,
		"icon_name": row.icon_name,
		"points": row.points,
		"category": row.category,
		"earned_at": row.earned_at,
	}


@router.get("/stats", response_model=UserStats)
def get_stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return calculate_user_stats(_user_projects(db, user))


@router.get("/level")
def get_level(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return get_user_level(calculate_user_stats(_user_projects(db, user)))


@router.get("/achievements")
def list_achievements(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	"""Earned achievements plus the whole catalog with per-achievement progress."""
	projects = _user_projects(db, user)
	stats = calculate_user_stats(projects)
	earned = _earned_rows(db, user)
	earned_ids = {row.achievement_id for row in earned}
	catalog = [
		{
			"id": d.id,
			"title": d.title,
			"description": d.description,
			"icon_name": d.icon_name,
			"points": d.points,
			"category": d.category,
			"earned": d.id in earned_ids,
			"progress": 100 if d.id in earned_ids else get_achievement_progress(d, stats, projects),
		}
		for d in ACHIEVEMENT_DEFINITIONS
	]
	return {
		"earned": [_earned_to_dict(r) for r in earned],
		"total_points": sum(r.points for r in earned),
		"catalog": catalog,
	}


@router.post("/achievements/check")
def check_achievements(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	projects = _user_projects(db, user)
	stats = calculate_user_stats(projects)
	unlocked = check_user_achievements(stats, projects, _earned_rows(db, user), now=datetime.utcnow())
	for achievement in unlocked:
		db.add(UserAchievement(
			username=user.username,
			achievement_id=achievement.id,
			title=achievement.title,
			description=achievement.description,
			icon_name=achievement.icon_name,
			points=achievement.points,
			category=achievement.category,
			earned_at=achievement.earned_at,
		))
	db.commit()
	if unlocked:
		logger.info("%s unlocked %d achievement(s)", user.username, len(unlocked))
	return {"unlocked": unlocked}


@router.get("/achievements/categories")
def list_categories():
	return ACHIEVEMENT_CATEGORIES
