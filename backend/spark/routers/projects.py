from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..gemini_client import GeminiClient
from ..models import AuthUser, Project, QuizAttempt, StepQuiz
from ..project_builder import (
	ProjectGenerationError,
	build_project_prompt,
	build_refinement_prompt,
	extract_json_object,
	normalize_generated_project,
	sanitize_project,
	validate_project,
)
from ..quiz_engine import round_half_up
from ..rate_limit import RateLimitExceeded, SlidingWindowRateLimiter
from ..schemas import ProjectRecord, Step
from .auth import User, get_current_user


router = APIRouter(prefix="/projects", tags=["projects"])
logger = logging.getLogger(__name__)

# Keys with a dedicated column; everything else lands in Project.payload
_COLUMNS = (
	"name", "description", "domain", "skill_level", "difficulty", "estimated_time",
	"type", "status", "input_source", "technologies", "tags", "steps",
)


class ProjectCreate(BaseModel):
	name: str
	description: str
	domain: str = "coding"
	skill_level: str = "intermediate"
	difficulty: int = 5
	estimated_time: Optional[str] = None
	technologies: List[str] = Field(default_factory=list)
	tags: List[str] = Field(default_factory=list)
	steps: List[Step] = Field(default_factory=list)
	status: str = "active"


class ProjectUpdate(BaseModel):
	name: Optional[str] = None
	description: Optional[str] = None
	domain: Optional[str] = None
	skill_level: Optional[str] = None
	difficulty: Optional[int] = None
	estimated_time: Optional[str] = None
	technologies: Optional[List[str]] = None
	tags: Optional[List[str]] = None
	steps: Optional[List[Step]] = None
	status: Optional[str] = None


class GenerateProjectRequest(BaseModel):
	input: str
	skill_level: str = "intermediate"
	domain: str = "coding"
	preferences: Dict[str, Any] = Field(default_factory=dict)


class RefineProjectRequest(BaseModel):
	feedback: str


class TimeSpentRequest(BaseModel):
	minutes: int = Field(gt=0)


# ---- Shared helpers (also used by the quiz and profile routers) ----------

def project_steps(row: Project) -> List[Step]:
	return [Step.model_validate(s) for s in row.steps or []]


def project_to_dict(row: Project) -> Dict[str, Any]:
	steps = row.steps or []
	completed = row.completed_steps or []
	return {
		**(row.payload or {}),
		"id": row.id,
		"name": row.name,
		"description": row.description,
		"domain": row.domain,
		"skill_level": row.skill_level,
		"difficulty": row.difficulty,
		"estimated_time": row.estimated_time,
		"type": row.type,
		"status": row.status,
		"input_source": row.input_source,
		"technologies": row.technologies or [],
		"tags": row.tags or [],
		"steps": steps,
		"progress": {
			"current_step": row.current_step,
			"completed_steps": completed,
			"total_steps": len(steps),
			"percent_complete": round_half_up(len(completed) / len(steps) * 100) if steps else 0,
			"time_spent": row.time_spent,
			"last_worked_on": row.last_worked_on,
		},
		"completed_at": row.completed_at,
		"created_at": row.created_at,
		"updated_at": row.updated_at,
	}


def project_to_record(row: Project) -> ProjectRecord:
	return ProjectRecord(
		id=row.id,
		name=row.name,
		status=row.status,
		type=row.type,
		created_at=row.created_at,
		# completion time, when known, is what "finished within a day" measures
		updated_at=row.completed_at or row.updated_at,
		last_worked_on=row.last_worked_on,
		time_spent=row.time_spent or 0,
		technologies=row.technologies or [],
		tags=row.tags or [],
		difficulty=row.difficulty,
	)


def get_owned_project(db: Session, user: User, project_id: str) -> Project:
	row = db.get(Project, project_id)
	if row is None or row.username != user.username:
		raise HTTPException(status_code=404, detail="Project not found")
	return row


def _apply(row: Project, data: Dict[str, Any]) -> None:
	payload = dict(row.payload or {})
	for key, value in data.items():
		if key == "steps":
			row.steps = [Step.model_validate(s).model_dump(exclude_none=True) for s in value or []]
		elif key in _COLUMNS:
			setattr(row, key, value)
		elif key not in ("id", "progress", "created_at", "updated_at", "completed_at"):
			payload[key] = value
	row.payload = payload


def get_ai_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
	return request.app.state.ai_rate_limiter


async def get_gemini_client():
	try:
		client = GeminiClient()
	except ValueError as e:
		raise HTTPException(status_code=500, detail=str(e))
	try:
		yield client
	finally:
		await client.aclose()


def _acquire_ai_slot(limiter: SlidingWindowRateLimiter) -> None:
	try:
		limiter.acquire()
	except RateLimitExceeded as e:
		raise HTTPException(status_code=429, detail=str(e), headers={"Retry-After": str(int(e.retry_after) + 1)})


def _consume_quota(db: Session, user: User) -> None:
	row = db.query(AuthUser).filter(AuthUser.username == user.username).first()
	if row is None:
		return
	if row.requests_used >= row.requests_limit:
		raise HTTPException(status_code=429, detail="request limit reached")
	row.requests_used += 1
	db.add(row)
	db.commit()


async def _ask_for_project(client: GeminiClient, prompt: str, learning_input: str) -> Dict[str, Any]:
	try:
		raw = await client.generate(prompt, json_mode=True)
	except Exception as e:
		logger.exception("project generation call failed")
		raise HTTPException(status_code=500, detail=f"AI service error: {e}")
	try:
		return normalize_generated_project(extract_json_object(raw), learning_input)
	except ProjectGenerationError as e:
		logger.warning("unusable generated project: %s", e)
		raise HTTPException(status_code=502, detail=f"AI response format error: {e}")


# ---- CRUD ----------------------------------------------------------------

@router.get("")
def list_projects(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	rows = (
		db.query(Project)
		.filter(Project.username == user.username)
		.order_by(Project.created_at.desc())
		.all()
	)
	return [project_to_dict(r) for r in rows]


@router.post("", status_code=201)
def create_project(req: ProjectCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	data = sanitize_project(req.model_dump())
	result = validate_project(data, "manual")
	if not result.is_valid:
		raise HTTPException(status_code=422, detail=result.errors)
	row = Project(username=user.username)
	_apply(row, data)
	db.add(row)
	db.commit()
	db.refresh(row)
	return project_to_dict(row)


@router.get("/{project_id}")
def get_project(project_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return project_to_dict(get_owned_project(db, user, project_id))


@router.put("/{project_id}")
def update_project(project_id: str, req: ProjectUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	row = get_owned_project(db, user, project_id)
	changes = req.model_dump(exclude_unset=True)
	result = validate_project({**project_to_dict(row), **changes}, "manual")
	if not result.is_valid:
		raise HTTPException(status_code=422, detail=result.errors)
	_apply(row, changes)
	if changes.get("status") == "completed" and row.completed_at is None:
		row.completed_at = datetime.utcnow()
	db.commit()
	db.refresh(row)
	return project_to_dict(row)


@router.delete("/{project_id}", status_code=204)
def delete_project(project_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	row = get_owned_project(db, user, project_id)
	db.query(QuizAttempt).filter(
		QuizAttempt.username == user.username, QuizAttempt.project_id == row.id
	).delete(synchronize_session=False)
	db.query(StepQuiz).filter(
		StepQuiz.username == user.username, StepQuiz.project_id == row.id
	).delete(synchronize_session=False)
	db.delete(row)
	db.commit()


# ---- AI generation -------------------------------------------------------

@router.post("/generate", status_code=201)
async def generate_project(
	req: GenerateProjectRequest,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
	limiter: SlidingWindowRateLimiter = Depends(get_ai_rate_limiter),
	client: GeminiClient = Depends(get_gemini_client),
):
	learning_input = (req.input or "").strip()
	if not learning_input:
		raise HTTPException(status_code=400, detail="input is required")
	_acquire_ai_slot(limiter)
	_consume_quota(db, user)
	prompt = build_project_prompt(learning_input, req.skill_level, req.domain, req.preferences)
	data = await _ask_for_project(client, prompt, learning_input)
	row = Project(username=user.username)
	_apply(row, data)
	db.add(row)
	db.commit()
	db.refresh(row)
	logger.info("generated project %s for %s", row.id, user.username)
	return project_to_dict(row)


@router.post("/{project_id}/refine")
async def refine_project(
	project_id: str,
	req: RefineProjectRequest,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
	limiter: SlidingWindowRateLimiter = Depends(get_ai_rate_limiter),
	client: GeminiClient = Depends(get_gemini_client),
):
	row = get_owned_project(db, user, project_id)
	feedback = (req.feedback or "").strip()
	if not feedback:
		raise HTTPException(status_code=400, detail="feedback is required")
	_acquire_ai_slot(limiter)
	_consume_quota(db, user)
	current = project_to_dict(row)
	current.pop("progress", None)
	data = await _ask_for_project(client, build_refinement_prompt(current, feedback), row.input_source or "")
	data["refined_at"] = datetime.utcnow().isoformat()
	_apply(row, data)
	row.completed_steps = [i for i in row.completed_steps or [] if i < len(row.steps)]
	row.current_step = min(row.current_step, max(len(row.steps) - 1, 0))
	db.commit()
	db.refresh(row)
	return project_to_dict(row)


# ---- Progress ------------------------------------------------------------

def _require_step(row: Project, step_index: int) -> None:
	if step_index < 0 or step_index >= len(row.steps or []):
		raise HTTPException(status_code=404, detail="Step not found")


@router.post("/{project_id}/steps/{step_index}/complete")
def complete_step(project_id: str, step_index: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	row = get_owned_project(db, user, project_id)
	_require_step(row, step_index)
	passed = (
		db.query(QuizAttempt)
		.filter(
			QuizAttempt.username == user.username,
			QuizAttempt.project_id == row.id,
			QuizAttempt.step_index == step_index,
			QuizAttempt.passed.is_(True),
		)
		.first()
	)
	if passed is None:
		raise HTTPException(status_code=409, detail="Pass the step quiz before completing the step")

	now = datetime.utcnow()
	completed = sorted(set(row.completed_steps or []) | {step_index})
	row.completed_steps = completed
	if step_index == row.current_step:
		row.current_step = min(step_index + 1, len(row.steps) - 1)
	row.last_worked_on = now
	if len(completed) == len(row.steps):
		row.status = "completed"
		row.completed_at = row.completed_at or now
	else:
		row.status = "in_progress"
	db.commit()
	db.refresh(row)
	return project_to_dict(row)


@router.delete("/{project_id}/steps/{step_index}/complete")
def uncomplete_step(project_id: str, step_index: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	row = get_owned_project(db, user, project_id)
	_require_step(row, step_index)
	row.completed_steps = [i for i in row.completed_steps or [] if i != step_index]
	if step_index < row.current_step:
		row.current_step = step_index
	row.status = "in_progress"
	row.completed_at = None
	row.last_worked_on = datetime.utcnow()
	db.commit()
	db.refresh(row)
	return project_to_dict(row)


@router.post("/{project_id}/time")
def add_time(project_id: str, req: TimeSpentRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	row = get_owned_project(db, user, project_id)
	row.time_spent = (row.time_spent or 0) + req.minutes
	row.last_worked_on = datetime.utcnow()
	if row.status == "active":
		row.status = "in_progress"
	db.commit()
	db.refresh(row)
	return project_to_dict(row)
