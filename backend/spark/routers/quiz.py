from __future__ import annotations
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import QuizAttempt, StepQuiz
from ..quiz_engine import best_attempt, calculate_quiz_score, generate_quiz_questions
from ..schemas import QuizQuestion
from .auth import User, get_current_user
from .projects import get_owned_project, project_steps


router = APIRouter(prefix="/quiz", tags=["quiz"])
logger = logging.getLogger(__name__)


class SubmitQuizRequest(BaseModel):
	# question id -> option letter (multiple choice) or bool (true/false)
	answers: Dict[str, Any] = Field(default_factory=dict)


def _public_question(question: QuizQuestion) -> Dict[str, Any]:
	"""Question as shown while answering: no answer key, no explanation."""
	data = question.model_dump(mode="json", exclude={"correct", "explanation"})
	if data.get("options") is not None:
		data["options"] = [{"id": o["id"], "text": o["text"]} for o in data["options"]]
	else:
		data.pop("options", None)
	return data


def _attempt_to_dict(row: QuizAttempt) -> Dict[str, Any]:
	return {
		"id": row.id,
		"project_id": row.project_id,
		"step_index": row.step_index,
		"answers": row.answers,
		"score": row.score,
		"passed": row.passed,
		"timestamp": row.created_at,
	}


def _step_attempts(db: Session, user: User, project_id: str, step_index: int) -> List[QuizAttempt]:
	return (
		db.query(QuizAttempt)
		.filter(
			QuizAttempt.username == user.username,
			QuizAttempt.project_id == project_id,
			QuizAttempt.step_index == step_index,
		)
		.order_by(QuizAttempt.created_at.asc())
		.all()
	)


@router.post("/projects/{project_id}/steps/{step_index}")
def start_step_quiz(project_id: str, step_index: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	project = get_owned_project(db, user, project_id)
	steps = project_steps(project)
	if step_index < 0 or step_index >= len(steps):
		raise HTTPException(status_code=404, detail="Step not found")

	questions = generate_quiz_questions(steps[step_index], step_index, project.domain, project.difficulty)

	previous = (
		db.query(StepQuiz)
		.filter(StepQuiz.username == user.username, StepQuiz.project_id == project.id, StepQuiz.step_index == step_index)
		.first()
	)
	if previous is not None:
		db.delete(previous)
		db.flush()
	quiz = StepQuiz(
		username=user.username,
		project_id=project.id,
		step_index=step_index,
		questions=[q.model_dump(mode="json") for q in questions],
	)
	db.add(quiz)
	db.commit()
	db.refresh(quiz)
	return {
		"quiz_id": quiz.id,
		"project_id": project.id,
		"step_index": step_index,
		"questions": [_public_question(q) for q in questions],
	}


@router.post("/{quiz_id}/submit")
def submit_quiz(quiz_id: str, req: SubmitQuizRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	quiz = db.get(StepQuiz, quiz_id)
	if quiz is None or quiz.username != user.username:
		raise HTTPException(status_code=404, detail="Quiz not found")
	questions = [QuizQuestion.model_validate(q) for q in quiz.questions]
	score = calculate_quiz_score(req.answers, questions)
	project_id, step_index = quiz.project_id, quiz.step_index

	attempt = QuizAttempt(
		username=user.username,
		project_id=project_id,
		step_index=step_index,
		answers=req.answers,
		score=score.model_dump(mode="json"),
		percentage=score.percentage,
		passed=score.passed,
	)
	db.add(attempt)
	# The answer key goes back to the client, so an issued quiz is good for one submission
	db.delete(quiz)
	db.commit()
	db.refresh(attempt)
	logger.info(
		"quiz attempt %s: %s step %d -> %d%%", attempt.id, project_id, step_index, score.percentage
	)
	return {
		"attempt_id": attempt.id,
		"score": score,
		"questions": questions,
	}


@router.get("/projects/{project_id}/steps/{step_index}/attempts")
def list_attempts(project_id: str, step_index: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	project = get_owned_project(db, user, project_id)
	return [_attempt_to_dict(a) for a in _step_attempts(db, user, project.id, step_index)]


@router.get("/projects/{project_id}/steps/{step_index}/best")
def best_step_score(project_id: str, step_index: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	project = get_owned_project(db, user, project_id)
	best = best_attempt(_step_attempts(db, user, project.id, step_index))
	if best is None:
		raise HTTPException(status_code=404, detail="No attempts for this step")
	return _attempt_to_dict(best)


@router.get("/projects/{project_id}/best")
def best_scores(project_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	"""Best score per step index, for steps that have at least one attempt."""
	project = get_owned_project(db, user, project_id)
	rows = (
		db.query(QuizAttempt)
		.filter(QuizAttempt.username == user.username, QuizAttempt.project_id == project.id)
		.order_by(QuizAttempt.created_at.asc())
		.all()
	)
	by_step: Dict[int, List[QuizAttempt]] = {}
	for row in rows:
		by_step.setdefault(row.step_index, []).append(row)
	return {str(i): best_attempt(attempts).score for i, attempts in sorted(by_step.items())}
