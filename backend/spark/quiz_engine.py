from __future__ import annotations
import logging
import math
import random
from operator import attrgetter
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from .schemas import Difficulty, QuestionType, QuizOption, QuizQuestion, QuizScore, Step


logger = logging.getLogger(__name__)

T = TypeVar("T")

PASSING_PERCENTAGE = 90
BONUS_QUESTION_POINTS = 35

POINTS_BY_DIFFICULTY: Dict[Difficulty, int] = {
	Difficulty.EASY: 25,
	Difficulty.MEDIUM: 25,
	Difficulty.HARD: 30,
}

_OPTION_LETTERS = "abcdefghijklmnopqrstuvwxyz"
_default_rng = random.Random()


# ---- Distractor banks ----------------------------------------------------

_MAIN_FOCUS_BANK: Dict[Difficulty, Tuple[str, ...]] = {
	Difficulty.EASY: (
		"Setting up the development environment",
		"Writing documentation",
		"Testing the application",
	),
	Difficulty.MEDIUM: (
		"Implementing error handling mechanisms",
		"Optimizing performance bottlenecks",
		"Configuring deployment pipelines",
	),
	Difficulty.HARD: (
		"Architecting scalable microservices",
		"Implementing advanced security protocols",
		"Designing distributed system patterns",
	),
}

_BEST_APPROACH_BANK: Dict[Difficulty, Tuple[str, ...]] = {
	Difficulty.EASY: (
		"Rush through without understanding",
		"Skip testing your work",
		"Avoid asking for help when stuck",
	),
	Difficulty.MEDIUM: (
		"Implement without planning the architecture",
		"Ignore code review feedback",
		"Skip version control for small changes",
	),
	Difficulty.HARD: (
		"Optimize prematurely without profiling",
		"Implement complex patterns without justification",
		"Ignore scalability considerations",
	),
}

_ADVANCED_DISTRACTORS: Tuple[str, ...] = (
	"Implement without considering edge cases",
	"Focus only on happy path scenarios",
	"Ignore performance implications",
)

# Tier that lends its first sentence to a harder tier's distractor set.
_SOFTENING_TIER: Dict[Difficulty, Optional[Difficulty]] = {
	Difficulty.EASY: None,
	Difficulty.MEDIUM: Difficulty.EASY,
	Difficulty.HARD: Difficulty.MEDIUM,
}

DISTRACTOR_BANKS: Dict[str, Dict[Difficulty, Tuple[str, ...]]] = {
	"main_focus": _MAIN_FOCUS_BANK,
	"best_approach": _BEST_APPROACH_BANK,
}


# ---- Question wording ----------------------------------------------------

_PURPOSE_STATEMENTS: Dict[Difficulty, str] = {
	Difficulty.EASY: "This step helps you understand {focus}. True or False?",
	Difficulty.MEDIUM: "Completing this step is essential for achieving the overall project objectives. True or False?",
	Difficulty.HARD: "This step represents a critical dependency for subsequent implementation phases. True or False?",
}

_HINTED_APPROACH_QUESTIONS: Dict[Difficulty, str] = {
	Difficulty.EASY: "Which of the following is a helpful approach for this step?",
	Difficulty.MEDIUM: "What is the most effective strategy for implementing this step?",
	Difficulty.HARD: "Which approach demonstrates best practices for this implementation phase?",
}

# (question, correct answer) used when the step carries no hints
_GENERIC_APPROACH: Dict[Difficulty, Tuple[str, str]] = {
	Difficulty.EASY: (
		"What is the best approach when working on this step?",
		"Break it down into smaller tasks",
	),
	Difficulty.MEDIUM: (
		"What should be prioritized when approaching this step?",
		"Plan the architecture before implementation",
	),
	Difficulty.HARD: (
		"Which principle should guide the implementation of this step?",
		"Consider scalability and maintainability from the start",
	),
}

_REFLECTION_STATEMENTS: Dict[Difficulty, str] = {
	Difficulty.EASY: "Completing this step will contribute to your overall project understanding. True or False?",
	Difficulty.MEDIUM: "This step establishes foundational knowledge required for advanced project components. True or False?",
	Difficulty.HARD: "The concepts learned in this step are critical for system architecture decisions. True or False?",
}


# ---- Helpers -------------------------------------------------------------

def round_half_up(value: float) -> int:
	return int(math.floor(value + 0.5))


def shuffled(items: Iterable[T], rng: Optional[random.Random] = None) -> List[T]:
	"""Return a shuffled copy of ``items`` (Fisher-Yates); the input is untouched."""
	rng = rng or _default_rng
	result = list(items)
	for i in range(len(result) - 1, 0, -1):
		j = rng.randrange(i + 1)
		result[i], result[j] = result[j], result[i]
	return result


def quiz_difficulty_for(project_difficulty: float) -> Difficulty:
	if project_difficulty <= 3:
		return Difficulty.EASY
	if project_difficulty <= 7:
		return Difficulty.MEDIUM
	return Difficulty.HARD


def distractors_for(kind: str, difficulty: Difficulty) -> List[str]:
	bank = DISTRACTOR_BANKS[kind]
	softening = _SOFTENING_TIER[difficulty]
	if softening is None:
		picked = list(bank[difficulty])
	else:
		picked = [bank[softening][0], *bank[difficulty][:2]]
	return picked[:3]


def _shuffled_options(correct_text: str, distractors: Sequence[str], rng: Optional[random.Random]) -> List[QuizOption]:
	pairs = [(correct_text, True)] + [(text, False) for text in distractors]
	return [
		QuizOption(id=_OPTION_LETTERS[index], text=text, correct=correct)
		for index, (text, correct) in enumerate(shuffled(pairs, rng))
	]


# ---- Generation ----------------------------------------------------------

def generate_quiz_questions(
	step: Step | Mapping[str, Any],
	step_index: int,
	domain: str = "coding",
	project_difficulty: float = 5,
	*,
	rng: Optional[random.Random] = None,
) -> List[QuizQuestion]:
	"""Build the quiz for one project step.

	Question texts and correct answers depend only on the inputs; ``rng`` only
	decides the order of multiple-choice options (and hence which letter is
	correct). ``domain`` is accepted for callers but does not select a
	different distractor bank yet.
	"""
	if step is None:
		raise ValueError("step is required to generate quiz questions")
	if not isinstance(step, Step):
		step = Step.model_validate(step)

	difficulty = quiz_difficulty_for(project_difficulty)
	points = POINTS_BY_DIFFICULTY[difficulty]
	prefix = f"step_{step_index}"
	focus = step.learning_focus
	questions: List[QuizQuestion] = []

	if step.title and step.description:
		correct_focus = focus or step.description[:50] + "..."
		questions.append(QuizQuestion(
			id=f"{prefix}_q1",
			type=QuestionType.MULTIPLE_CHOICE,
			question=f'What is the main focus of "{step.title}"?',
			options=_shuffled_options(correct_focus, distractors_for("main_focus", difficulty), rng),
			explanation=f"The main focus is {focus or step.description}",
			difficulty=difficulty,
			points=points,
		))
		# TODO: every true/false item is keyed True; decide whether negated statements should be generated
		questions.append(QuizQuestion(
			id=f"{prefix}_q2",
			type=QuestionType.TRUE_FALSE,
			question=_PURPOSE_STATEMENTS[difficulty].format(focus=focus or "the core concepts"),
			correct=True,
			explanation=step.connection_to_goal or f"This step is designed to build understanding of {focus or 'key concepts'}.",
			difficulty=difficulty,
			points=points,
		))

	if step.hints and step.hints[0]:
		approach_question = _HINTED_APPROACH_QUESTIONS[difficulty]
		approach_answer = step.hints[0]
		approach_explanation = f'The hint "{step.hints[0]}" provides valuable guidance for completing this step effectively.'
	else:
		approach_question, approach_answer = _GENERIC_APPROACH[difficulty]
		approach_explanation = "This approach follows software development best practices and ensures quality implementation."
	questions.append(QuizQuestion(
		id=f"{prefix}_q3",
		type=QuestionType.MULTIPLE_CHOICE,
		question=approach_question,
		options=_shuffled_options(approach_answer, distractors_for("best_approach", difficulty), rng),
		explanation=approach_explanation,
		difficulty=difficulty,
		points=points,
	))

	questions.append(QuizQuestion(
		id=f"{prefix}_q4",
		type=QuestionType.TRUE_FALSE,
		question=_REFLECTION_STATEMENTS[difficulty],
		correct=True,
		explanation=step.connection_to_goal or "Each step builds upon previous knowledge and contributes to the complete understanding of the project.",
		difficulty=difficulty,
		points=points,
	))

	if difficulty is Difficulty.HARD and len(step.hints) >= 2:
		questions.append(QuizQuestion(
			id=f"{prefix}_q5",
			type=QuestionType.MULTIPLE_CHOICE,
			question="What advanced consideration should be made during this step?",
			options=_shuffled_options(step.hints[1] or "Consider all possible failure scenarios", _ADVANCED_DISTRACTORS, rng),
			explanation="Advanced implementations require consideration of edge cases, performance, and maintainability.",
			difficulty=Difficulty.HARD,
			points=BONUS_QUESTION_POINTS,
		))

	return questions


# ---- Scoring -------------------------------------------------------------

def _is_correct(question: QuizQuestion, answer: Any) -> bool:
	if question.type is QuestionType.MULTIPLE_CHOICE:
		option = question.correct_option()
		return option is not None and isinstance(answer, str) and answer == option.id
	if question.type is QuestionType.TRUE_FALSE:
		return isinstance(answer, bool) and question.correct is not None and answer == question.correct
	return False


def calculate_quiz_score(answers: Mapping[str, Any], questions: Sequence[QuizQuestion]) -> QuizScore:
	total_points = 0
	earned_points = 0
	correct_answers = 0
	answers = answers or {}

	for question in questions:
		total_points += question.points
		answer = answers.get(question.id)
		if _is_correct(question, answer):
			earned_points += question.points
			correct_answers += 1
			logger.debug("quiz %s: correct (+%d)", question.id, question.points)
		else:
			logger.debug("quiz %s: incorrect (answer=%r)", question.id, answer)

	percentage = round_half_up(earned_points / total_points * 100) if total_points > 0 else 0
	score = QuizScore(
		total_questions=len(questions),
		correct_answers=correct_answers,
		total_points=total_points,
		earned_points=earned_points,
		percentage=percentage,
		passed=percentage >= PASSING_PERCENTAGE,
		difficulty=questions[0].difficulty if questions else Difficulty.MEDIUM,
	)
	logger.info(
		"quiz scored: %d/%d correct, %d%% (%s)",
		correct_answers, len(questions), percentage, "passed" if score.passed else "not passed",
	)
	return score


def best_attempt(attempts: Iterable[T], key: Callable[[T], float] = attrgetter("percentage")) -> Optional[T]:
	"""Highest-percentage attempt; the earliest one wins a tie."""
	best: Optional[T] = None
	for attempt in attempts:
		if best is None or key(attempt) > key(best):
			best = attempt
	return best
