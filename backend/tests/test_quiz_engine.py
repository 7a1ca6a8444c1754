"""
Tests for step quiz generation
"""
import random

import pytest

from spark.quiz_engine import (
	BONUS_QUESTION_POINTS,
	distractors_for,
	generate_quiz_questions,
	quiz_difficulty_for,
	round_half_up,
	shuffled,
)
from spark.schemas import Difficulty, QuestionType, Step


class TestHelpers:
	def test_round_half_up(self):
		assert round_half_up(89.5) == 90
		assert round_half_up(2.5) == 3
		assert round_half_up(89.49) == 89
		assert round_half_up(0) == 0

	@pytest.mark.parametrize("level,expected", [
		(1, Difficulty.EASY),
		(3, Difficulty.EASY),
		(3.5, Difficulty.MEDIUM),
		(7, Difficulty.MEDIUM),
		(8, Difficulty.HARD),
		(10, Difficulty.HARD),
	])
	def test_quiz_difficulty_for(self, level, expected):
		assert quiz_difficulty_for(level) is expected

	def test_shuffled_is_a_permutation_and_leaves_input_alone(self):
		items = list(range(10))
		result = shuffled(items, random.Random(7))
		assert sorted(result) == items
		assert items == list(range(10))

	def test_shuffled_empty_and_single(self):
		assert shuffled([]) == []
		assert shuffled(["only"]) == ["only"]

	def test_shuffled_is_deterministic_for_a_seeded_rng(self):
		assert shuffled("abcdef", random.Random(3)) == shuffled("abcdef", random.Random(3))

	def test_distractors_by_tier(self):
		assert distractors_for("main_focus", Difficulty.EASY) == [
			"Setting up the development environment",
			"Writing documentation",
			"Testing the application",
		]
		# harder tiers lead with the first sentence of the tier below
		assert distractors_for("main_focus", Difficulty.MEDIUM) == [
			"Setting up the development environment",
			"Implementing error handling mechanisms",
			"Optimizing performance bottlenecks",
		]
		assert distractors_for("best_approach", Difficulty.HARD) == [
			"Implement without planning the architecture",
			"Optimize prematurely without profiling",
			"Implement complex patterns without justification",
		]


class TestGenerateQuizQuestions:
	def test_full_step_medium(self, sample_step):
		"""Scenario: medium project, step with title, description and hints"""
		questions = generate_quiz_questions(sample_step, 0, "coding", 5, rng=random.Random(1))

		assert [q.id for q in questions] == ["step_0_q1", "step_0_q2", "step_0_q3", "step_0_q4"]
		assert [q.type for q in questions] == [
			QuestionType.MULTIPLE_CHOICE,
			QuestionType.TRUE_FALSE,
			QuestionType.MULTIPLE_CHOICE,
			QuestionType.TRUE_FALSE,
		]
		assert all(q.difficulty is Difficulty.MEDIUM and q.points == 25 for q in questions)

		q1 = questions[0]
		assert q1.question == 'What is the main focus of "Build the data model"?'
		assert q1.correct_option().text == "relational data modelling"
		assert [o.id for o in q1.options] == ["a", "b", "c", "d"]
		assert sum(o.correct for o in q1.options) == 1

		q3 = questions[2]
		assert q3.question == "What is the most effective strategy for implementing this step?"
		assert q3.correct_option().text == "Sketch the entities first"

		assert questions[1].correct is True
		assert questions[3].correct is True
		assert questions[1].explanation == sample_step["connectionToGoal"]

	def test_low_difficulty_is_all_easy(self, sample_step):
		questions = generate_quiz_questions(sample_step, 2, project_difficulty=2)
		assert all(q.difficulty is Difficulty.EASY for q in questions)
		assert all(q.points == 25 for q in questions)
		assert questions[1].question == "This step helps you understand relational data modelling. True or False?"

	def test_hard_with_two_hints_adds_bonus_question(self, sample_step):
		questions = generate_quiz_questions(sample_step, 3, project_difficulty=9)
		assert len(questions) == 5
		assert [q.points for q in questions] == [30, 30, 30, 30, BONUS_QUESTION_POINTS]
		bonus = questions[4]
		assert bonus.id == "step_3_q5"
		assert bonus.difficulty is Difficulty.HARD
		assert bonus.correct_option().text == "Think about which queries must be fast"

	def test_hard_with_one_hint_has_no_bonus(self, sample_step):
		sample_step["hints"] = ["Sketch the entities first"]
		questions = generate_quiz_questions(sample_step, 0, project_difficulty=9)
		assert len(questions) == 4

	def test_null_hints_fall_back(self, sample_step):
		sample_step["hints"] = [None, None]
		questions = generate_quiz_questions(sample_step, 0, project_difficulty=9)
		assert questions[2].correct_option().text == "Consider scalability and maintainability from the start"
		assert len(questions) == 5
		assert questions[4].correct_option().text == "Consider all possible failure scenarios"

	def test_missing_title_skips_focus_questions(self):
		questions = generate_quiz_questions({"description": "No title here"}, 1)
		assert [q.id for q in questions] == ["step_1_q3", "step_1_q4"]

	def test_no_hints_uses_generic_approach(self):
		step = Step(title="Plan", description="Plan the work")
		questions = generate_quiz_questions(step, 0, project_difficulty=5)
		q3 = questions[2]
		assert q3.question == "What should be prioritized when approaching this step?"
		assert q3.correct_option().text == "Plan the architecture before implementation"

	def test_focus_falls_back_to_description_prefix(self):
		description = "x" * 80
		questions = generate_quiz_questions({"title": "T", "description": description}, 0)
		assert questions[0].correct_option().text == "x" * 50 + "..."

	def test_none_step_is_rejected(self):
		with pytest.raises(ValueError):
			generate_quiz_questions(None, 0)

	def test_option_order_varies_between_runs(self, sample_step):
		rng = random.Random(42)
		orders = {
			tuple(o.text for o in generate_quiz_questions(sample_step, 0, rng=rng)[0].options)
			for _ in range(20)
		}
		assert len(orders) > 1

	def test_texts_do_not_depend_on_rng(self, sample_step):
		first = generate_quiz_questions(sample_step, 0, rng=random.Random(1))
		second = generate_quiz_questions(sample_step, 0, rng=random.Random(2))
		assert [q.question for q in first] == [q.question for q in second]
		assert [q.correct_option().text for q in first if q.options] == [
			q.correct_option().text for q in second if q.options
		]
