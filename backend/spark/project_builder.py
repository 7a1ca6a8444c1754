"""Prompting, parsing and validation for AI-generated projects.

The AI service is asked for a single JSON document describing a hands-on
project. Whatever comes back is parsed leniently, checked against the
project schemas below and filled with defaults before it is stored.
"""
from __future__ import annotations
import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


PROJECT_DOMAINS = ("coding", "hardware", "design", "research")
SKILL_LEVELS = ("beginner", "intermediate", "advanced")
PROJECT_TYPES = ("manual", "generated", "template")

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 10

PROJECT_SCHEMAS: Dict[str, Dict[str, tuple]] = {
	"manual": {
		"required": ("name", "description"),
		"optional": ("technologies", "tags", "status"),
	},
	"generated": {
		"required": (
			"name", "description", "domain", "skill_level", "difficulty",
			"estimated_time", "learning_objectives", "technologies", "steps",
		),
		"optional": ("requirements", "extensions", "resources", "input_source", "tags", "status"),
	},
	"template": {
		"required": ("name", "description", "domain", "skill_level", "steps", "learning_objectives", "technologies"),
		"optional": ("requirements", "extensions", "resources", "tags", "difficulty", "estimated_time"),
	},
}

# camelCase keys emitted by the model -> stored snake_case keys
_KEY_MAP = {
	"skillLevel": "skill_level",
	"estimatedTime": "estimated_time",
	"learningObjectives": "learning_objectives",
	"problemSolutionMapping": "problem_solution_mapping",
	"learningJourney": "learning_journey",
	"inputSource": "input_source",
}

_LIST_FIELDS = ("tags", "learning_objectives", "technologies", "steps", "extensions", "resources")


class ProjectGenerationError(Exception):
	"""The AI service returned something that cannot be turned into a project."""


@dataclass
class ValidationResult:
	is_valid: bool
	errors: List[str] = field(default_factory=list)
	warnings: List[str] = field(default_factory=list)


def build_project_prompt(learning_input: str, skill_level: str, domain: str, preferences: Optional[Dict[str, Any]] = None) -> str:
	return (
		"You are an expert educational project designer. Create a hands-on project that clearly solves the student's learning problem.\n"
		f'STUDENT\'S LEARNING INPUT: "{learning_input}"\n'
		f"SKILL LEVEL: {skill_level}\n"
		f"DOMAIN: {domain}\n"
		f"PREFERENCES: {json.dumps(preferences or {})}\n\n"
		"Build a clear narrative from \"I want to learn X\" to \"here is a project that teaches X\" to \"here is how each step builds understanding of X\".\n"
		"Return ONLY a JSON object with keys:\n"
		"title, description (2-3 sentences), domain, skillLevel, estimatedTime, difficulty (integer 1-10),\n"
		"problemSolutionMapping {originalProblem, howProjectSolves, whyThisApproach, keyConnections[]},\n"
		"learningObjectives [{objective, connectionToInput, measurableOutcome}], technologies [string],\n"
		"requirements {tools[], materials[], prerequisites[]},\n"
		"steps [{title, description, estimatedTime, learningFocus, connectionToGoal, hints[] (at least two), reflectionPrompts[]}],\n"
		"extensions [string], resources [{title, url, type}],\n"
		"learningJourney {beforeProject, duringProject, afterProject, realWorldApplication}.\n"
		"Keep it practical, achievable within the estimated time and appropriate for the skill level.\n"
		"No markdown, no commentary."
	)


def build_refinement_prompt(project: Dict[str, Any], feedback: str) -> str:
	return (
		"Refine this project based on user feedback.\n"
		f"PROJECT: {json.dumps(project, default=str)}\n"
		f"FEEDBACK: {feedback}\n\n"
		"Return the updated project with the same JSON structure, keeping its educational value.\n"
		"Return ONLY the JSON object."
	)


def extract_json_object(text: str) -> Dict[str, Any]:
	candidates = [text]
	code_block = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text or "")
	if code_block:
		candidates.append(code_block.group(1))
	first = (text or "").find("{")
	last = (text or "").rfind("}")
	if first != -1 and last > first:
		candidates.append(text[first : last + 1])
	for candidate in candidates:
		try:
			data = json.loads(candidate)
		except (TypeError, ValueError):
			continue
		if isinstance(data, dict):
			return data
	raise ProjectGenerationError("AI response was not a JSON object")


def _is_missing(value: Any) -> bool:
	return value is None or value == "" or (isinstance(value, (list, tuple, dict)) and not value)


def validate_project(data: Dict[str, Any], project_type: str = "manual") -> ValidationResult:
	schema = PROJECT_SCHEMAS.get(project_type)
	if schema is None:
		return ValidationResult(False, [f"Unknown project type: {project_type}"])

	errors = [f"Required field missing: {name}" for name in schema["required"] if _is_missing(data.get(name))]
	warnings: List[str] = []

	domain = data.get("domain")
	if domain and domain not in PROJECT_DOMAINS:
		errors.append(f"Invalid domain: {domain}")
	skill_level = data.get("skill_level")
	if skill_level and skill_level not in SKILL_LEVELS:
		errors.append(f"Invalid skill level: {skill_level}")
	difficulty = data.get("difficulty")
	if difficulty is not None:
		if not isinstance(difficulty, (int, float)) or isinstance(difficulty, bool):
			errors.append("Difficulty must be a number")
		elif not MIN_DIFFICULTY <= difficulty <= MAX_DIFFICULTY:
			errors.append(f"Difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}")

	if project_type == "generated":
		for index, step in enumerate(data.get("steps") or [], start=1):
			if not isinstance(step, dict):
				errors.append(f"Step {index} is not an object")
				continue
			if not step.get("title"):
				errors.append(f"Step {index} missing title")
			if not step.get("description"):
				errors.append(f"Step {index} missing description")

	if "learning_objectives" in data and not data["learning_objectives"]:
		warnings.append("No learning objectives specified")
	if "technologies" in data and not data["technologies"]:
		warnings.append("No technologies specified")

	return ValidationResult(not errors, errors, warnings)


def sanitize_project(data: Dict[str, Any]) -> Dict[str, Any]:
	sanitized = dict(data)
	for key in ("name", "description"):
		if isinstance(sanitized.get(key), str):
			sanitized[key] = sanitized[key].strip()
	for key in _LIST_FIELDS:
		if not isinstance(sanitized.get(key), list):
			sanitized[key] = []
	if not isinstance(sanitized.get("requirements"), dict):
		sanitized["requirements"] = {"tools": [], "materials": [], "prerequisites": []}
	sanitized["technologies"] = [str(t).strip() for t in sanitized["technologies"] if str(t).strip()]
	sanitized["status"] = sanitized.get("status") or "active"
	sanitized["type"] = sanitized.get("type") or "manual"
	sanitized["domain"] = sanitized.get("domain") or "coding"
	sanitized["skill_level"] = sanitized.get("skill_level") or "intermediate"
	sanitized["difficulty"] = sanitized.get("difficulty") or 5
	sanitized["estimated_time"] = sanitized.get("estimated_time") or "Unknown"
	return sanitized


def _snake_case_keys(data: Dict[str, Any]) -> Dict[str, Any]:
	return {_KEY_MAP.get(key, key): value for key, value in data.items()}


def normalize_generated_project(data: Dict[str, Any], learning_input: str) -> Dict[str, Any]:
	project = _snake_case_keys(data)
	name = project.get("title") or project.get("name")
	if not name:
		raise ProjectGenerationError("Generated project is missing title/name")
	if not project.get("description"):
		raise ProjectGenerationError("Generated project is missing description")

	project["name"] = str(name)
	project.pop("title", None)
	difficulty = project.get("difficulty")
	if isinstance(difficulty, str) and difficulty.strip().isdigit():
		project["difficulty"] = int(difficulty.strip())
	elif isinstance(difficulty, float):
		project["difficulty"] = int(round(difficulty))
	project["type"] = "generated"
	project["input_source"] = learning_input
	project["generated_at"] = datetime.now(timezone.utc).isoformat()

	project = sanitize_project(project)
	result = validate_project(project, "generated")
	if not result.is_valid:
		raise ProjectGenerationError("; ".join(result.errors))
	return project
