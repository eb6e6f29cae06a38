"""
Adaptive Quiz Composer.

Builds a personalized quiz from a pool of question templates:

1. Keep templates whose difficulty is strictly within 0.2 of the target
2. Adapt each one to the target difficulty:
   - below 0.3: keep the first 3 options and attach a hint
   - above 0.7: add one distractor option and drop any hint
   - otherwise: unchanged
3. Keep at most 5 questions

Focus areas are echoed in the quiz metadata. Ordering by focus area is
opt-in (``prioritize_focus_areas``); by default pool order is kept.

Distractors are drawn from an injected ``random.Random`` so a seeded
composer is fully deterministic.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from langlearn.core.content import QuestionType, QuizQuestion
from langlearn.core.models import QuizConfig

GENERIC_HINT = "Consider the context carefully"
DEFAULT_TEMPLATE_DIFFICULTY = 0.5


@dataclass
class ComposedQuiz:
    """A quiz ready to present."""

    questions: list[QuizQuestion]
    difficulty: float
    focus_areas: list[str] = field(default_factory=list)

    @property
    def metadata(self) -> dict[str, Any]:
        return {"difficulty": self.difficulty, "focus_areas": self.focus_areas}

    def to_dict(self) -> dict[str, Any]:
        return {
            "questions": [q.model_dump(mode="json", exclude_none=True) for q in self.questions],
            "metadata": self.metadata,
        }


class AdaptiveQuizComposer:
    """Filters and reshapes quiz templates for a target difficulty."""

    def __init__(
        self,
        rng: random.Random | None = None,
        tolerance: float = 0.2,
        max_questions: int = 5,
        easy_threshold: float = 0.3,
        hard_threshold: float = 0.7,
        easy_option_limit: int = 3,
        prioritize_focus_areas: bool = False,
    ):
        self.rng = rng or random.Random()
        self.tolerance = tolerance
        self.max_questions = max_questions
        self.easy_threshold = easy_threshold
        self.hard_threshold = hard_threshold
        self.easy_option_limit = easy_option_limit
        self.prioritize_focus_areas = prioritize_focus_areas

    def compose(self, config: QuizConfig, templates: Sequence[QuizQuestion]) -> ComposedQuiz:
        """
        Compose a quiz for a learner's quiz config.

        With ``prioritize_focus_areas`` set, templates tagged with one of the
        focus areas are placed ahead of the others (relative order preserved)
        before truncation.
        """
        target = config.difficulty_level
        selected = self.select_templates(templates, target)

        if self.prioritize_focus_areas and config.focus_areas:
            focus = {area.lower() for area in config.focus_areas}
            selected = sorted(
                selected, key=lambda q: 0 if (q.topic or "").lower() in focus else 1
            )

        questions = [self.adapt_question(q, target) for q in selected[: self.max_questions]]
        logger.debug(
            f"Composed {len(questions)} questions at difficulty {target:.2f} "
            f"from {len(selected)}/{len(templates)} templates"
        )
        return ComposedQuiz(
            questions=questions,
            difficulty=target,
            focus_areas=sorted(config.focus_areas),
        )

    def select_templates(
        self, templates: Sequence[QuizQuestion], target: float
    ) -> list[QuizQuestion]:
        """Templates with |difficulty - target| < tolerance, in pool order."""
        return [t for t in templates if abs(self.template_difficulty(t) - target) < self.tolerance]

    @staticmethod
    def template_difficulty(template: QuizQuestion) -> float:
        if template.difficulty is None:
            return DEFAULT_TEMPLATE_DIFFICULTY
        return template.difficulty

    def adapt_question(self, template: QuizQuestion, target: float) -> QuizQuestion:
        """Return an adapted copy; the template itself is never modified."""
        if target < self.easy_threshold:
            question = template.model_copy(
                update={"options": list(template.options[: self.easy_option_limit])}
            )
            question.hint = self.generate_hint(question)
            return question

        if target > self.hard_threshold:
            return template.model_copy(
                update={
                    "options": [*template.options, self.pick_distractor(template.options)],
                    "hint": None,
                }
            )

        return template.model_copy(deep=True)

    @staticmethod
    def generate_hint(question: QuizQuestion) -> str:
        if question.question_type is QuestionType.GRAMMAR and question.grammar_point:
            return f"Think about the {question.grammar_point} rule"
        if question.question_type is QuestionType.VOCABULARY and question.context:
            return f"This word is commonly used in {question.context}"
        return GENERIC_HINT

    def pick_distractor(self, options: Sequence[str]) -> str:
        """
        One plausible wrong option.

        Candidates already present among the options are not reused unless
        nothing else is left.
        """
        candidates = ["All of the above", "None of the above"]
        if len(options) >= 2:
            candidates.append(f"{options[0]} and {options[1]}")
        candidates.append("It depends on the context")

        fresh = [c for c in candidates if c not in options]
        return self.rng.choice(fresh or candidates)
