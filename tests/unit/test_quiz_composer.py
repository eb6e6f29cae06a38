import random

import pytest

from langlearn.core.content import QuestionType, QuizQuestion
from langlearn.core.models import QuizConfig
from langlearn.quiz import AdaptiveQuizComposer
from langlearn.quiz.quiz_composer import GENERIC_HINT


def _template(id="q1", difficulty=0.5, options=("a", "b", "c", "d"), **extra):
    return QuizQuestion(
        id=id,
        question=f"Question {id}",
        options=list(options),
        correct_answer=0,
        difficulty=difficulty,
        **extra,
    )


@pytest.fixture
def composer():
    return AdaptiveQuizComposer(rng=random.Random(42))


class TestSelection:
    def test_only_templates_within_tolerance(self, composer):
        templates = [
            _template("near-low", 0.35),
            _template("exact", 0.5),
            _template("near-high", 0.65),
            _template("far", 0.8),
            _template("boundary", 0.3),
        ]

        selected = composer.select_templates(templates, 0.5)

        assert [t.id for t in selected] == ["near-low", "exact", "near-high"]

    def test_missing_difficulty_defaults_to_middle(self, composer):
        template = QuizQuestion(id="q", question="?", options=["a", "b"])

        assert composer.template_difficulty(template) == 0.5

    def test_truncates_to_max_questions(self, composer):
        templates = [_template(f"q{i}", 0.5) for i in range(8)]

        quiz = composer.compose(QuizConfig(difficulty_level=0.5), templates)

        assert [q.id for q in quiz.questions] == ["q0", "q1", "q2", "q3", "q4"]

    def test_focus_areas_keep_pool_order_by_default(self, composer):
        templates = [
            _template("a", 0.5, topic="vocabulary"),
            _template("b", 0.5, topic="grammar"),
            _template("c", 0.5, topic="vocabulary"),
            _template("d", 0.5, topic="Grammar"),
        ]

        quiz = composer.compose(QuizConfig(0.5, {"grammar"}), templates)

        assert [q.id for q in quiz.questions] == ["a", "b", "c", "d"]
        assert quiz.metadata == {"difficulty": 0.5, "focus_areas": ["grammar"]}

    def test_focus_areas_come_first_when_prioritized(self):
        composer = AdaptiveQuizComposer(rng=random.Random(42), prioritize_focus_areas=True)
        templates = [
            _template("a", 0.5, topic="vocabulary"),
            _template("b", 0.5, topic="grammar"),
            _template("c", 0.5, topic="vocabulary"),
            _template("d", 0.5, topic="Grammar"),
        ]

        quiz = composer.compose(QuizConfig(0.5, {"grammar"}), templates)

        assert [q.id for q in quiz.questions] == ["b", "d", "a", "c"]
        assert quiz.metadata == {"difficulty": 0.5, "focus_areas": ["grammar"]}

    def test_truncation_keeps_pool_order_with_focus_areas(self, composer):
        templates = [_template(f"v{i}", 0.5, topic="vocabulary") for i in range(5)]
        templates.append(_template("g", 0.5, topic="grammar"))

        quiz = composer.compose(QuizConfig(0.5, {"grammar"}), templates)

        assert [q.id for q in quiz.questions] == ["v0", "v1", "v2", "v3", "v4"]

    def test_empty_pool(self, composer):
        quiz = composer.compose(QuizConfig(0.9), [])

        assert quiz.questions == []
        assert quiz.to_dict()["metadata"]["difficulty"] == 0.9


class TestAdaptation:
    def test_easy_target_trims_options_and_adds_hint(self, composer):
        quiz = composer.compose(QuizConfig(0.2), [_template("q1", 0.25)])

        [question] = quiz.questions
        assert question.options == ["a", "b", "c"]
        assert question.hint

    def test_hard_target_adds_distractor_and_drops_hint(self, composer):
        template = _template("q1", 0.85, hint="look closely")

        [question] = composer.compose(QuizConfig(0.9), [template]).questions

        assert len(question.options) == 5
        assert question.options[:4] == ["a", "b", "c", "d"]
        assert question.options[4] not in template.options
        assert question.hint is None

    def test_middle_target_is_unchanged(self, composer):
        template = _template("q1", 0.5, hint="keep me")

        [question] = composer.compose(QuizConfig(0.5), [template]).questions

        assert question == template
        assert question is not template

    def test_template_is_not_modified(self, composer):
        template = _template("q1", 0.2)

        composer.adapt_question(template, 0.2)
        composer.adapt_question(template, 0.9)

        assert template.options == ["a", "b", "c", "d"]
        assert template.hint is None

    def test_seeded_rng_is_deterministic(self):
        template = _template("q1", 0.9)
        first = AdaptiveQuizComposer(rng=random.Random(7)).adapt_question(template, 0.9)
        second = AdaptiveQuizComposer(rng=random.Random(7)).adapt_question(template, 0.9)

        assert first.options == second.options


class TestHints:
    def test_grammar_hint(self):
        question = _template(question_type=QuestionType.GRAMMAR, grammar_point="subjunctive")

        assert AdaptiveQuizComposer.generate_hint(question) == "Think about the subjunctive rule"

    def test_vocabulary_hint(self):
        question = _template(question_type=QuestionType.VOCABULARY, context="restaurants")

        assert (
            AdaptiveQuizComposer.generate_hint(question)
            == "This word is commonly used in restaurants"
        )

    def test_grammar_without_point_is_generic(self):
        question = _template(question_type=QuestionType.GRAMMAR)

        assert AdaptiveQuizComposer.generate_hint(question) == GENERIC_HINT


class TestDistractors:
    def test_combined_option_is_a_candidate(self):
        rng = random.Random(0)
        composer = AdaptiveQuizComposer(rng=rng)
        seen = {composer.pick_distractor(["ser", "estar"]) for _ in range(50)}

        assert "ser and estar" in seen
        assert seen <= {
            "All of the above",
            "None of the above",
            "ser and estar",
            "It depends on the context",
        }

    def test_existing_options_are_not_reused(self, composer):
        options = ["All of the above", "None of the above", "x", "It depends on the context"]

        assert composer.pick_distractor(options) == "All of the above and None of the above"

    def test_single_option_has_no_combined_candidate(self, composer):
        seen = {composer.pick_distractor(["solo"]) for _ in range(30)}

        assert seen <= {"All of the above", "None of the above", "It depends on the context"}


class TestQuizConfigRows:
    def test_missing_row_uses_default_difficulty(self):
        config = QuizConfig.from_row(None, default_difficulty=0.4)

        assert config.difficulty_level == 0.4
        assert config.focus_areas == set()

    def test_focus_areas_list(self):
        config = QuizConfig.from_row({"difficulty_level": 0.6, "focus_areas": ["grammar", "verbs"]})

        assert config.focus_areas == {"grammar", "verbs"}

    def test_single_focus_area_string_is_one_area(self):
        config = QuizConfig.from_row({"difficulty_level": 0.6, "focus_areas": "grammar"})

        assert config.focus_areas == {"grammar"}
        assert config.difficulty_level == 0.6
