"""
Quiz module for difficulty-adjusted quiz composition.

This module provides:
- AdaptiveQuizComposer: Filters templates by difficulty and reshapes them
- ComposedQuiz: Composed questions plus difficulty/focus metadata

Adaptation by target difficulty:
- below 0.3: fewer options, hint attached
- 0.3 to 0.7: unchanged
- above 0.7: extra distractor, no hint
"""

from .quiz_composer import AdaptiveQuizComposer, ComposedQuiz

__all__ = [
    "AdaptiveQuizComposer",
    "ComposedQuiz",
]
