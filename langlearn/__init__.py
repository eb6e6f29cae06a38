"""
LangLearn adaptive learning engine.

Keeps the learner usable offline (queued writes reconciled with the
authoritative store) and turns quiz/progress history into module
recommendations and difficulty-adjusted quizzes.
"""

__version__ = "1.0.0"
