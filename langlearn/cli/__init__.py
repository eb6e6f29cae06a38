"""Command line interface for the LangLearn engine."""
