"""Command-line interface for learner-insights."""
