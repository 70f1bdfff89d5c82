"""HTTP API for learner-insights."""
