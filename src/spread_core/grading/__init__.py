"""Event grading — final-result feed and scheduled runner."""

from spread_core.grading.scores import ScoresClient, parse_scores

__all__ = ["ScoresClient", "parse_scores"]
