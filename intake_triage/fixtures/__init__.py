"""Static intake fixtures."""

from intake_triage.fixtures.questions import QuestionCatalog, catalog

__all__ = ["QuestionCatalog", "catalog"]
