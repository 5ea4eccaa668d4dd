"""Submission engine orchestration."""

from .submission_engine import EngineConfig, SubmissionEngine

__all__ = ["SubmissionEngine", "EngineConfig"]
