"""Pydantic models shared by the pipeline driver and the CLI."""

from verifyall.models.pipeline import StageRecord, StageStatus

__all__ = ["StageRecord", "StageStatus"]
