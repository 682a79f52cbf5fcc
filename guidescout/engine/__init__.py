"""Workspace orchestration and the guide content loader."""

from guidescout.engine.package import Package
from guidescout.engine.workspace import Detection, Workspace

__all__ = ["Detection", "Package", "Workspace"]
