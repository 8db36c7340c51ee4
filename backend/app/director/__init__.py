"""Narrative event director: deterministic per-tick storylet selection.

Entry point is ``backend.app.director.engine.NarrativeDirector``.
"""
