"""Consolidation pipelines: duplicate detection and merging, plus record registration."""
