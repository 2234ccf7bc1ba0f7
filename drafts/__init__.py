"""Staged-change queue and atomic multi-file commit engine."""
