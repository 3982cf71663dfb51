"""Utility helpers for shopbulk."""
