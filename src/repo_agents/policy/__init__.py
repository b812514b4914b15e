"""Admission gates, check registry and the validation pipeline."""
