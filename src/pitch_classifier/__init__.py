"""Pitch type classification: dataset preparation, cross-validated model comparison and inspection."""
