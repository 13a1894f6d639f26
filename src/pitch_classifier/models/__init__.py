import pitch_classifier.models.families  # noqa: F401  registers the built-in families
