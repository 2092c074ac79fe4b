"""Upload processing pipeline."""
