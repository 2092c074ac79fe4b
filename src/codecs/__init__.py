"""Import/export format codecs."""
