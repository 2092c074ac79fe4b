"""Blob storage for class files."""
