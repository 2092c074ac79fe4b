"""Export of tasks, classes and task types to JSON, CSV and ICS."""
