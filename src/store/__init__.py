"""Entity store collaborators (tasks, classes, task types, files, fingerprints)."""
