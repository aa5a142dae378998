"""Core layer: shared data model, error taxonomy and collaborator protocols."""
