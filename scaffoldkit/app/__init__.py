"""FastAPI service: manifest validation and in-memory render previews."""
