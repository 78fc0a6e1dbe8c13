"""FastAPI entry points for the upload connector."""
