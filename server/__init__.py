"""FastAPI boundary for the AIBot workflows."""
