"""Intent classification and the research workflows."""
