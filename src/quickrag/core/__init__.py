"""Core logic: text splitting, retrieval and prompts."""
