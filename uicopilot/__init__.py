"""Retrieval-augmented coding assistant for Vue/Nuxt UI work."""
