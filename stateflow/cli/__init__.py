"""StateFlow CLI."""
