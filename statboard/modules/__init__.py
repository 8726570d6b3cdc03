"""Domain modules for Statboard."""
