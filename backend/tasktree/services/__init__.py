"""Task engine services: hierarchy, completion, deletion, queries, and stats."""
