"""Real-time presence, rooms and event routing."""
