"""Shared test doubles for the LiveCoach test suite."""
