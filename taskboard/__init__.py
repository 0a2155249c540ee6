"""Taskboard: users, tasks, and the references that keep them consistent."""
