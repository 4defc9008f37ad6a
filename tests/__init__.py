"""
Test package for Chess Sparring.

This package contains unit tests for the engine session, rules
collaborator, timeline, match state, orchestrator, persistence and
terminal rendering.
"""
