"""Test fixtures for the conversation engine.

This package provides reusable test fixtures:
- entities: Factories for contacts, messages, attachments and reactions
- engine: Settings, fake clock, coordinator and reconciler fixtures
- api: TestClient wired to a fresh coordinator
"""
