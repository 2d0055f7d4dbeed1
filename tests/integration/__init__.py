"""
docgen-orchestrator — integration test package

File: tests/integration/__init__.py
Last updated: 2026-02-14

Purpose
- Test package marker file.

Functional requirements
- Must not trigger provider calls or network access.
"""
