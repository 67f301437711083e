"""
Boundary models - Pydantic schemas for diagram payloads

The engine (venn) works on frozen dataclasses; models.api holds the
JSON-facing shapes that the service layer validates and returns.
"""
