"""
Test package for the Translation Order Portal.

This package contains all test modules organized by category:
- unit: Services, pricing, analysis and models against an in-memory database
- integration: HTTP-level tests through the ASGI application
- fixtures: Shared test doubles (in-memory MongoDB)
"""
