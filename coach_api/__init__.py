"""
Coaching Platform API - HTTP backend for the coaching platform.

This package contains the complete application:
- core: Framework-agnostic request context, validation, access rules, errors
- infrastructure: Storage backends (in-memory for local development)
- api: FastAPI middleware, dependencies and routes
- config: Application configuration and logging setup
"""

__version__ = "0.1.0"
