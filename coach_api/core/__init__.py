"""
Core request-handling logic for the coaching platform.

This module is framework-agnostic - it doesn't import FastAPI or any
infrastructure concerns. Request context, validation, the access-reason
gate and the error taxonomy can all be tested without an HTTP server.
"""
