"""Core simulation primitives (constants, clock, phase machine, notices).

Kept free of FastAPI and redis concerns so it can be reused by the API host, scripts, and tests.
"""
