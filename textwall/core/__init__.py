"""Session-level primitives shared by every app (errors and the display queue).

Kept free of FastAPI concerns so controllers and tests can use them directly.
"""
