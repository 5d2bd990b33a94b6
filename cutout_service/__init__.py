"""
Cutout service package.

Exposes the background-removal client for the remote predictions API, the
canvas-style compositing helpers, the submission workflow that ties them
together, and the FastAPI application that serves it.
"""
