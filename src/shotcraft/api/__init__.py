"""Shotcraft - FastAPI HTTP layer.

This package contains the FastAPI application, the Pydantic response models,
and request body validation.

Modules
-------
main
    FastAPI application with the generation routes and the ``main()`` CLI
    entry point.
models
    Pydantic models for uploaded files and response bodies.
validation
    Ordered request checks that produce the API's 400 messages.
"""
