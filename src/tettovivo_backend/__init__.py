"""
TettoVivo Backend - REST API for photovoltaic grid-connection paperwork

This package provides a FastAPI-based web service that turns a short customer
form into the documents needed for a single-phase, low-voltage PV connection:

- Form validation and power-rating normalization
- PDF rendering: customer data stamped onto the template for the chosen rating
- Companion text file selection from a fixed per-rating table
- Append-only archival of every submission and its artifacts
- Background mail delivery of the artifacts to a fixed recipient
- Admin listing and download of archived artifacts behind a shared secret

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - submission_manager: Submission lifecycle coordinator
    - assembler: Validation, template resolution and artifact assembly
    - templates: Rating normalization and the template registry
    - overlay: PDF text overlay renderer
    - database: SQLite archive
    - notifier: SMTP mail dispatcher
    - configuration: Config loading and merging logic
    - models: Pydantic models for request/response validation

Usage:
    Run the API server with:
        uvicorn tettovivo_backend.main:app --reload --host 0.0.0.0 --port 8000

Template files are looked up under ``$TEMPLATES_DIR/pdf`` and
``$TEMPLATES_DIR/txt``; see ``config/config.yaml`` for every setting.
"""
