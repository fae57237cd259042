"""
ForgeKit Server Package.

This package contains the web server implementation for the ForgeKit backend.
It includes the API definition, core service wiring, and configuration.

Subpackages:
    api: FastAPI route definitions and endpoint logic.
    core: Core configurations, database connections, and constants.
    schemas: Pydantic schemas for API request/response validation.
    services: Dependency providers that build the usage and embedding services.
"""
