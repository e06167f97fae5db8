# =============================================================================
# Models Package: Pydantic V2 Request/Response Schemas
# =============================================================================
