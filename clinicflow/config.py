"""
Application configuration settings loaded from environment variables.
Uses pydantic_settings for validation and type conversion.
"""
from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    """
    Clinic workflow settings with environment variable validation.

    Attributes:
        database_url: Ledger store connection string (PostgreSQL in production)
        store_timeout_seconds: Deadline for a single store call
        sequence_max_retries: Attempts at reserving a token or invoice number before giving up
        dispense_max_retries: Attempts at decrementing a batch drained by a concurrent dispense
        dispense_unit_quantity: Units handed out per prescription line
        invoice_prefix: Prefix for generated invoice numbers
        log_level: Root logging level
        cors_origins: Frontend origins allowed to call the HTTP adapter
    """
    # Database settings
    database_url: str = "sqlite:///./clinic.db"
    store_timeout_seconds: int = 10

    # Workflow settings
    sequence_max_retries: int = 5
    dispense_max_retries: int = 3
    dispense_unit_quantity: int = 1
    invoice_prefix: str = "INV"

    # Logging
    log_level: str = "INFO"

    # Frontend settings
    cors_origins: List[str] = ["http://localhost:3000"]

    class Config:
        """Configuration for environment variables loading"""
        env_file = ".env"
        case_sensitive = False

# Create settings instance
settings = Settings()
