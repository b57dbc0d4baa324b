"""Billing core configuration."""

from pydantic import BaseModel, Field


class BillingConfig(BaseModel):
    """
    Billing core configuration.

    Defaults match the studio's current hosting; override per deployment.
    """

    # Production guard
    production_host_markers: tuple[str, ...] = Field(
        default=("railway", "rlwy.net", "proxy.rlwy.net"),
        description="Substrings of a database URL that mark it as production-like",
        min_length=1,
    )
    database_url_env: str = Field(
        default="DATABASE_URL",
        description="Environment variable consulted before Vault for the database URL",
    )

    # Display
    default_service_label: str = Field(
        default="服務",
        description="Service name shown when a snapshot has no name",
    )
