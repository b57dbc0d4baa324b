"""
Safety checks run before a batch job touches a data store.

A job needs an explicit confirmation to run at all, and a second, stronger
acknowledgement when its target looks like production hosting.
"""

import logging
from urllib.parse import urlsplit, urlunsplit

from core.config import BillingConfig
from core.exceptions import ProductionGuardError

logger = logging.getLogger(__name__)


def is_production_like(database_url: str | None, config: BillingConfig | None = None) -> bool:
    """Whether a connection URL contains any known production hosting marker."""
    if not database_url:
        return False
    config = config or BillingConfig()
    url = database_url.lower()
    return any(marker.lower() in url for marker in config.production_host_markers)


def redact_url(database_url: str) -> str:
    """Connection URL with the password masked, safe to log."""
    try:
        parts = urlsplit(database_url)
    except ValueError:
        return "<unparseable url>"
    if parts.password is None:
        return database_url

    netloc = parts.netloc.replace(f":{parts.password}@", ":***@", 1)
    return urlunsplit(parts._replace(netloc=netloc))


def require_confirmation(confirmed: bool) -> None:
    """
    Raises:
        ProductionGuardError: If the run was not confirmed
    """
    if not confirmed:
        raise ProductionGuardError("Refusing to run without --yes (or --force)")


def ensure_safe_to_run(
    database_url: str | None,
    confirmed: bool,
    acknowledged_production: bool,
    force_production_like: bool = False,
    config: BillingConfig | None = None,
) -> bool:
    """
    Refuse to start unless the operator has confirmed enough.

    Args:
        database_url: Target connection URL
        confirmed: Basic "proceed" flag
        acknowledged_production: "I understand this targets production" flag
        force_production_like: Treat the target as production regardless of URL

    Returns:
        Whether the target was classified as production-like

    Raises:
        ProductionGuardError: If the URL is missing or a required flag is absent
    """
    require_confirmation(confirmed)

    if not database_url:
        raise ProductionGuardError("No database URL configured")

    production_like = force_production_like or is_production_like(database_url, config)
    if production_like and not acknowledged_production:
        raise ProductionGuardError(
            f"Refusing to run against production-like database {redact_url(database_url)} "
            f"without --i-understand"
        )

    logger.info(f"Guard passed for {redact_url(database_url)} (production_like={production_like})")
    return production_like
