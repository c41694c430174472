import os

import uvicorn

from urbanpulse.config import settings
from utils.logging_utils import get_tagged_logger, setup_logging

logger = get_tagged_logger(__name__, tag="server")


def report_provider_config() -> None:
    """
    Log which optional providers are configured. Nothing here is fatal:
    - without a TomTom key, geocoding/search/routing answer 500 and traffic is skipped
    - without a Gemini key, insights come from the built-in rule table
    """
    if settings.tomtom_configured:
        logger.info("TomTom API key configured")
    else:
        logger.warning("TOMTOM_API_KEY not set; geocoding, search, routing and traffic are disabled")

    if settings.gemini_configured:
        logger.info("Gemini API key configured", extra={"model": settings.gemini_model})
    else:
        logger.warning("GEMINI_API_KEY not set; insights will use heuristic fallbacks")

    logger.info(f"Incident store backend: {settings.incident_source}")


if __name__ == "__main__":
    setup_logging(level=os.getenv("LOG_LEVEL", "INFO"), job_name="urbanpulse-api")
    report_provider_config()

    uvicorn.run(
        "urbanpulse.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=False,
    )
