def load_env_file() -> None:
    """Load environment variables from .env file if not already set.

    WHAT:
        Loads variables from a local .env file into os.environ.
        Does NOT overwrite existing environment variables, so a DATABASE_URL
        or SENTRY_DSN exported by the deployment always wins.
    """
    import logging
    from dotenv import load_dotenv

    logger = logging.getLogger(__name__)

    loaded = load_dotenv(override=False)

    if loaded:
        logger.info("[ENV] Loaded local .env file (existing variables were NOT overwritten)")
    else:
        logger.debug("[ENV] No local .env file found or loaded")
