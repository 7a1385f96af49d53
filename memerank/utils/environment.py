"""Startup environment validation.

Checks that the variables required by the active environment are present
and that no environment is pointed at another environment's database.
Entry points call ``check_environment`` before opening any connection and
exit non-zero on ``ConfigurationError``.
"""

from pathlib import Path

from memerank.utils.config import Settings
from memerank.utils.exceptions import ConfigurationError
from memerank.utils.logger import get_logger

logger = get_logger(__name__)

ENVIRONMENTS = ("development", "test", "production")

REQUIRED_VARS = {
    "development": ("database_dev_uri",),
    "test": ("database_test_uri",),
    "production": ("database_prod_uri", "session_secret", "jwt_secret"),
}

# Substrings that must not appear in the database URI of the keyed environment.
FORBIDDEN_URI_PATTERNS = {
    "production": ("dev", "test", "localhost", "127.0.0.1"),
    "test": ("prod", "production"),
}


def current_environment(settings: Settings) -> str:
    """Return the validated environment name.

    Raises:
        ConfigurationError: If APP_ENV names an unknown environment.
    """
    env = settings.app_env.lower()
    if env not in ENVIRONMENTS:
        raise ConfigurationError(f"Unknown environment: {settings.app_env}")
    return env


def database_uri(settings: Settings) -> str:
    """Return the database URI configured for the active environment."""
    env = current_environment(settings)
    return {
        "development": settings.database_dev_uri,
        "test": settings.database_test_uri,
        "production": settings.database_prod_uri,
    }[env]


def queue_url(settings: Settings) -> str:
    """Return the queue connection URI, defaulting to the cache URI."""
    return settings.queue_redis_url or settings.redis_url


def validate_environment(settings: Settings) -> None:
    """Ensure every variable required by the active environment is set.

    Raises:
        ConfigurationError: Listing the missing variables.
    """
    env = current_environment(settings)
    missing = [
        name.upper() for name in REQUIRED_VARS[env] if not getattr(settings, name)
    ]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}",
            details={"environment": env, "missing": missing},
        )
    logger.info("Environment validated: %s", env)


def security_check(settings: Settings) -> None:
    """Refuse to run against a database belonging to another environment.

    Raises:
        ConfigurationError: If the URI contains a forbidden pattern.
    """
    env = current_environment(settings)
    uri = database_uri(settings).lower()
    for pattern in FORBIDDEN_URI_PATTERNS.get(env, ()):
        if pattern in uri:
            raise ConfigurationError(
                f"{env} environment is configured with a non-{env} database",
                details={"environment": env, "pattern": pattern},
            )
    logger.info("Security check passed: %s", env)


def check_environment(settings: Settings) -> None:
    """Run validation and the security check in order."""
    validate_environment(settings)
    security_check(settings)


def sqlite_path(uri: str) -> str:
    """Translate a ``sqlite:///path`` URI into a filesystem path.

    Plain paths are returned unchanged.

    Raises:
        ConfigurationError: For URIs with a scheme other than sqlite.
    """
    if "://" not in uri:
        return uri
    scheme, _, rest = uri.partition("://")
    if scheme != "sqlite":
        raise ConfigurationError(f"Unsupported database scheme: {scheme}")
    # sqlite:///relative/path and sqlite:////absolute/path
    path = rest[1:] if rest.startswith("/") else rest
    return str(Path(path))
