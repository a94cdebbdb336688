"""Server configuration."""

import os
from dataclasses import dataclass


@dataclass
class ServerConfig:
    """Configuration for the HTTP listener behind a Server.

    Attributes:
        host: Interface to bind when ``listen`` is not given one.
        log_level: Log level handed to uvicorn.
        startup_timeout: Seconds ``listen`` waits for the listener to come up.
        shutdown_timeout: Seconds ``close`` waits for the listener to stop.

    Every field can be overridden from the environment with ``from_env``:
    ROUTESCHEMA_HOST, ROUTESCHEMA_LOG_LEVEL, ROUTESCHEMA_STARTUP_TIMEOUT and
    ROUTESCHEMA_SHUTDOWN_TIMEOUT.
    """

    host: str = "127.0.0.1"
    log_level: str = "warning"
    startup_timeout: float = 5.0
    shutdown_timeout: float = 5.0

    @classmethod
    def from_env(cls) -> "ServerConfig":
        defaults = cls()
        return cls(
            host=os.environ.get("ROUTESCHEMA_HOST", defaults.host),
            log_level=os.environ.get("ROUTESCHEMA_LOG_LEVEL", defaults.log_level).lower(),
            startup_timeout=float(os.environ.get("ROUTESCHEMA_STARTUP_TIMEOUT", defaults.startup_timeout)),
            shutdown_timeout=float(os.environ.get("ROUTESCHEMA_SHUTDOWN_TIMEOUT", defaults.shutdown_timeout)),
        )

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If a timeout is not positive
        """
        if self.startup_timeout <= 0:
            raise ValueError("startup_timeout must be positive")
        if self.shutdown_timeout <= 0:
            raise ValueError("shutdown_timeout must be positive")
