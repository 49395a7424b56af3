"""CLI exit codes for consistent error reporting.

| Code | Meaning            | Recommended Action                      |
|------|--------------------|-----------------------------------------|
| 0    | Success            | -                                       |
| 1    | General error      | Check logs                              |
| 2    | Invalid arguments  | Check command syntax                    |
| 30   | Configuration error| Check environment variables and .env    |
| 31   | Connection error   | Check the database and Redis are up     |
"""


class ExitCode:
    """Standard exit codes for the eventpulse CLI."""

    SUCCESS = 0
    """Command completed successfully."""

    ERROR = 1
    """General error occurred. Check logs for details."""

    INVALID_ARGS = 2
    """Invalid arguments provided. Check command syntax."""

    CONFIG_ERROR = 30
    """Configuration error."""

    CONNECTION_ERROR = 31
    """Connection error (database, broker)."""


__all__ = ["ExitCode"]
