"""
Standard exit codes and error types for bbsync.

Following Unix/POSIX conventions for command-line tools. Only startup
failures leave the process with a non-zero code; per-repository problems
are reported and the batch carries on.
"""
from typing import Optional

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors
USAGE_ERROR = 2          # Misuse of shell command (wrong arguments, etc.)

# Application-specific exit codes (64-113 are typically available)
API_ERROR = 65           # Bitbucket API call failed
CONFIG_ERROR = 66        # Configuration file error
PERMISSION_ERROR = 67    # Target directory unusable
NETWORK_ERROR = 68       # Network connection failed
AUTH_ERROR = 69          # Missing or rejected credential
DATA_ERROR = 70          # Response did not match the expected schema
PARTIAL_SUCCESS = 71     # Some repositories failed (opt-in)
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)

# Exit code mappings for common exceptions
EXCEPTION_EXIT_CODES = {
    'FileNotFoundError': GENERAL_ERROR,
    'PermissionError': PERMISSION_ERROR,
    'ConnectionError': NETWORK_ERROR,
    'TimeoutError': NETWORK_ERROR,
    'ValueError': DATA_ERROR,
    'KeyError': DATA_ERROR,
    'JSONDecodeError': DATA_ERROR,
    'KeyboardInterrupt': INTERRUPTED,
}


def get_exit_code_for_exception(exc: Exception) -> int:
    """
    Get the appropriate exit code for an exception.

    Args:
        exc: The exception that occurred

    Returns:
        Appropriate exit code
    """
    if isinstance(exc, CommandError):
        return exc.exit_code
    exc_name = exc.__class__.__name__
    return EXCEPTION_EXIT_CODES.get(exc_name, GENERAL_ERROR)


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class MissingCredentialError(CommandError):
    """Raised when the access token environment variable is unset."""
    def __init__(self, env_var: str):
        super().__init__(f"Missing env var {env_var}", AUTH_ERROR)
        self.env_var = env_var


class TargetDirectoryError(CommandError):
    """Raised when the target directory cannot be created or used."""
    def __init__(self, path: str, reason: Optional[str] = None):
        message = f"Could not create target directory {path}"
        if reason:
            message += f": {reason}"
        super().__init__(message, PERMISSION_ERROR)
        self.path = path


class ConfigError(CommandError):
    """Raised when there's a configuration error."""
    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)


class RepoListingError(CommandError):
    """Raised when the project repository listing cannot be fetched."""
    def __init__(self, message: str, exit_code: int = API_ERROR):
        super().__init__(message, exit_code)


class TransportError(RepoListingError):
    """Network, DNS or TLS failure while talking to Bitbucket."""
    def __init__(self, message: str):
        super().__init__(message, NETWORK_ERROR)


class AuthError(RepoListingError):
    """Bitbucket rejected the credential."""
    def __init__(self, message: str):
        super().__init__(message, AUTH_ERROR)


class DecodeError(RepoListingError):
    """Response body does not match the expected schema."""
    def __init__(self, message: str):
        super().__init__(message, DATA_ERROR)


class PartialSuccessError(CommandError):
    """Raised when some repositories synced and some failed."""
    def __init__(self, message: str, succeeded: int = 0, failed: int = 0):
        super().__init__(message, PARTIAL_SUCCESS)
        self.succeeded = succeeded
        self.failed = failed


class MalformedRepoDescriptorError(Exception):
    """A repo descriptor lacks data every descriptor must carry.

    Attributable to a single repository; the batch keeps going.
    """
    def __init__(self, slug: str, message: str):
        super().__init__(f"{slug}: {message}")
        self.slug = slug


class MalformedRefError(ValueError):
    """A ref listing line that cannot be parsed."""
    def __init__(self, line: str, message: str):
        super().__init__(f"{message}: {line!r}")
        self.line = line
