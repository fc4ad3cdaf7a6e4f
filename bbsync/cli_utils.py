"""
Common CLI utilities and decorators for consistent command behavior.
"""

import logging
import sys
import click
from functools import wraps

from .exit_codes import (
    SUCCESS, INTERRUPTED,
    get_exit_code_for_exception, CommandError
)

logger = logging.getLogger("bbsync")


def standard_command(func):
    """
    Decorator that provides standard CLI behavior:
    - Diagnostics on stderr through logging
    - Exit code 0 on completion
    - CommandError subclasses exit with their own code
    - Anything else exits with the code mapped from the exception type
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            func(*args, **kwargs)
        except KeyboardInterrupt:
            logger.error("Interrupted by user")
            sys.exit(INTERRUPTED)
        except click.ClickException:
            # Click exceptions already have their exit code
            raise
        except CommandError as e:
            logger.error(str(e))
            sys.exit(e.exit_code)
        except Exception as e:
            logger.error(f"Command failed: {e}")
            sys.exit(get_exit_code_for_exception(e))

        sys.exit(SUCCESS)

    return wrapper
