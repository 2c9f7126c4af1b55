class SREError(Exception):
    """Base exception for kubectl-sre"""

    pass


class ParseError(SREError):
    """Resource JSON could not be decoded"""

    pass


class CollaboratorError(SREError):
    """A kubectl (or cloud CLI) invocation failed"""

    def __init__(self, message: str, args: tuple[str, ...] = (), stderr: str = ""):
        super().__init__(message)
        self.command_args = tuple(args)
        self.stderr = stderr


class ConfigError(SREError):
    """Invalid settings, rule or playbook file"""

    pass


def rewrap(error: SREError, context: str) -> SREError:
    """
    Same error class with `context` prefixed to the message.
    """
    if isinstance(error, CollaboratorError):
        return CollaboratorError(f"{context}: {error}", error.command_args, error.stderr)
    return type(error)(f"{context}: {error}")
