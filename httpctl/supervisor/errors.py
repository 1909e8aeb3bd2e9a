class TransitionError(Exception):
    """
    Raised by a managed service when a start or stop request fails.

    :param code: A short machine-readable reason, e.g. 'startup_timeout'.
    :param message: Human-readable detail from the service.
    """

    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
