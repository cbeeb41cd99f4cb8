class HandlerError(Exception):
    """An error that maps to a specific HTTP status for the caller.

    Anything else raised from a handler is reported as a 500.
    """

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
