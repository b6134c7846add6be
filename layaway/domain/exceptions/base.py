"""Base domain exception."""


class DomainException(Exception):
    """
    Base exception for all domain-level errors.

    Carries a stable machine-readable code alongside the message so the
    API layer can map it to an error response.
    """

    def __init__(self, message: str, code: str = "DOMAIN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)
