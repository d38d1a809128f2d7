class KlarityError(Exception):
    pass


class QuoteValidationError(KlarityError):
    """A quote draft is incomplete (patient, delivery channel or acts missing)."""


class LoginError(KlarityError):
    pass


class SessionRequiredError(KlarityError):
    pass


class QuoteNotFoundError(KlarityError):
    pass


class LinkExpiredError(KlarityError):
    pass


class StatusTransitionError(KlarityError):
    pass


class UnknownActError(KlarityError):
    pass


class AnalysisError(KlarityError):
    """The vision model call failed or its reply could not be parsed."""


class DuplicateQuoteError(KlarityError):
    """Another stored quote already owns this share-link token."""
