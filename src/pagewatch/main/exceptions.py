from enum import IntEnum


class ErrorCodes(IntEnum):
    NOT_FOUND = 9001
    BAD_REQUEST = 9002
    UNAUTHORIZED = 9003
    INVALID_TRANSITION = 9004
    DISPATCH_ERROR = 9005
    SCRAPER_ERROR = 9006
    NOTIFICATION_ERROR = 9007
    STORE_ERROR = 9008
    NOT_READY = 9009
    PHASE_FAILED = 9010


class PagewatchException(Exception):
    pass


class NotFoundException(PagewatchException):
    pass


class BadRequestException(PagewatchException):
    pass


class AuthenticationException(PagewatchException):
    pass


class NotReadyException(PagewatchException):
    pass


class InvalidTransitionException(PagewatchException):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Illegal job transition: {current} -> {target}")


class DispatchException(PagewatchException):
    pass


class ScraperException(PagewatchException):
    pass


class NotificationException(PagewatchException):
    pass


class StoreException(PagewatchException):
    pass


class PhaseFailedException(PagewatchException):
    """A batch failed as a whole; the job has been marked failed."""

    def __init__(self, job_id, message):
        self.job_id = job_id
        super().__init__(message)


# Map exception -> (status code, message override, error code).
# A message override of None means str(exc) is returned.
EXCEPTION_MAP = {
    NotFoundException: (404, None, ErrorCodes.NOT_FOUND),
    BadRequestException: (400, None, ErrorCodes.BAD_REQUEST),
    AuthenticationException: (401, "Unauthorized", ErrorCodes.UNAUTHORIZED),
    InvalidTransitionException: (409, None, ErrorCodes.INVALID_TRANSITION),
    DispatchException: (502, None, ErrorCodes.DISPATCH_ERROR),
    StoreException: (503, None, ErrorCodes.STORE_ERROR),
    NotReadyException: (503, None, ErrorCodes.NOT_READY),
    PhaseFailedException: (500, None, ErrorCodes.PHASE_FAILED),
}
