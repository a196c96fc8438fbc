class GiveawayError(Exception):
    """Base class for errors surfaced to callers of the giveaway services"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(GiveawayError):
    status_code = 400


class NotFound(GiveawayError):
    status_code = 404


class GiveawayNotActive(GiveawayError):
    status_code = 400


class CreatorCannotEnter(GiveawayError):
    status_code = 403


class DuplicateEntry(GiveawayError):
    status_code = 409


class PaymentGatewayError(GiveawayError):
    status_code = 502


class NotificationError(GiveawayError):
    status_code = 502


class SchedulerError(GiveawayError):
    status_code = 502


class AlreadySettled(GiveawayError):
    """Raised when settlement finds the giveaway already settled; never leaves the orchestrator"""
