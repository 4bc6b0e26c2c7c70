"""
Error types raised by the parking core.

Every error carries the HTTP status the API answers with, so routes can let
them propagate to a single error handler.
"""


class ParkingError(Exception):
    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class NotFoundError(ParkingError):
    status_code = 404


class NoOpenStayError(ParkingError):
    status_code = 400

    def __init__(self, plate):
        super().__init__(f'No open stay for plate {plate}')
        self.plate = plate


class NoPricingRuleError(ParkingError):
    status_code = 400

    def __init__(self):
        super().__init__('No active pricing rule')


class ValidationError(ParkingError):
    status_code = 400


class InvariantViolation(ParkingError):
    status_code = 500
