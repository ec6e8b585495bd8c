"""Error taxonomy for the reminder jobs, mapped to HTTP status codes by app.py."""


class ReminderError(Exception):
    status_code = 500

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        data = {'error': self.message}
        if self.details:
            data['details'] = self.details
        return data


class ConfigurationError(ReminderError):
    """Transport disabled or incomplete, or a required request field is missing."""
    status_code = 400


class RecipientNotFoundError(ReminderError):
    status_code = 404


class StoreError(ReminderError):
    """The record store could not be read or written."""
    status_code = 500


class TransportError(ReminderError):
    """The email provider rejected or failed to accept a message."""
    status_code = 500
