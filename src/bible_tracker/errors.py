"""Exceptions raised by tracker actions and storage backends."""


class TrackerError(Exception):
    """Base class for errors shown to the user."""


class ValidationError(TrackerError):
    pass


class DuplicateParticipantError(ValidationError):
    def __init__(self, name: str):
        super().__init__("This participant already exists")
        self.name = name


class DuplicateCompletionError(ValidationError):
    def __init__(self, user_name: str, date: str):
        super().__init__(f"{user_name} already marked {date} complete")
        self.user_name = user_name
        self.date = date


class StorageUnavailableError(TrackerError):
    pass


class AuthenticationError(TrackerError):
    pass
