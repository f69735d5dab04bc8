class AddressBookError(Exception):
    """Base class for application errors."""


class DatabaseError(AddressBookError):
    """A database operation failed and was rolled back."""


class InvalidRecord(AddressBookError):
    """
    Attributes failed validation; nothing was persisted.

    Attributes:
        errors: Mapping of field name to list of messages
        record: Unsaved draft carrying the submitted values, for re-rendering forms
    """

    def __init__(self, errors, record=None):
        self.errors = errors
        self.record = record
        super().__init__(self.full_messages())

    def full_messages(self):
        return '; '.join(
            f"{field} {message}" for field, messages in self.errors.items() for message in messages
        )
