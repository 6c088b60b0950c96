# errors.py
# Exception taxonomy shared by the stores, the editor and the HTTP layer


class JsonTreeError(Exception):
    status = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


# ----------------------------
# input format
# ----------------------------

class InputFormatError(JsonTreeError):
    status = 400

class InvalidJsonError(InputFormatError):
    pass


# ----------------------------
# not found
# ----------------------------

class NotFoundError(JsonTreeError):
    status = 404

class DocumentNotFoundError(NotFoundError):
    pass

class PresetNotFoundError(NotFoundError):
    pass


# ----------------------------
# validation
# ----------------------------

class ValidationError(JsonTreeError):
    status = 400

class InvalidPathError(ValidationError):
    pass

class PresetValidationError(ValidationError):
    pass

class ContainerIndexError(ValidationError):
    pass

class EditorError(ValidationError):
    pass


# ----------------------------
# conflicts
# ----------------------------

class ConflictError(JsonTreeError):
    status = 409

class DocumentExistsError(ConflictError):
    pass


# ----------------------------
# client side
# ----------------------------

class ApiError(Exception):
    """Raised by the HTTP client when the server answers with a failure."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
