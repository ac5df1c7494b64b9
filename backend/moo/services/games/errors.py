class GameError(Exception):
    """Base error for room and game operations, rendered as JSON by the API."""

    status_code = 400
    kind = 'bad_request'

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message, 'kind': self.kind}


class BadRequestError(GameError):
    status_code = 400
    kind = 'bad_request'


class NotFoundError(GameError):
    status_code = 404
    kind = 'not_found'


class ForbiddenError(GameError):
    status_code = 403
    kind = 'forbidden'


class ServerError(GameError):
    status_code = 500
    kind = 'internal_server_error'
