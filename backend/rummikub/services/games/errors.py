"""Rule violations raised by the game services.

Every error is a synchronous rejection: the session is left exactly as it
was before the call, and the same player may retry.
"""


class GameError(Exception):
    code = 'GameError'
    status = 400
    default_message = 'Invalid game action'

    def __init__(self, message=None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self):
        payload = {'success': False, 'error': self.message, 'code': self.code}
        payload.update(self.extra)
        return payload


class NotYourTurn(GameError):
    code = 'NotYourTurn'
    status = 403
    default_message = 'It is not your turn'


class PositionOccupied(GameError):
    code = 'PositionOccupied'
    default_message = 'Position already occupied'


class InvalidMeld(GameError):
    code = 'InvalidMeld'
    default_message = 'Tile does not form a valid meld with existing tiles'


class InvalidBoard(GameError):
    code = 'InvalidBoard'
    default_message = 'Invalid board configuration'


class InsufficientInitialMeld(GameError):
    code = 'InsufficientInitialMeld'

    def __init__(self, total_value: int, required: int = 30):
        super().__init__(
            f'Initial meld must total at least {required} points (got {total_value})',
            totalValue=total_value,
        )
        self.total_value = total_value


class PoolEmpty(GameError):
    code = 'PoolEmpty'
    default_message = 'No tiles left to draw'


class NoActionsToUndo(GameError):
    code = 'NoActionsToUndo'
    default_message = 'No actions to undo'


class SessionNotFound(GameError):
    code = 'SessionNotFound'
    status = 404
    default_message = 'Game not found'


class PlayerNotFound(GameError):
    code = 'PlayerNotFound'
    status = 404
    default_message = 'Player not found'


class TileNotFound(GameError):
    code = 'TileNotFound'
    status = 404
    default_message = 'Tile not found on board'


class TileNotInHand(GameError):
    code = 'TileNotInHand'
    default_message = 'Tile is not in your hand'


class InvalidPhase(GameError):
    code = 'InvalidPhase'
    default_message = 'Action not allowed in the current phase'


class InvalidPlayers(GameError):
    code = 'InvalidPlayers'
    default_message = 'Invalid game initialization'


class BadRequest(GameError):
    code = 'BadRequest'
    default_message = 'Malformed request'


class AlreadyActed(GameError):
    code = 'AlreadyActed'
    default_message = 'Cannot draw after placing or moving tiles'
