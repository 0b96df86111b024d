"""
Errors raised by game handlers and reported back to the requesting
connection as an ``error`` event.

Hierarchy:
- GameError (base, carries the client-facing message)
  - RoomNotFound
  - RoomFull
  - MalformedPayload
"""


class GameError(Exception):
    """Base exception for errors the sender can recover from."""
    message = 'Request failed'

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class RoomNotFound(GameError):
    message = 'Room not found'


class RoomFull(GameError):
    message = 'Room is full'


class MalformedPayload(GameError):
    message = 'Malformed payload'
