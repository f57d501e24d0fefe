"""User-facing failures.

Every error carries the message shown (ephemerally) to the invoking user.
Anything that is not a ``ThoracleError`` is treated as an unexpected failure
by the dispatchers and only surfaces as a generic reply.
"""


class ThoracleError(Exception):
    message = "Something went wrong."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)

    @property
    def user_message(self) -> str:
        return str(self)


class PreconditionViolation(ThoracleError):
    pass


class NotFound(ThoracleError):
    pass


# --- preconditions ---
class NoActiveSeason(PreconditionViolation):
    message = "There is no current season."


class NoOpenSeason(NoActiveSeason):
    pass


class DuplicatePlayers(PreconditionViolation):
    message = "All players in a match must be unique."


class InvalidRoster(PreconditionViolation):
    message = "A match needs 3 or 4 players."


class DrawsDisabled(PreconditionViolation):
    message = "Draws are not enabled on this server."


class NotAParticipant(PreconditionViolation):
    message = "You are not a player in this match."


class AlreadyFinalized(PreconditionViolation):
    message = "That match has already been confirmed and can no longer be cancelled."


class AlreadyFullyConfirmed(PreconditionViolation):
    message = "That match has already been confirmed by all players."


class CrossGuildMatch(PreconditionViolation):
    message = "That match is from another server."


class PermissionDenied(PreconditionViolation):
    message = "You do not have permission to do this."


class SeasonAlreadyOpen(PreconditionViolation):
    message = "There is already an active season."


class NameTaken(PreconditionViolation):
    message = "There is already a season with that name."


class SeasonNotClosed(PreconditionViolation):
    message = "That season has not ended."


class DeckLimitReached(PreconditionViolation):
    message = "You have reached the maximum number of decks."


class DeckNameTaken(PreconditionViolation):
    message = "You already have a deck with that name."


class InvalidDeckList(PreconditionViolation):
    message = "That deck list link is not from a supported deck building site."


class InvalidName(PreconditionViolation):
    message = "Names cannot be empty."


class InvalidConfigValue(PreconditionViolation):
    message = "That value cannot be negative."


class GuildOnly(PreconditionViolation):
    message = "This command can only be used in a server."


# --- lookups ---
class MatchNotFound(NotFound):
    message = "There is no match with that id."


class SeasonNotFound(NotFound):
    message = "There is no season with that name."


class DeckNotFound(NotFound):
    message = "You have no deck with that name."
