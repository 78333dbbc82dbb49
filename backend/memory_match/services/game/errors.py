class GameError(Exception):
    """Base class for errors raised by the game services."""


class ValidationError(GameError):
    """Player input rejected before any game state was touched."""

    def __init__(self, message, title='Invalid input'):
        super().__init__(message)
        self.title = title


class AssetAcquisitionError(GameError):
    """The image source could not supply the assets a deck needs."""


class InsufficientAssets(AssetAcquisitionError):
    def __init__(self, requested, obtained, attempts):
        super().__init__(
            f"only {obtained} of {requested} unique images could be loaded after {attempts} attempts"
        )
        self.requested = requested
        self.obtained = obtained
        self.attempts = attempts


class PersistenceReadError(GameError):
    """Stored score data could not be decoded."""
