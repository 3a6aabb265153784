"""Error taxonomy shared by the token cache, Drive adapter and photo services.

Every error carries a message specific enough (which file, which id) to be
shown to the user as-is by the HTTP layer.
"""


class PhotoLibraryError(Exception):
    """Base class for expected, user-reportable failures."""

    default_message = "Photo library operation failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotConnected(PhotoLibraryError):
    """The user has no Google Drive credentials on file."""

    default_message = "Google Drive not connected. Please connect your Google Drive first."


class ReauthRequired(PhotoLibraryError):
    """Stored credentials can no longer be used; the OAuth flow must be redone."""

    default_message = "Google Drive authorization expired. Please reconnect your Google Drive."


class TokenRefreshFailed(ReauthRequired):
    """The provider rejected the refresh token."""

    default_message = "Failed to refresh Google Drive tokens. Please reconnect your Google Drive."


class StorageError(PhotoLibraryError):
    """Unexpected or transient failure reported by Google Drive."""

    default_message = "Google Drive request failed"


class StorageAuthError(ReauthRequired, StorageError):
    """Google Drive rejected the access token."""

    default_message = "Google Drive rejected the stored credentials. Please reconnect your Google Drive."

    # Files a batch delete had already removed when this error aborted it
    deleted: tuple[str, ...] = ()


class PersistenceError(PhotoLibraryError):
    """Database failure; the enclosing transaction was rolled back."""

    default_message = "Database operation failed"


class NotFound(PhotoLibraryError):
    """The requested album or category does not exist or belongs to another user."""

    default_message = "Not found"
