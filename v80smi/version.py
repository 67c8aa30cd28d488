"""Version of the runtime library this tool belongs to."""

GIT_TAG = "v1.0.0"
VERSION_MAJOR = 1
VERSION_MINOR = 0
VERSION_PATCH = 0


def get_version() -> str:
    """Return the version tag."""
    return GIT_TAG