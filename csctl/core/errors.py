"""Process exit codes.

The numeric values are part of the CLI contract: CI jobs branch on them, in
particular to tell "nothing to release" apart from a real failure.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    - 0: Success
    - 1: User error (bad input, invalid version, invalid stack configuration)
    - 2: Environment error (missing plugin or tool, missing registry settings)
    - 3: Build error (templating, packaging or provider plugin failed)
    - 4: Network error (listing, downloading or pushing releases failed)
    - 5: I/O error (release files could not be read or written)
    - 6: No change (the stack is identical to the latest release)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
    NO_CHANGE = 6

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
