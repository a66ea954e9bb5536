# Copyright (c) 2025 The vivtracks contributors
# Part of the vivtracks Project
# Released under the AGPLv3 or later


class StartupError(Exception):
    """The dataset could not be loaded. The server must not start."""


class RequestError(Exception):
    """A well formed request referenced something that does not exist."""


class PatchError(ValueError):
    """A patch document is malformed or can not be applied."""
