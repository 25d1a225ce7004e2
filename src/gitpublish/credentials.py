"""Basic-auth credentials for HTTP(S) remotes.

Credentials are handed to git through environment variables for the duration
of a single command. They are never written to ``.git/config`` and never
embedded in the remote URL.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator

# TOML reading
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore


CREDENTIALS_FILENAME = "credentials.toml"
USER_CONFIG_DIR = ".gitpublish"

ENV_USERNAME = "GITPUBLISH_USERNAME"
ENV_PASSWORD = "GITPUBLISH_PASSWORD"

# Variables read by the inline credential helper below
_HELPER_USERNAME_VAR = "GITPUBLISH_AUTH_USERNAME"
_HELPER_PASSWORD_VAR = "GITPUBLISH_AUTH_PASSWORD"

_FORBIDDEN_CHARS = ("\n", "\r", "\0")

_CREDENTIAL_HELPER = (
    '!f() { test "$1" = get || return 0; '
    f'echo "username=${_HELPER_USERNAME_VAR}"; '
    f'echo "password=${_HELPER_PASSWORD_VAR}"; '
    "}; f"
)


class BasicAuthCredentials(BaseModel):
    """Username/password pair for HTTP(S) basic auth."""

    username: str = Field(description="Remote username (anything non-empty for token auth)")
    password: SecretStr = Field(description="Password or access token")

    @field_validator("username", "password")
    @classmethod
    def reject_line_breaks(cls, v):
        # The credential helper writes one key=value per line
        value = v.get_secret_value() if isinstance(v, SecretStr) else v
        if any(ch in value for ch in _FORBIDDEN_CHARS):
            raise ValueError("must not contain newline, carriage return or NUL characters")
        return v

    def git_env(self) -> Dict[str, str]:
        return git_auth_env(self)


def _get_user_credentials_path() -> Path:
    return Path.home() / USER_CONFIG_DIR / CREDENTIALS_FILENAME


def _load_credentials_file(path: Path) -> Optional[BasicAuthCredentials]:
    if not path.exists():
        return None
    with open(path, "rb") as f:
        data = tomllib.load(f)
    section = data.get("git") or {}
    username = section.get("username")
    password = section.get("password")
    if not username or password is None:
        return None
    return BasicAuthCredentials(username=username, password=password)


def load_credentials(path: Optional[Path] = None) -> Optional[BasicAuthCredentials]:
    """Load credentials from the environment or the user credentials file.

    Priority:
    1. GITPUBLISH_USERNAME / GITPUBLISH_PASSWORD
    2. ``[git]`` table of ~/.gitpublish/credentials.toml

    Returns None when neither source provides a username and password.
    """
    username = os.getenv(ENV_USERNAME)
    password = os.getenv(ENV_PASSWORD)
    if username and password is not None:
        return BasicAuthCredentials(username=username, password=password)

    return _load_credentials_file(path or _get_user_credentials_path())


def git_auth_env(credentials: Optional[BasicAuthCredentials]) -> Dict[str, str]:
    """Environment overrides that authenticate a single git invocation.

    Uses git's ``GIT_CONFIG_COUNT`` mechanism to install a one-shot credential
    helper. The empty helper entry first clears any helpers inherited from the
    user's git configuration.
    """
    env = {"GIT_TERMINAL_PROMPT": "0"}
    if credentials is None:
        return env

    env.update({
        "GIT_CONFIG_COUNT": "2",
        "GIT_CONFIG_KEY_0": "credential.helper",
        "GIT_CONFIG_VALUE_0": "",
        "GIT_CONFIG_KEY_1": "credential.helper",
        "GIT_CONFIG_VALUE_1": _CREDENTIAL_HELPER,
        _HELPER_USERNAME_VAR: credentials.username,
        _HELPER_PASSWORD_VAR: credentials.password.get_secret_value(),
    })
    return env
