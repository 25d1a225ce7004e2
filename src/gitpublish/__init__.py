"""gitpublish: clone, branch, commit and push a mirrored repository."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("gitpublish")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"  # Fallback for editable installs without metadata

from .branches import BranchResolution, BranchState, checkout, classify_branch, resolve_branch  # noqa: F401
from .credentials import BasicAuthCredentials  # noqa: F401
from .errors import GitPublishError, IncompleteIdentityError, NotOnBranchError  # noqa: F401
from .naming import sanitize_branch_name  # noqa: F401
from .observability import NullObserver, Observer  # noqa: F401
from .publish import add, commit, push  # noqa: F401
from .workspace import clone, ensure_workspace  # noqa: F401

__all__ = [
    "add",
    "checkout",
    "commit",
    "clone",
    "push",
    "sanitize_branch_name",
    "ensure_workspace",
    "resolve_branch",
    "classify_branch",
    "BranchResolution",
    "BranchState",
    "BasicAuthCredentials",
    "Observer",
    "NullObserver",
    "GitPublishError",
    "NotOnBranchError",
    "IncompleteIdentityError",
    "__version__",
]
