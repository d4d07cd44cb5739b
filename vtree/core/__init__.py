"""vtree Core - Shared constants, errors and validators.

Import specific names from submodules:
    from vtree.core.constants import ErrorCode
    from vtree.core.errors import PathNotFoundError
    from vtree.core.validators import validate_node_name
"""

# Re-export main module references for convenience
from vtree.core import constants, errors, validators

__all__ = [
    "constants",
    "errors",
    "validators",
]
