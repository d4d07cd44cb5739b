"""vtree - Virtual file tree manager.

Organize real files into named virtual hierarchies without moving or
copying them, then navigate those hierarchies and run commands against
the files they point to.
"""

from vtree.core.constants import VTREE_VERSION

__version__ = VTREE_VERSION

__all__ = ["__version__"]
