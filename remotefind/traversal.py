import logging
from typing import Callable, Optional, Sequence

from remotefind.connector import Connector
from remotefind.criteria import Criterion, matches
from remotefind.utils.entry import FSEntry, join_path

logger = logging.getLogger(__name__)


class Finder:
    """Walks a directory tree and hands matching entries to an action.

    Attributes
    ----------
    connector : Connector
        File system to walk.
    criteria : Sequence[Criterion]
        Compiled filter, an empty sequence matches everything.
    action : Callable[[FSEntry], Optional[FSEntry]]
        Called for every matching entry. May return the entry as it is
        after the action, e.g. under a new name, to descend into.
    max_depth : Optional[int]
        Directories at this depth are not descended into, unbounded if None.
    depth_first : bool
        Descend into a directory before its own entry is filtered.
        This is the only order in which ``-empty`` is known for directories.
    sort : bool
        Process children in name order.
    """

    def __init__(
        self,
        connector: Connector,
        criteria: Sequence[Criterion],
        action: Callable[[FSEntry], Optional[FSEntry]],
        max_depth: Optional[int] = None,
        depth_first: bool = False,
        sort: bool = False
    ):
        self.connector = connector
        self.criteria = criteria
        self.action = action
        self.max_depth = max_depth
        self.depth_first = depth_first
        self.sort = sort

    def find(self, root: str) -> bool:
        """Search below ``root``.

        Parameters
        ----------
        root : str
            Search root, children of it are at depth 1.

        Returns
        -------
        bool
            Whether ``root`` had no children.

        Raises
        ------
        OSError
            If ``root`` itself cannot be listed. Failures below the root
            are logged and the subtree is skipped.
        """
        return self._process(root, self.connector.scandir(root), 1)

    def _walk(self, path: str, depth: int) -> bool:
        try:
            entries = self.connector.scandir(path)
        except OSError as err:
            logger.warning("cannot list directory '%s': %s", path, err)
            return False
        return self._process(path, entries, depth)

    def _process(self, path: str, entries: list[FSEntry], depth: int) -> bool:
        if self.sort:
            entries.sort(key=lambda entry: entry.name)

        descend = self.max_depth is None or depth < self.max_depth
        deferred = []
        for entry in entries:
            entry.depth = depth
            walk = entry.is_dir and descend
            if walk and self.depth_first:
                entry.is_empty_dir = self._walk(join_path(path, entry.name), depth + 1)
            if matches(self.criteria, entry):
                entry = self.action(entry) or entry
            # deferred children are listed under the name left by the action
            if walk and not self.depth_first:
                deferred.append(join_path(path, entry.name))
        for child in deferred:
            self._walk(child, depth + 1)
        return not entries
