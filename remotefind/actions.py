import dataclasses
import logging
from typing import Callable, Optional, TextIO

from remotefind.connector import Connector
from remotefind.formatter import Formatter
from remotefind.modespec import ModeOp, apply_mode_spec, PERMISSION_BITS
from remotefind.rename import RenameError
from remotefind.utils.entry import FSEntry, join_path

logger = logging.getLogger(__name__)


class Printer:
    """Writes rendered entries followed by a terminator.

    Attributes
    ----------
    formatter : Formatter
        Compiled template.
    eol : str
        Terminator written after each entry.
    stream : TextIO
        Output stream.
    """

    def __init__(self, formatter: Formatter, eol: str, stream: TextIO):
        self.formatter = formatter
        self.eol = eol
        self.stream = stream

    def __call__(self, entry: FSEntry) -> None:
        self.stream.write(self.formatter.render(entry) + self.eol)


class ActionExecutor:
    """Applies the requested actions to matching entries.

    Actions run in a fixed order: delete, mode change, rename, print.
    A failed action is logged and the remaining ones still run.

    Attributes
    ----------
    connector : Connector
        File system the entries belong to.
    delete : bool
        Remove matching entries.
    mode_spec : Optional[tuple[ModeOp, ...]]
        Compiled mode specification to apply.
    rename : Optional[Callable[[str], str]]
        Base name transformation.
    printer : Optional[Printer]
        Output for matching entries.
    """

    def __init__(
        self,
        connector: Connector,
        delete: bool = False,
        mode_spec: Optional[tuple[ModeOp, ...]] = None,
        rename: Optional[Callable[[str], str]] = None,
        printer: Optional[Printer] = None
    ):
        self.connector = connector
        self.delete = delete
        self.mode_spec = mode_spec
        self.rename = rename
        self.printer = printer

    def __call__(self, entry: FSEntry) -> FSEntry:
        """Run the actions on ``entry`` and return it under its final name."""
        if self.delete:
            self._delete(entry)
        if self.mode_spec is not None:
            self._chmod(entry)
        if self.rename is not None:
            entry = self._rename(entry)
        if self.printer is not None:
            self.printer(entry)
        return entry

    def _delete(self, entry: FSEntry) -> None:
        path = entry.path
        try:
            if entry.is_dir:
                self.connector.rmdir(path)
            else:
                self.connector.remove(path)
        except OSError as err:
            logger.warning("cannot delete '%s': %s", path, err)
        else:
            logger.info("deleted '%s'", path)

    def _chmod(self, entry: FSEntry) -> None:
        path = entry.path
        mode = apply_mode_spec(self.mode_spec, entry.mode) & PERMISSION_BITS
        try:
            self.connector.chmod(path, mode)
        except OSError as err:
            logger.warning("cannot change mode of '%s' to %04o: %s", path, mode, err)
        else:
            logger.info("changed mode of '%s' to %04o", path, mode)

    def _rename(self, entry: FSEntry) -> FSEntry:
        try:
            new_name = self.rename(entry.name)
        except RenameError as err:
            logger.warning('cannot rename: %s', err)
            return entry
        if new_name == entry.name:
            return entry
        old_path = entry.path
        new_path = join_path(entry.parent, new_name)
        try:
            self.connector.rename(old_path, new_path)
        except OSError as err:
            logger.warning("cannot rename '%s' to '%s': %s", old_path, new_path, err)
            return entry
        logger.info("renamed '%s' to '%s'", old_path, new_path)
        return dataclasses.replace(entry, name=new_name)
