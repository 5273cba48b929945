"""All-or-nothing execution over component state.

Components never write into their state containers directly. They go
through ``put``, ``add`` and ``assign``, which record how to undo the write
in the innermost open journal. ``atomic`` opens a journal and replays it
backwards if the block raises, so a failed call leaves no partial effects
and a rollback costs only the entries the call touched.
"""

from contextlib import contextmanager
from contextvars import ContextVar

_journal: ContextVar = ContextVar("journal", default=None)


def _record(undo) -> None:
    journal = _journal.get()
    if journal is not None:
        journal.append(undo)


def put(mapping: dict, key, value) -> None:
    if key in mapping:
        previous = mapping[key]
        _record(lambda: mapping.__setitem__(key, previous))
    else:
        _record(lambda: mapping.pop(key))
    mapping[key] = value


def add(members: set, item) -> None:
    if item not in members:
        _record(lambda: members.discard(item))
        members.add(item)


def assign(obj, name: str, value) -> None:
    previous = getattr(obj, name)
    _record(lambda: setattr(obj, name, previous))
    setattr(obj, name, value)


@contextmanager
def atomic():
    parent = _journal.get()
    journal = []
    token = _journal.set(journal)
    try:
        yield
    except Exception:
        for undo in reversed(journal):
            undo()
        raise
    finally:
        _journal.reset(token)
    # A committed inner block is still undone if the enclosing one fails
    if parent is not None:
        parent.extend(journal)
