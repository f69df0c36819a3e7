"""
Builtin Prelude
===============

The prelude is an smpl module compiled alongside every program. It
declares the opaque `Option` type and the intrinsic functions that are
the only way to build, inspect or take apart an Option value. Every
module sees these names unqualified, below its own items and the items
of the modules it `use`s.

The declarations are plain `opaque` / `builtin fn` source, so the
analyzer checks calls to them with exactly the same rules as calls to
user functions; only backends give them meaning.
"""

from smplc.lang.ast import ModuleNode
from smplc.lang.parser import parse_source

PRELUDE_MODULE = "prelude"
PRELUDE_FILENAME = "<prelude>"

PRELUDE_SOURCE = """\
mod prelude;

opaque Option(type T);

builtin fn some(type T)(value: T) -> Option(type T);
builtin fn none(type T)() -> Option(type T);
builtin fn is_some(type T)(opt: Option(type T)) -> bool;
builtin fn is_none(type T)(opt: Option(type T)) -> bool;
builtin fn unwrap(type T)(opt: Option(type T)) -> T;
builtin fn expect(type T)(opt: Option(type T), message: string) -> T;
builtin fn unwrap_or(type T)(opt: Option(type T), default: T) -> T;
builtin fn map(type T, U)(opt: Option(type T), f: fn(T) -> U) -> Option(type U);
"""


def load_prelude() -> ModuleNode:
    """Parse a fresh copy of the prelude (each compilation decorates its own)."""
    return parse_source(PRELUDE_SOURCE, PRELUDE_FILENAME)
