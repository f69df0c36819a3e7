"""
Backend Registry
================

Maps numeric backend identifiers to code generators.

A generator is any class whose instances take a GeneratorOptions and
expose `generate(program) -> str`. Generators do not share a base
class; they register themselves with the `register_backend` decorator,
so adding a target never touches the analyzer or the AST.

Usage
-----
>>> @register_backend(7, "c", extension=".c")
... class CGenerator:
...     def __init__(self, options): ...
...     def generate(self, program): ...
>>> text = generate(program, 7)
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from smplc.lang.errors import UnknownBackendError

logger = logging.getLogger(__name__)


@dataclass
class GeneratorOptions:
    """
    Options passed to every generator.

    Attributes:
        emit_entry_point: Emit the target's program entry wrapper when the
                          program defines `fn main()`
    """
    emit_entry_point: bool = True


@dataclass(frozen=True)
class BackendInfo:
    """
    A registered backend.

    Attributes:
        backend_id: Numeric identifier used on the command line
        name: Short target name, e.g. "rust"
        extension: Default output file extension, including the dot
        factory: Callable building a generator from GeneratorOptions
    """
    backend_id: int
    name: str
    extension: str
    factory: Callable[[GeneratorOptions], Any]


_BACKENDS: dict[int, BackendInfo] = {}


def register_backend(backend_id: int, name: str, extension: str = ".txt"):
    """
    Class decorator registering a generator under backend_id.

    Raises:
        ValueError: If backend_id is already taken
    """
    def decorator(factory):
        if backend_id in _BACKENDS:
            existing = _BACKENDS[backend_id]
            raise ValueError(f"backend id {backend_id} already registered for '{existing.name}'")
        _BACKENDS[backend_id] = BackendInfo(backend_id, name, extension, factory)
        return factory

    return decorator


def get_backend(backend_id: int) -> BackendInfo:
    """
    Look up a registered backend.

    Raises:
        UnknownBackendError: If no backend has that id
    """
    info = _BACKENDS.get(backend_id)
    if info is None:
        raise UnknownBackendError(backend_id, available=_BACKENDS)
    return info


def available_backends() -> list[BackendInfo]:
    """All registered backends, ordered by id."""
    return [_BACKENDS[i] for i in sorted(_BACKENDS)]


def generate(program, backend_id: int = 0, options: GeneratorOptions = None) -> str:
    """
    Lower a typed Program with the backend registered under backend_id.

    Raises:
        UnknownBackendError: If no backend has that id
        BackendLoweringError: If the backend cannot express the program
    """
    info = get_backend(backend_id)
    logger.debug(f"generating with backend {backend_id} ({info.name})")
    generator = info.factory(options or GeneratorOptions())
    output = generator.generate(program)
    logger.debug(f"{info.name} backend produced {len(output)} characters")
    return output
