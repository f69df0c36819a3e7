"""
smplc Backends
==============

Code generators for typed smpl programs, selected by numeric id:

| Id | Name | Output             |
|----|------|--------------------|
| 0  | rust | Rust crate root    |
| 1  | smpl | Canonical smpl     |

Importing this package registers both generators.
"""

from smplc.backends.registry import (
    BackendInfo,
    GeneratorOptions,
    available_backends,
    generate,
    get_backend,
    register_backend,
)

# Registration side effects
from smplc.backends import rust, smpl  # noqa: F401

__all__ = [
    "BackendInfo",
    "GeneratorOptions",
    "available_backends",
    "generate",
    "get_backend",
    "register_backend",
]
