"""
smpl Source Generator
=====================

Backend 1. Emits the canonical smpl text of every user module, one after
another, separated by a blank line. The output of a single-module
program parses back to an AST equal to the input's.
"""

import logging

from smplc.backends.registry import GeneratorOptions, register_backend
from smplc.lang.printer import format_module

logger = logging.getLogger(__name__)


@register_backend(1, "smpl", extension=".smpl")
class SmplGenerator:
    """Pretty-prints the checked modules back to smpl."""

    def __init__(self, options: GeneratorOptions = None):
        self.options = options or GeneratorOptions()

    def generate(self, program) -> str:
        texts = [format_module(module) for module in program.modules]
        logger.debug(f"formatted {len(texts)} modules")
        return "\n".join(texts)
