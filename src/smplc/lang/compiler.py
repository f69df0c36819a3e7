"""
smpl Compiler Main Module
=========================

This module provides the main compiler interface for smpl.
It orchestrates the complete compilation of one set of source files:

    Sources → Lex → Parse → Module Graph → Analyze → Generate → Text

Usage
-----
Command line:
    $ smplc -i geo.smpl -i main.smpl -b 0 -o out.rs

Programmatic:
    >>> from smplc.lang.compiler import compile_smpl
    >>> rust = compile_smpl(['fn main() { }'])

Error Handling
--------------
The pipeline is fail-fast: the first CompileError raised by any stage
propagates to the caller unchanged and no output is produced.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from smplc.backends import GeneratorOptions, generate, get_backend
from smplc.lang.ast import ModuleNode
from smplc.lang.checker import Program, SemanticAnalyzer
from smplc.lang.lexer import Lexer, Token
from smplc.lang.module_graph import ModuleGraph, build_module_graph
from smplc.lang.parser import Parser
from smplc.lang.prelude import load_prelude

logger = logging.getLogger(__name__)


@dataclass
class SourceFile:
    """
    One input file's text.

    Attributes:
        text: smpl source code
        filename: Name used in error messages
    """
    text: str
    filename: str = "<input>"


@dataclass
class CompilerOptions:
    """
    Compiler configuration options.

    Attributes:
        backend: Numeric id of the code generator (0 = Rust, 1 = smpl)
        include_prelude: Make the builtin prelude (Option and its
                         intrinsics) visible to every module
        emit_entry_point: Emit the target's entry wrapper around
                          `fn main()` when the program defines one
    """
    backend: int = 0
    include_prelude: bool = True
    emit_entry_point: bool = True


@dataclass
class CompilerResult:
    """
    Result of a successful compilation.

    Attributes:
        output: Generated target-language text
        program: The typed program the backend consumed
        backend: Name of the backend that produced output
        modules: Names of the compiled user modules, in input order
        token_count: Number of tokens lexed across all inputs
    """
    output: str = ""
    program: Optional[Program] = None
    backend: str = ""
    modules: list[str] = field(default_factory=list)
    token_count: int = 0


class SmplCompiler:
    """
    smpl compiler for a set of source files.

    Example:
        compiler = SmplCompiler(CompilerOptions(backend=1))
        result = compiler.compile_files(["geo.smpl", "main.smpl"])
        print(result.output)

    Attributes:
        options: Compiler configuration options
    """

    def __init__(self, options: Optional[CompilerOptions] = None):
        self.options = options or CompilerOptions()
        self._token_count = 0

    def compile_sources(self, sources: list[Union[SourceFile, str]]) -> CompilerResult:
        """
        Compile in-memory sources.

        Args:
            sources: SourceFile objects, or plain strings (named
                     `<input-1>`, `<input-2>`, ...)

        Returns:
            CompilerResult with the generated text

        Raises:
            CompileError: On the first error of any stage
        """
        # Fail before doing any work when the backend id is unknown
        backend = get_backend(self.options.backend)

        program = self.analyze(sources)
        output = generate(
            program,
            self.options.backend,
            GeneratorOptions(emit_entry_point=self.options.emit_entry_point),
        )

        return CompilerResult(
            output=output,
            program=program,
            backend=backend.name,
            modules=[info.name for info in program.graph.user_modules],
            token_count=self._token_count,
        )

    def compile_files(self, paths: list[Union[str, Path]]) -> CompilerResult:
        """
        Compile smpl source files.

        Raises:
            CompileError: On the first error of any stage
            FileNotFoundError: If a source file does not exist
        """
        return self.compile_sources([read_source_file(p) for p in paths])

    def parse_sources(self, sources: list[Union[SourceFile, str]]) -> list[ModuleNode]:
        """Lex and parse every source, in order."""
        self._token_count = 0
        modules = []
        for index, source in enumerate(sources, start=1):
            if isinstance(source, str):
                source = SourceFile(source, f"<input-{index}>")
            tokens = self._lex(source)
            modules.append(self._parse(tokens, source))
        logger.debug(f"parsed {len(modules)} modules ({self._token_count} tokens)")
        return modules

    def build_graph(self, sources: list[Union[SourceFile, str]]) -> ModuleGraph:
        """Parse every source and assemble the module graph."""
        modules = self.parse_sources(sources)
        prelude = load_prelude() if self.options.include_prelude else None
        return build_module_graph(modules, prelude)

    def analyze(self, sources: list[Union[SourceFile, str]]) -> Program:
        """Run every front-end stage and return the typed program."""
        graph = self.build_graph(sources)
        program = SemanticAnalyzer(graph).analyze()
        logger.debug(f"analysis complete, entry module: {program.entry_module}")
        return program

    def _lex(self, source: SourceFile) -> list[Token]:
        tokens = list(Lexer(source.text, source.filename).tokenize())
        self._token_count += len(tokens)
        return tokens

    def _parse(self, tokens: list[Token], source: SourceFile) -> ModuleNode:
        parser = Parser(tokens, source.filename, source.text.splitlines())
        return parser.parse()


def read_source_file(path: Union[str, Path]) -> SourceFile:
    """
    Read one smpl file.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Source file not found: {path}")
    return SourceFile(path.read_text(encoding="utf-8"), str(path))


def compile_smpl(sources: list[Union[SourceFile, str]], backend_id: int = 0) -> str:
    """
    Compile smpl sources and return the generated text.

    This is the simplest way to compile smpl code.

    Args:
        sources: Source texts (or SourceFile objects), one per module
        backend_id: Code generator id (0 = Rust, 1 = smpl)

    Returns:
        Generated source text

    Raises:
        CompileError: On the first error of any stage

    Example:
        >>> text = compile_smpl(['struct P { x: int }'], backend_id=1)
        >>> print(text)
        struct P {
            x: int,
        }
    """
    compiler = SmplCompiler(CompilerOptions(backend=backend_id))
    return compiler.compile_sources(sources).output
