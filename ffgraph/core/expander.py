"""Expansion of a wildcard command template into concrete commands.

``ffmpeg -i "clips/*.mp4" -c:v libx264 out/{name}_{index}.mp4`` becomes
one command per matching clip. Supported output placeholders:

- ``{name}``: basenames of the matched inputs without extension, joined
  with ``_``
- ``{hash}``: SHA-256 prefix of the matched input paths joined with ``|``,
  or of the command text plus the index when no input is a wildcard
- ``{index}``: zero-based position, zero-padded to ``index_padding``

A ``*`` in an output, or a single output without placeholders, receives
the value picked by the injection mode: index when an output uses
``{index}``, name when an input is a wildcard, hash otherwise.
"""

import asyncio
import glob
import hashlib
import logging
import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from .errors import EmptyExpansionError
from .tokenizer import join_args, tokenize

logger = logging.getLogger("ffgraph")

PLACEHOLDER = re.compile(r"\{(hash|name|index)\}")
_OUTPUT_EXTENSION = re.compile(r"\.[A-Za-z0-9]{2,5}$")
_NUMERIC = re.compile(r"^[\d:.]+[kKmMgG]?$")

GlobService = Callable[[str], Awaitable[list[str]]]


class InjectionMode(str, Enum):
    """Which value replaces ``*`` in outputs without placeholders."""
    HASH = "hash"
    NAME = "name"
    INDEX = "index"


@dataclass
class ExpandOptions:
    hash_length: int = 8
    index_padding: int = 0
    # None picks the mode from the command
    injection: Optional[InjectionMode] = None


def _glob_files(pattern: str) -> list[str]:
    return sorted(path for path in glob.glob(pattern) if os.path.isfile(path))


async def glob_files(pattern: str) -> list[str]:
    """Resolve a wildcard pattern to regular files, sorted."""
    return await asyncio.to_thread(_glob_files, pattern)


def _is_output_target(token: str) -> bool:
    if token.startswith("-") and token != "-":
        return False
    if "*" in token or PLACEHOLDER.search(token):
        return True
    return bool(_OUTPUT_EXTENSION.search(token)) and not _NUMERIC.match(token)


def _inject(token: str, value: str) -> str:
    root, ext = os.path.splitext(token)
    return f"{root}_{value}{ext}"


class WildcardExpander:
    """Expands command templates using an injectable glob service."""

    def __init__(
        self,
        glob_service: Optional[GlobService] = None,
        options: Optional[ExpandOptions] = None,
    ):
        self.glob_service = glob_service or glob_files
        self.options = options or ExpandOptions()

    def _values(self, matched: list[str], index: int, command: str) -> dict[str, str]:
        source = "|".join(matched) if matched else f"{command}{index}"
        digest = hashlib.sha256(source.encode("utf-8")).hexdigest()
        names = [os.path.splitext(os.path.basename(p))[0] for p in matched]
        return {
            "hash": digest[:self.options.hash_length],
            "name": "_".join(names),
            "index": str(index).zfill(self.options.index_padding),
        }

    def _injection_mode(self, patterns: list[str], has_wildcards: bool) -> InjectionMode:
        if self.options.injection is not None:
            return InjectionMode(self.options.injection)
        if any("{index}" in p for p in patterns):
            return InjectionMode.INDEX
        if has_wildcards:
            return InjectionMode.NAME
        return InjectionMode.HASH

    @staticmethod
    def _render_output(token: str, values: dict[str, str], injected: str, single: bool) -> str:
        if "*" in token:
            return token.replace("*", injected)
        if PLACEHOLDER.search(token):
            return PLACEHOLDER.sub(lambda m: values[m.group(1)], token)
        if single:
            return _inject(token, injected)
        return token

    async def expand(self, command: str) -> list[str]:
        """Expand a command template.

        Args:
            command: Command text, optionally with wildcard inputs and
                templated outputs.

        Returns:
            One command per matched input file, or ``[command]`` unchanged
            when there is nothing to expand.

        Raises:
            EmptyExpansionError: If a wildcard input matches no files.
        """
        tokens = tokenize(command)
        input_positions = [i + 1 for i, tok in enumerate(tokens) if tok == "-i" and i + 1 < len(tokens)]
        wildcard_inputs = [p for p in input_positions if "*" in tokens[p]]
        first_output = input_positions[-1] + 1 if input_positions else 1
        outputs = [j for j in range(first_output, len(tokens)) if _is_output_target(tokens[j])]
        templated = [j for j in outputs if "*" in tokens[j] or PLACEHOLDER.search(tokens[j])]

        if not wildcard_inputs and not templated:
            return [command]

        resolved: list[list[str]] = []
        for pos in wildcard_inputs:
            matches = await self.glob_service(tokens[pos])
            if not matches:
                raise EmptyExpansionError(tokens[pos])
            resolved.append(list(matches))

        count = 1
        if resolved:
            lengths = [len(m) for m in resolved]
            count = min(lengths)
            if len(set(lengths)) > 1:
                logger.warning(
                    "Wildcard inputs matched different file counts %s; expanding %d command(s)",
                    lengths, count,
                )

        single = len(outputs) == 1
        mode = self._injection_mode([tokens[j] for j in outputs], bool(wildcard_inputs))
        commands = []
        for index in range(count):
            argv = list(tokens)
            for pos, matches in zip(wildcard_inputs, resolved):
                argv[pos] = matches[index]
            values = self._values([argv[p] for p in wildcard_inputs], index, command)
            for pos in outputs:
                argv[pos] = self._render_output(tokens[pos], values, values[mode.value], single)
            commands.append(join_args(argv))

        logger.info("Expanded command into %d command(s)", len(commands))
        return commands


async def expand(
    command: str,
    options: Optional[ExpandOptions] = None,
    glob_service: Optional[GlobService] = None,
) -> list[str]:
    """Expand a command template with the default or a given glob service."""
    return await WildcardExpander(glob_service, options).expand(command)
