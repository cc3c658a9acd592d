"""
ContentGraph - Deterministic module/content ordering with index addressing.

Pure derivation from a Program: inactive modules and content are dropped,
the rest sorted by ascending sequence_order at each level.
"""

from typing import Iterator, Optional

from trainplayer.schemas import Content, Module, Program

from .errors import ConfigurationError


Position = tuple[int, int]


class ContentGraph:
    """
    Read-only ordered view of Modules -> Content.

    A program with zero modules yields an empty graph; callers treat
    `is_ready == False` as "not ready", not as an error.
    """

    def __init__(self, program: Program):
        self.program = program
        modules = sorted(
            (m for m in program.modules if m.is_active),
            key=lambda m: m.sequence_order,
        )
        self._modules: tuple[Module, ...] = tuple(modules)
        self._contents: tuple[tuple[Content, ...], ...] = tuple(
            tuple(sorted(
                (c for c in module.contents if c.is_active),
                key=lambda c: c.sequence_order,
            ))
            for module in modules
        )
        self._positions: dict[str, Position] = {
            content.id: (m, c)
            for m, contents in enumerate(self._contents)
            for c, content in enumerate(contents)
        }

    @property
    def is_ready(self) -> bool:
        return self.module_count() > 0 and self.total_content_count > 0

    @property
    def total_content_count(self) -> int:
        return len(self._positions)

    # -------------------------------------------------------------------------
    # Index addressing
    # -------------------------------------------------------------------------

    def module_count(self) -> int:
        return len(self._modules)

    def content_count(self, module_index: int) -> int:
        self._check_module(module_index)
        return len(self._contents[module_index])

    def module_at(self, module_index: int) -> Module:
        self._check_module(module_index)
        return self._modules[module_index]

    def content_at(self, module_index: int, content_index: int) -> Content:
        self._check_position(module_index, content_index)
        return self._contents[module_index][content_index]

    def contents_of(self, module_index: int) -> tuple[Content, ...]:
        self._check_module(module_index)
        return self._contents[module_index]

    def is_last_content(self, module_index: int, content_index: int) -> bool:
        """True only for the last item of the last module."""
        self._check_position(module_index, content_index)
        return (
            module_index == len(self._modules) - 1
            and content_index == len(self._contents[module_index]) - 1
        )

    def position_of(self, content_id: str) -> Position:
        if content_id not in self._positions:
            raise ConfigurationError(f"Content {content_id} is not part of program {self.program.id}")
        return self._positions[content_id]

    def get_content(self, content_id: str) -> Content:
        return self.content_at(*self.position_of(content_id))

    def iter_positions(self) -> Iterator[tuple[Position, Content]]:
        """Yield ((module_index, content_index), content) in document order."""
        for m, contents in enumerate(self._contents):
            for c, content in enumerate(contents):
                yield (m, c), content

    # -------------------------------------------------------------------------
    # Neighbours
    # -------------------------------------------------------------------------

    def previous_position(self, module_index: int, content_index: int) -> Optional[Position]:
        """
        Position of the item before (m, c) in document order.

        Returns None for (0, 0). An empty preceding module is a
        ConfigurationError.
        """
        self._check_position(module_index, content_index)
        if content_index > 0:
            return (module_index, content_index - 1)
        if module_index == 0:
            return None
        previous_count = len(self._contents[module_index - 1])
        if previous_count == 0:
            raise ConfigurationError(
                f"Module '{self._modules[module_index - 1].title}' has no content"
            )
        return (module_index - 1, previous_count - 1)

    def next_position(self, module_index: int, content_index: int) -> Optional[Position]:
        """Position of the item after (m, c), or None at the very end."""
        self._check_position(module_index, content_index)
        if content_index + 1 < len(self._contents[module_index]):
            return (module_index, content_index + 1)
        if module_index + 1 >= len(self._modules):
            return None
        if not self._contents[module_index + 1]:
            raise ConfigurationError(
                f"Module '{self._modules[module_index + 1].title}' has no content"
            )
        return (module_index + 1, 0)

    # -------------------------------------------------------------------------
    # Validation helpers
    # -------------------------------------------------------------------------

    def _check_module(self, module_index: int):
        if not 0 <= module_index < len(self._modules):
            raise IndexError(f"Module index out of range: {module_index}")

    def _check_position(self, module_index: int, content_index: int):
        self._check_module(module_index)
        if not 0 <= content_index < len(self._contents[module_index]):
            raise IndexError(f"Content index out of range: ({module_index}, {content_index})")
