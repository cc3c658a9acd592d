"""
NavigationController - Content locking and cursor movement.

Provides:
- Lock/unlock state of every content item, derived from progress
- Next/previous/jump navigation with lock checking
- Program tree with status indicators
- Recommended resume position

Locking only looks one step back: an item is unlocked when the item before
it in document order is completed. The first item of the first module is
never locked.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from trainplayer.schemas import Content, ContentProgress, ContentStatus, Module

from .errors import ConfigurationError, LockedContentError, ProgramIncompleteError
from .graph import ContentGraph, Position


class ItemState(str, Enum):
    """Content state for UI display."""
    LOCKED = "locked"                            # previous item not completed
    UNLOCKED_INCOMPLETE = "unlocked_incomplete"  # reachable, not yet done
    COMPLETED = "completed"


class NavigationAction(str, Enum):
    NEXT = "next"
    PREVIOUS = "previous"
    JUMP = "jump"


class NavigationOutcome(str, Enum):
    MOVED = "moved"
    UNCHANGED = "unchanged"                # previous() at the first item
    PROGRAM_COMPLETE = "program_complete"  # next() at the last item


@dataclass(frozen=True)
class NavigationResult:
    outcome: NavigationOutcome
    position: Position

    @property
    def program_complete(self) -> bool:
        return self.outcome == NavigationOutcome.PROGRAM_COMPLETE


@dataclass
class NavigationItem:
    """Content with navigation metadata."""
    content: Content
    position: Position
    state: ItemState
    is_current: bool


@dataclass
class NavigationModule:
    """Module with content items and navigation metadata."""
    module: Module
    items: list[NavigationItem]
    completed_count: int
    total_count: int


class NavigationController:
    """
    Single source of truth for content reachability and the cursor.

    Combines ContentGraph (structure) with content progress (learner state).
    Item state is recomputed on every call; nothing derived is cached.
    """

    def __init__(self, graph: ContentGraph, progress: Iterable[ContentProgress] = ()):
        """
        Initialize controller.

        Args:
            graph: ContentGraph for the program
            progress: ContentProgress records for the enrollment
        """
        if not graph.is_ready:
            raise ConfigurationError(f"Program {graph.program.id} has no content to navigate")
        self.graph = graph
        self._completed: set[str] = set()
        self.load_progress(progress)
        self._cursor: Position = (0, 0)

    def load_progress(self, progress: Iterable[ContentProgress]):
        """Replace known completion state with persisted progress."""
        self._completed = {p.content_id for p in progress if p.status == ContentStatus.COMPLETED}

    def record_completion(self, content_id: str):
        self.graph.position_of(content_id)
        self._completed.add(content_id)

    def is_completed(self, content_id: str) -> bool:
        return content_id in self._completed

    @property
    def completed_count(self) -> int:
        return sum(1 for _, content in self.graph.iter_positions() if content.id in self._completed)

    # -------------------------------------------------------------------------
    # Locking
    # -------------------------------------------------------------------------

    def is_locked(self, module_index: int, content_index: int) -> bool:
        previous = self.graph.previous_position(module_index, content_index)
        if previous is None:
            return False
        return not self.is_completed(self.graph.content_at(*previous).id)

    def item_state(self, module_index: int, content_index: int) -> ItemState:
        content = self.graph.content_at(module_index, content_index)
        if self.is_completed(content.id):
            return ItemState.COMPLETED
        if self.is_locked(module_index, content_index):
            return ItemState.LOCKED
        return ItemState.UNLOCKED_INCOMPLETE

    # -------------------------------------------------------------------------
    # Cursor
    # -------------------------------------------------------------------------

    @property
    def cursor(self) -> Position:
        return self._cursor

    @property
    def current_content(self) -> Content:
        return self.graph.content_at(*self._cursor)

    def transition(self, action: NavigationAction, target: Optional[Position] = None) -> NavigationResult:
        """
        Apply one navigation action to the cursor.

        Raises LockedContentError (cursor unchanged) when the destination
        is locked.
        """
        if action == NavigationAction.NEXT:
            if self.graph.is_last_content(*self._cursor):
                if not self.is_completed(self.current_content.id):
                    raise ProgramIncompleteError(
                        f"Complete '{self.current_content.title}' to finish the program"
                    )
                return NavigationResult(NavigationOutcome.PROGRAM_COMPLETE, self._cursor)
            destination = self.graph.next_position(*self._cursor)
        elif action == NavigationAction.PREVIOUS:
            destination = self.graph.previous_position(*self._cursor)
            if destination is None:
                return NavigationResult(NavigationOutcome.UNCHANGED, self._cursor)
        elif action == NavigationAction.JUMP:
            if target is None:
                raise ValueError("JUMP requires a target position")
            destination = target
        else:
            raise ValueError(f"Unknown navigation action: {action}")

        if self.is_locked(*destination):
            content = self.graph.content_at(*destination)
            raise LockedContentError(destination[0], destination[1], content.id)

        self._cursor = destination
        return NavigationResult(NavigationOutcome.MOVED, destination)

    def next(self) -> NavigationResult:
        return self.transition(NavigationAction.NEXT)

    def previous(self) -> NavigationResult:
        return self.transition(NavigationAction.PREVIOUS)

    def jump_to(self, module_index: int, content_index: int) -> NavigationResult:
        return self.transition(NavigationAction.JUMP, (module_index, content_index))

    def get_recommended_position(self) -> Position:
        """
        Get the position a returning learner should resume at.

        Priority:
        1. First unlocked item that is not completed
        2. First item (everything completed)
        """
        for position, _ in self.graph.iter_positions():
            if self.item_state(*position) == ItemState.UNLOCKED_INCOMPLETE:
                return position
        return (0, 0)

    # -------------------------------------------------------------------------
    # Program Tree
    # -------------------------------------------------------------------------

    def get_navigation_tree(self) -> list[NavigationModule]:
        """
        Get the full program tree with navigation metadata.

        Returns list of modules with content items, each annotated with
        its item state and whether it is under the cursor.
        """
        tree = []
        for m in range(self.graph.module_count()):
            items = []
            completed_count = 0
            for c, content in enumerate(self.graph.contents_of(m)):
                state = self.item_state(m, c)
                if state == ItemState.COMPLETED:
                    completed_count += 1
                items.append(NavigationItem(
                    content=content,
                    position=(m, c),
                    state=state,
                    is_current=(m, c) == self._cursor,
                ))
            tree.append(NavigationModule(
                module=self.graph.module_at(m),
                items=items,
                completed_count=completed_count,
                total_count=len(items),
            ))
        return tree

    def get_status_indicator(self, module_index: int, content_index: int) -> str:
        """
        Get status indicator for sidebar display.

        Returns:
            ✓ for completed
            → for current
            ○ for unlocked
            ◌ for locked
        """
        state = self.item_state(module_index, content_index)
        if state == ItemState.COMPLETED:
            return "✓"
        elif (module_index, content_index) == self._cursor:
            return "→"
        elif state == ItemState.UNLOCKED_INCOMPLETE:
            return "○"
        else:
            return "◌"

    def get_progress_summary(self) -> dict:
        """Get progress summary for dashboard display."""
        total = self.graph.total_content_count
        completed = self.completed_count
        return {
            "total_content": total,
            "completed": completed,
            "completion_percent": round(completed / total * 100, 1) if total > 0 else 0,
            "modules": [
                {
                    "id": nav_module.module.id,
                    "title": nav_module.module.title,
                    "is_gateway": nav_module.module.is_gateway,
                    "completed": nav_module.completed_count,
                    "total": nav_module.total_count,
                }
                for nav_module in self.get_navigation_tree()
            ],
            "current_content_id": self.current_content.id,
        }
