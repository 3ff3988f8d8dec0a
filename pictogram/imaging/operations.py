"""Edit operations and the append-only operation log.

Each operation is a frozen dataclass, one class per transformation kind.
The log is replayed from the pristine source on every render, so the
operations themselves carry no pixel data.
"""

import dataclasses
import enum
import logging
import threading
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Iterable, Iterator, List, Optional, Tuple, Type

from pictogram.config import config
from pictogram.errors import InvalidOperationError
from pictogram.formats import OutputFormat

log = logging.getLogger(__name__)

DEFAULT_MAX_OUTPUT_MEGAPIXELS = 100


def max_output_pixels() -> int:
    """Largest width x height an edit may produce (``[core] max_output_megapixels``)."""
    megapixels = config.getfloat("core", "max_output_megapixels", fallback=DEFAULT_MAX_OUTPUT_MEGAPIXELS)
    return int(megapixels * 1_000_000)


class TransformationType(enum.Enum):
    ROTATE_RIGHT = "rotate_right"
    ROTATE_LEFT = "rotate_left"
    FLIP_HORIZONTAL = "flip_horizontal"
    FLIP_VERTICAL = "flip_vertical"
    RESIZE = "resize"
    CONVERT_FORMAT = "convert_format"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclasses.dataclass(frozen=True)
class EditOperation:
    """Base class for a single logged edit. ``at`` is only for display and ordering audit."""
    kind: ClassVar[TransformationType]
    at: datetime = dataclasses.field(default_factory=_now, kw_only=True, compare=False)

    def params(self) -> Dict[str, Any]:
        return {}

    def describe(self) -> str:
        return self.kind.value.replace("_", " ").capitalize()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "params": self.params(),
            "at": self.at.isoformat(),
        }


@dataclasses.dataclass(frozen=True)
class RotateRight(EditOperation):
    kind = TransformationType.ROTATE_RIGHT

    def describe(self) -> str:
        return "Rotate 90° right"


@dataclasses.dataclass(frozen=True)
class RotateLeft(EditOperation):
    kind = TransformationType.ROTATE_LEFT

    def describe(self) -> str:
        return "Rotate 90° left"


@dataclasses.dataclass(frozen=True)
class FlipHorizontal(EditOperation):
    kind = TransformationType.FLIP_HORIZONTAL


@dataclasses.dataclass(frozen=True)
class FlipVertical(EditOperation):
    kind = TransformationType.FLIP_VERTICAL


@dataclasses.dataclass(frozen=True)
class Resize(EditOperation):
    """Resize to ``width`` x ``height``; a missing side follows the aspect ratio at replay time."""
    kind = TransformationType.RESIZE
    width: Optional[int] = None
    height: Optional[int] = None

    def params(self) -> Dict[str, Any]:
        out = {}
        if self.width is not None:
            out["width"] = self.width
        if self.height is not None:
            out["height"] = self.height
        return out

    def describe(self) -> str:
        w = self.width if self.width is not None else "auto"
        h = self.height if self.height is not None else "auto"
        return f"Resize to {w}x{h}"


@dataclasses.dataclass(frozen=True)
class ConvertFormat(EditOperation):
    """Records the user's choice of output format. Has no pixel effect."""
    kind = TransformationType.CONVERT_FORMAT
    to: OutputFormat

    def params(self) -> Dict[str, Any]:
        return {"to": self.to.value}

    def describe(self) -> str:
        return f"Convert to {self.to.display_name}"


OPERATION_TYPES: Dict[TransformationType, Type[EditOperation]] = {
    cls.kind: cls
    for cls in (RotateRight, RotateLeft, FlipHorizontal, FlipVertical, Resize, ConvertFormat)
}


def validate_operation(op: EditOperation, max_pixels: Optional[int] = None) -> EditOperation:
    """Rejects operations that should never enter a log.

    Raises:
        InvalidOperationError: for a resize without a positive dimension,
            with a non-positive one, or one larger than ``max_pixels``
            (default from config), or a conversion to an unknown format.
    """
    if not isinstance(op, EditOperation) or type(op) not in OPERATION_TYPES.values():
        raise InvalidOperationError(f"Not an edit operation: {op!r}")
    if isinstance(op, Resize):
        if op.width is None and op.height is None:
            raise InvalidOperationError("Resize needs a width, a height or both")
        for name, value in (("width", op.width), ("height", op.height)):
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidOperationError(f"Resize {name} must be a positive integer, got {value!r}")
        limit = max_pixels or max_output_pixels()
        # One side alone is checked as a 1 px strip; the derived side is checked at replay
        area = (op.width or 1) * (op.height or 1)
        if area > limit:
            raise InvalidOperationError(
                f"Resize to {op.width or 'auto'}x{op.height or 'auto'} exceeds the {limit / 1e6:g} megapixel limit"
            )
    elif isinstance(op, ConvertFormat):
        if not isinstance(op.to, OutputFormat):
            raise InvalidOperationError(f"Unknown output format: {op.to!r}")
    return op


def operation_from_dict(data: Dict[str, Any]) -> EditOperation:
    """Rebuilds an operation from ``EditOperation.to_dict`` output.

    Raises:
        InvalidOperationError: for unknown types or malformed parameters.
    """
    try:
        kind = TransformationType(data["type"])
    except (KeyError, ValueError, TypeError) as e:
        raise InvalidOperationError(f"Unknown operation type in {data!r}") from e

    params = dict(data.get("params") or {})
    kwargs: Dict[str, Any] = {}
    at = data.get("at")
    if at:
        try:
            kwargs["at"] = datetime.fromisoformat(at)
        except (TypeError, ValueError):
            log.warning(f"Ignoring bad timestamp {at!r} on {kind.value} operation")

    cls = OPERATION_TYPES[kind]
    try:
        if cls is Resize:
            kwargs["width"] = params.get("width")
            kwargs["height"] = params.get("height")
        elif cls is ConvertFormat:
            kwargs["to"] = OutputFormat.parse(str(params["to"]))
    except (KeyError, ValueError) as e:
        raise InvalidOperationError(f"Bad parameters for {kind.value}: {params!r}") from e
    return validate_operation(cls(**kwargs))


class OperationLog:
    """Ordered, append-only list of edits with an undo cursor.

    Operations before the cursor are "active" and are what gets replayed.
    ``undo``/``redo`` only move the cursor; appending after an undo drops
    the undone tail. Nothing is ever reordered or edited in place.
    """

    def __init__(self, operations: Iterable[EditOperation] = ()):
        self._lock = threading.RLock()
        self._ops: List[EditOperation] = []
        self._cursor = 0
        self._rev = 0
        for op in operations:
            self.append(op)

    @property
    def revision(self) -> int:
        """Bumped on every change; lets callers tell whether a cached render is stale."""
        with self._lock:
            return self._rev

    def append(self, op: EditOperation) -> EditOperation:
        validate_operation(op)
        with self._lock:
            if self._cursor < len(self._ops):
                log.debug(f"Discarding {len(self._ops) - self._cursor} undone operation(s)")
                del self._ops[self._cursor:]
            self._ops.append(op)
            self._cursor = len(self._ops)
            self._rev += 1
        log.debug(f"Appended {op.describe()} (log length {self._cursor})")
        return op

    def extend(self, ops: Iterable[EditOperation]) -> None:
        for op in ops:
            self.append(op)

    def undo(self) -> Optional[EditOperation]:
        """Deactivates the most recent active operation and returns it."""
        with self._lock:
            if self._cursor == 0:
                return None
            self._cursor -= 1
            self._rev += 1
            return self._ops[self._cursor]

    def redo(self) -> Optional[EditOperation]:
        with self._lock:
            if self._cursor >= len(self._ops):
                return None
            op = self._ops[self._cursor]
            self._cursor += 1
            self._rev += 1
            return op

    @property
    def can_undo(self) -> bool:
        with self._lock:
            return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        with self._lock:
            return self._cursor < len(self._ops)

    def clear(self) -> None:
        with self._lock:
            self._ops.clear()
            self._cursor = 0
            self._rev += 1

    @property
    def active(self) -> Tuple[EditOperation, ...]:
        """Snapshot of the operations that a render replays."""
        with self._lock:
            return tuple(self._ops[:self._cursor])

    @property
    def history(self) -> Tuple[EditOperation, ...]:
        """Every stored operation, including undone ones."""
        with self._lock:
            return tuple(self._ops)

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    def last_format(self) -> Optional[OutputFormat]:
        """Target of the most recent active ConvertFormat, if any."""
        for op in reversed(self.active):
            if isinstance(op, ConvertFormat):
                return op.to
        return None

    def to_list(self) -> List[Dict[str, Any]]:
        return [op.to_dict() for op in self.active]

    def __len__(self) -> int:
        with self._lock:
            return self._cursor

    def __iter__(self) -> Iterator[EditOperation]:
        return iter(self.active)

    def __repr__(self) -> str:
        return f"OperationLog(active={len(self)}, stored={len(self.history)})"
