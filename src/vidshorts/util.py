from typing import Any, Callable, Iterable, NewType, Optional, TypeVar

Json = NewType('Json', Any)

T = TypeVar('T')

def find(pred: Callable[[T], bool], items: Iterable[T]) -> Optional[T]:
    return next((x for x in items if pred(x)), None)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


def timestamp(seconds: float) -> str:
    """HH:MM:SS, the form ffmpeg takes for -ss and -t."""
    total = max(int(seconds), 0)
    return f"{total // 3600:02d}:{total % 3600 // 60:02d}:{total % 60:02d}"
