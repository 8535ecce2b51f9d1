"""QueryKey construction and matching."""

from collections.abc import Callable, Iterable

from carequery.types import Primitive, QueryKey

_ESCAPE_MAP = {"\\": "\\\\", ":": "\\:"}


def make_key(*parts: Primitive) -> QueryKey:
    """Build a QueryKey from primitive tokens.

    Example:
        make_key("documents", 42)  # QueryKey: ("documents", 42)
    """
    for part in parts:
        if not isinstance(part, (str, int, float, bool)) and part is not None:
            raise TypeError(
                f"QueryKey tokens must be primitives, got {type(part).__name__}"
            )
    return QueryKey(parts)


def as_key(key: QueryKey | Iterable[Primitive] | str) -> QueryKey:
    """Coerce lists, tuples or a single string token into a QueryKey."""
    if isinstance(key, str):
        return make_key(key)
    return make_key(*key)


def define_keys(
    definitions: dict[str, Callable[..., tuple[Primitive, ...]]],
) -> dict[str, Callable[..., QueryKey]]:
    """
    Define the query keys of an application in one place.

    Example:
        keys = define_keys({
            "plan_items": lambda: ("planItems",),
            "document": lambda id: ("documents", id),
        })

        keys["document"](42)  # QueryKey: ("documents", 42)
    """
    result: dict[str, Callable[..., QueryKey]] = {}
    for name, fn in definitions.items():

        def build(*args: Primitive, _fn: Callable[..., tuple[Primitive, ...]] = fn) -> QueryKey:
            return make_key(*_fn(*args))

        result[name] = build
    return result


def serialize_key(key: QueryKey) -> str:
    """Serialize a key for log lines and store keys."""

    def escape(part: Primitive) -> str:
        result = str(part)
        for char, escaped in _ESCAPE_MAP.items():
            result = result.replace(char, escaped)
        return result

    return ":".join(escape(p) for p in key)


def is_key_prefix(parent: QueryKey, child: QueryKey) -> bool:
    """Check if parent equals or is a prefix of child (for invalidation)."""
    if len(parent) > len(child):
        return False
    return tuple(child[: len(parent)]) == tuple(parent)
