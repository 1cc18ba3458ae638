"""
Reference resolution for manufacturers and colors.

Search input names manufacturers and colors in many ways: integer ids
from autocomplete, numeric strings from query params, or whatever the
user typed ("Surly", "surly-bikes", "grey"). Each entity kind has a
resolver that maps those references to a canonical integer id.

Unresolvable references resolve to None. Callers drop them; they are
never an error.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from config.colors import FRAME_COLORS, COLOR_ALIASES
from config.patterns import NUMERIC_ID_PATTERN, PARENTHETICAL_PATTERN, slugify
from core.context import ReferenceEntity
from core.structured_logging import get_logger

_logger = get_logger("core.references")

MANUFACTURER_CATEGORY = "frame_mnfg"
COLOR_CATEGORY = "colors"


class ReferenceTable:
    """
    Read-only lookup table of reference entities.

    Entities are indexed by id and by the slug of their name, slug and
    aliases, so lookups ignore case and punctuation.

    Example:
        table = ReferenceTable([
            ReferenceEntity(id=14, name="Surly", slug="surly", category="frame_mnfg"),
        ])
        table.find("SURLY").id   # 14
        table.find("14").id      # 14
    """

    def __init__(self, entities: Iterable[ReferenceEntity]):
        self._by_id: dict[int, ReferenceEntity] = {}
        self._by_key: dict[str, ReferenceEntity] = {}
        for entity in entities:
            self._by_id[entity.id] = entity
            for name in (entity.slug, entity.name, *entity.aliases):
                key = slugify(name)
                if key:
                    # First entity registered under a key wins
                    self._by_key.setdefault(key, entity)

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self):
        return iter(self._by_id.values())

    def get(self, entity_id: int) -> Optional[ReferenceEntity]:
        return self._by_id.get(entity_id)

    def find(self, ref: Any) -> Optional[ReferenceEntity]:
        """
        Find an entity by id, numeric-string id, name, slug or alias.

        Args:
            ref: Integer id, digits-only string, or free text

        Returns:
            Matching entity or None
        """
        if ref is None or isinstance(ref, bool):
            return None
        if isinstance(ref, int):
            return self._by_id.get(ref)
        text = str(ref)
        if NUMERIC_ID_PATTERN.match(text):
            return self._by_id.get(int(text))
        key = slugify(text)
        if not key:
            return None
        return self._by_key.get(key)


class ReferenceResolver(ABC):
    """
    Resolves references of one entity kind to canonical ids.

    Subclasses pick the table and the token tag they answer to.
    """

    kind: str = ""

    def __init__(self, table: ReferenceTable):
        self.table = table

    @abstractmethod
    def resolve_name(self, text: str) -> Optional[int]:
        """Resolve a free-text reference (not an id)."""

    def resolve(self, ref: Any) -> Optional[int]:
        """
        Resolve one reference to an id.

        Integers and digits-only strings are already canonical ids and
        are returned as-is; anything else is looked up by name.

        Args:
            ref: Integer id, digits-only string, or free text

        Returns:
            Canonical id or None
        """
        if ref is None or isinstance(ref, bool):
            return None
        if isinstance(ref, int):
            return ref
        if isinstance(ref, float):
            return int(ref) if ref.is_integer() else None
        text = str(ref)
        if NUMERIC_ID_PATTERN.match(text):
            return int(text)
        if not text.strip():
            return None
        entity_id = self.resolve_name(text)
        if entity_id is None:
            _logger.debug(
                f"Unresolved {self.kind} reference: {text!r}",
                extra={"event": "reference_unresolved", "reference_kind": self.kind},
            )
        return entity_id

    def resolve_all(self, refs: Iterable[Any]) -> list[int]:
        """Resolve each reference, dropping the ones that don't resolve."""
        ids = (self.resolve(ref) for ref in refs)
        return [entity_id for entity_id in ids if entity_id is not None]

    def options_for(self, ids: Iterable[int]) -> list:
        """Autocomplete options for ids that still exist in the table."""
        options = []
        for entity_id in ids:
            entity = self.table.get(entity_id)
            if entity is not None:
                options.append(entity.autocomplete_option())
        return options


class ManufacturerResolver(ReferenceResolver):
    """Resolves manufacturer names, slugs and alternate names."""

    kind = "manufacturer"

    def resolve_name(self, text: str) -> Optional[int]:
        entity = self.table.find(text)
        if entity is None:
            # "BH (Beistegui Hermanos)" is registered under "BH"
            bare = PARENTHETICAL_PATTERN.sub(" ", text).strip()
            if bare and bare != text.strip():
                entity = self.table.find(bare)
        return entity.id if entity else None


class ColorResolver(ReferenceResolver):
    """Resolves color names, slugs and common alternate spellings."""

    kind = "color"

    def resolve_name(self, text: str) -> Optional[int]:
        entity = self.table.find(text)
        if entity is None:
            alias = COLOR_ALIASES.get(slugify(text))
            if alias:
                entity = self.table.find(alias)
        return entity.id if entity else None


def build_color_table() -> ReferenceTable:
    """Build the color table from the built-in color list."""
    entities = []
    for priority, (color_id, name, slug, display) in enumerate(FRAME_COLORS):
        entities.append(ReferenceEntity(
            id=color_id,
            name=name,
            slug=slug,
            category=COLOR_CATEGORY,
            data={"display": display, "priority": 1000 - priority},
        ))
    return ReferenceTable(entities)


def build_resolvers(
    manufacturers: ReferenceTable,
    colors: Optional[ReferenceTable] = None,
) -> dict[str, ReferenceResolver]:
    """
    Build the resolver registry, keyed by entity kind.

    Args:
        manufacturers: Manufacturer table
        colors: Color table (built-in colors if None)

    Returns:
        {"manufacturer": ManufacturerResolver, "color": ColorResolver}
    """
    resolvers = [
        ManufacturerResolver(manufacturers),
        ColorResolver(colors if colors is not None else build_color_table()),
    ]
    return {resolver.kind: resolver for resolver in resolvers}
