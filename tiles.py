import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence

logger = logging.getLogger(__name__)

# Tiles are described by their edges rather than by pictures.
# Each tile has 4 edges, starting at the top and going clockwise.
# An edge is a short string ("signature"), read clockwise around the tile.
# So the top edge is read left to right, the right edge top to bottom,
# the bottom edge right to left, and the left edge bottom to top.
#
# Because of that, two tiles touching along a boundary read that boundary in
# opposite directions, and they only fit if one signature is the reverse of the other.

SIDES = 4

# The names used for the transformations in tiles.json
TRANSFORMS = ("none", "rot-4", "rot-2", "flip-vert", "flip-horz")


class InvalidCatalog(ValueError):
    """The tile catalog can't be used (empty, malformed, or inconsistent edges)."""


### EDGE MATCHING ###

def reverse_edge(edge: str) -> str:
    return edge[::-1]


def compatible(edge_a: str, edge_b: str) -> bool:
    """True if two edges facing each other across a boundary fit together."""
    return edge_a == reverse_edge(edge_b)


def rotate_edges(edges: Sequence[str], rotations: int) -> tuple:
    """Rotate a tile's edges clockwise by a number of quarter turns.

    One turn moves the left edge to the top, the top edge to the right, and so on.
    The signatures themselves don't change, since they are read clockwise anyway.
    """
    r = rotations % len(edges) if edges else 0
    return tuple(edges[len(edges) - r:]) + tuple(edges[:len(edges) - r])


def flip_edges(edges: Sequence[str], axis: str) -> tuple:
    """Mirror a tile's edges.

    "vert" mirrors top to bottom, "horz" mirrors left to right.
    Mirroring reverses the clockwise reading order, so every signature is reversed too.
    """
    top, right, bottom, left = (reverse_edge(e) for e in edges)
    if axis == "vert":
        return (bottom, right, top, left)
    if axis == "horz":
        return (top, left, bottom, right)
    raise ValueError(f"Unknown flip axis: {axis!r}")

########################


@dataclass(frozen=True)
class TileVariant:
    """One orientation of one tile, as it can be placed on the grid."""

    index: int
    name: str
    edges: tuple
    rotation: int = 0
    flip: Optional[str] = None
    fname: Optional[str] = None

    @property
    def top(self) -> str:
        return self.edges[0]

    @property
    def right(self) -> str:
        return self.edges[1]

    @property
    def bottom(self) -> str:
        return self.edges[2]

    @property
    def left(self) -> str:
        return self.edges[3]

    def edge(self, side: int) -> str:
        # Sides are numbered like the edges: 0 = top, going clockwise
        return self.edges[int(side)]

    def rotated(self, rotations: int, index: int) -> "TileVariant":
        return TileVariant(
            index=index,
            name=self.name,
            edges=rotate_edges(self.edges, rotations),
            rotation=(self.rotation + rotations) % SIDES,
            flip=self.flip,
            fname=self.fname,
        )


@dataclass(frozen=True)
class TileDef:
    """A base tile, as written in tiles.json, before its transformations are generated."""

    name: str
    edges: tuple
    transform: Optional[str] = None
    fname: Optional[str] = None


#
# The following function generates the transformations of a tile.
#
def expand_tile(tile: TileDef, start_index: int) -> list:
    transform = tile.transform or "none"
    edges = tuple(tile.edges)
    # Transforms reverse and reorder edges, so check them before generating anything
    if len(edges) != SIDES or not all(isinstance(edge, str) for edge in edges):
        raise InvalidCatalog(f"Tile {tile.name!r} needs {SIDES} string edges, got {edges!r}")
    base = TileVariant(start_index, tile.name, edges, fname=tile.fname)

    match transform:
        # 4 rotations, e.g. T-shaped tile.
        case "rot-4":
            return [base.rotated(r, start_index + r) for r in range(4)]
        # 2 rotations, e.g. straight tile.
        case "rot-2":
            return [base.rotated(r, start_index + r) for r in range(2)]
        # Vertical mirror
        case "flip-vert":
            return [base, TileVariant(start_index + 1, tile.name, flip_edges(edges, "vert"), flip="vert", fname=tile.fname)]
        # Horizontal mirror
        case "flip-horz":
            return [base, TileVariant(start_index + 1, tile.name, flip_edges(edges, "horz"), flip="horz", fname=tile.fname)]
        # No transformations
        case "none":
            return [base]
        case _:
            raise InvalidCatalog(f"Tile {tile.name!r} has unknown transform {transform!r}")


class TileCatalog:
    """The immutable set of tile variants a grid can be filled with.

    Variants are referred to by their index ("handle") everywhere else,
    so cells only ever store integers.
    """

    def __init__(self, variants: Iterable[TileVariant]):
        self._variants = tuple(variants)
        self.edge_length = self._validate()

    def _validate(self) -> int:
        if len(self._variants) == 0:
            raise InvalidCatalog("No tiles.")

        edge_length = None
        for position, variant in enumerate(self._variants):
            if variant.index != position:
                raise InvalidCatalog(f"Tile {variant.name!r} has index {variant.index}, expected {position}")
            if len(variant.edges) != SIDES:
                raise InvalidCatalog(f"Tile {variant.name!r} doesn't have {SIDES} edges")
            for edge in variant.edges:
                if not isinstance(edge, str):
                    raise InvalidCatalog(f"Tile {variant.name!r} has a non-string edge: {edge!r}")
                if edge_length is None:
                    edge_length = len(edge)
                elif len(edge) != edge_length:
                    raise InvalidCatalog(
                        f"Tile {variant.name!r} has edge {edge!r} of length {len(edge)}, expected {edge_length}"
                    )
        return edge_length

    @classmethod
    def from_defs(cls, defs: Iterable[TileDef]) -> "TileCatalog":
        variants = []
        for tile in defs:
            variants.extend(expand_tile(tile, len(variants)))
        return cls(variants)

    def handles(self) -> frozenset:
        return frozenset(range(len(self._variants)))

    def __getitem__(self, handle: int) -> TileVariant:
        return self._variants[handle]

    def __len__(self) -> int:
        return len(self._variants)

    def __iter__(self) -> Iterator[TileVariant]:
        return iter(self._variants)

    def __repr__(self) -> str:
        return f"TileCatalog({len(self)} variants, edge length {self.edge_length})"


### JSON TILE LOADER ###

def parse_tile_defs(tile_json: dict) -> list:
    # Ensure there are actually tiles
    if not isinstance(tile_json, dict) or not tile_json.get("tiles"):
        raise InvalidCatalog("No tiles.")

    if not isinstance(tile_json["tiles"], list):
        raise InvalidCatalog("\"tiles\" must be a list.")

    defs = []
    for tile in tile_json["tiles"]:
        if not isinstance(tile, dict):
            raise InvalidCatalog(f"Tile #{len(defs)} is not an object: {tile!r}")
        name = tile.get("name", f"tile-{len(defs)}")
        # Ensure needed values exist.
        edges = tile.get("edges")
        if not isinstance(edges, list) or len(edges) != SIDES:
            raise InvalidCatalog(f"Tile {name!r} doesn't contain {SIDES} edges.")
        if not all(isinstance(edge, str) for edge in edges):
            raise InvalidCatalog(f"Tile {name!r} has non-string edges: {edges!r}")
        transform = tile.get("transform")
        if transform is not None and transform not in TRANSFORMS:
            raise InvalidCatalog(f"Tile {name!r} has unknown transform {transform!r}")
        defs.append(TileDef(name, tuple(edges), transform, tile.get("fname")))
    return defs


def load_catalog(path) -> TileCatalog:
    """Load tile definitions from a json file and expand them into a catalog."""
    path = Path(path)
    try:
        tile_json = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise InvalidCatalog(f"Error reading tile json {path}: {e}") from e

    catalog = TileCatalog.from_defs(parse_tile_defs(tile_json))
    logger.info("Loaded %d tile variants from %s", len(catalog), path)
    return catalog

########################


def default_catalog() -> TileCatalog:
    """Blank, cross and T-shaped pipes, with the T in all 4 rotations."""
    return TileCatalog.from_defs([
        TileDef("blank", ("AAA", "AAA", "AAA", "AAA")),
        TileDef("cross", ("ABA", "ABA", "ABA", "ABA")),
        TileDef("t-shape", ("AAA", "ABA", "ABA", "ABA"), "rot-4"),
    ])
