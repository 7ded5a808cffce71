"""
Tests for tile edges, transformations and catalogs.
"""

import json

import pytest

from tiles import (
    InvalidCatalog,
    TileCatalog,
    TileDef,
    TileVariant,
    compatible,
    default_catalog,
    flip_edges,
    load_catalog,
    parse_tile_defs,
    reverse_edge,
    rotate_edges,
)

EDGES = ("ABC", "DEF", "GHI", "JKL")


class TestEdgeMatching:
    """Tests for edge reversal and compatibility."""

    def test_reverse_edge(self) -> None:
        """Test reversing edges of different lengths."""
        assert reverse_edge("ABC") == "CBA"
        assert reverse_edge("AB") == "BA"
        assert reverse_edge("ABCDE") == "EDCBA"
        assert reverse_edge("") == ""

    def test_reverse_is_its_own_inverse(self) -> None:
        """Test that reversing twice gives the original edge."""
        for edge in ["", "A", "AB", "ABA", "AABB", "XYZZY"]:
            assert reverse_edge(reverse_edge(edge)) == edge

    def test_compatible_requires_reversal(self) -> None:
        """Test that facing edges fit only when one reads as the reverse of the other."""
        assert compatible("AAB", "BAA")
        assert not compatible("AAB", "AAB")
        assert compatible("ABA", "ABA")
        assert compatible("", "")

    def test_compatible_matches_law_for_all_tile_pairs(self) -> None:
        """Test compatible() against the reversal law for every pair of edges in a catalog."""
        catalog = TileCatalog.from_defs([
            TileDef("a", ("AAB", "ABB", "BBA", "BAA"), "rot-4"),
            TileDef("b", ("ABA", "AAA", "ABA", "BBB")),
        ])
        for tile_a in catalog:
            for tile_b in catalog:
                for side in range(4):
                    opposite = (side + 2) % 4
                    expected = tile_a.edge(side) == reverse_edge(tile_b.edge(opposite))
                    assert compatible(tile_a.edge(side), tile_b.edge(opposite)) == expected


class TestTransforms:
    """Tests for rotating and mirroring edges."""

    def test_rotate_once(self) -> None:
        """Test that one turn moves the left edge to the top."""
        assert rotate_edges(EDGES, 1) == ("JKL", "ABC", "DEF", "GHI")

    def test_rotate_zero(self) -> None:
        """Test that zero turns changes nothing."""
        assert rotate_edges(EDGES, 0) == EDGES

    def test_rotate_four_is_identity(self) -> None:
        """Test that four turns gives back the original edges."""
        assert rotate_edges(EDGES, 4) == EDGES

    @pytest.mark.parametrize("r", [0, 1, 2, 3])
    def test_rotate_then_back(self, r: int) -> None:
        """Test that r turns followed by 4 - r turns gives back the original edges."""
        assert rotate_edges(rotate_edges(EDGES, r), 4 - r) == EDGES

    def test_flip_vert(self) -> None:
        """Test mirroring top to bottom."""
        assert flip_edges(EDGES, "vert") == ("IHG", "FED", "CBA", "LKJ")

    def test_flip_horz(self) -> None:
        """Test mirroring left to right."""
        assert flip_edges(EDGES, "horz") == ("CBA", "LKJ", "IHG", "FED")

    def test_flip_twice_is_identity(self) -> None:
        """Test that mirroring twice gives back the original edges."""
        assert flip_edges(flip_edges(EDGES, "vert"), "vert") == EDGES
        assert flip_edges(flip_edges(EDGES, "horz"), "horz") == EDGES

    def test_flip_unknown_axis(self) -> None:
        """Test that an unknown axis is rejected."""
        with pytest.raises(ValueError):
            flip_edges(EDGES, "diagonal")


class TestTileCatalog:
    """Tests for building and validating catalogs."""

    def test_default_catalog(self) -> None:
        """Test the built-in blank, cross and rotated T tiles."""
        catalog = default_catalog()
        assert len(catalog) == 6
        assert catalog.edge_length == 3
        assert [v.name for v in catalog] == ["blank", "cross"] + ["t-shape"] * 4
        assert [v.rotation for v in catalog][2:] == [0, 1, 2, 3]
        assert catalog[3].edges == ("ABA", "AAA", "ABA", "ABA")

    def test_handles_are_indexes(self) -> None:
        """Test that every variant's handle is its position in the catalog."""
        catalog = default_catalog()
        assert catalog.handles() == frozenset(range(6))
        for handle in catalog.handles():
            assert catalog[handle].index == handle

    def test_rot_2(self) -> None:
        """Test that rot-2 gives the tile and one quarter turn."""
        catalog = TileCatalog.from_defs([TileDef("straight", ("AAA", "ABA", "AAA", "ABA"), "rot-2")])
        assert [v.edges for v in catalog] == [
            ("AAA", "ABA", "AAA", "ABA"),
            ("ABA", "AAA", "ABA", "AAA"),
        ]

    def test_flip_transform(self) -> None:
        """Test that flip transforms add a mirrored variant."""
        catalog = TileCatalog.from_defs([TileDef("ramp", EDGES, "flip-horz")])
        assert len(catalog) == 2
        assert catalog[1].flip == "horz"
        assert catalog[1].edges == flip_edges(EDGES, "horz")

    def test_flip_vert_transform(self) -> None:
        """Test that flip-vert adds a vertically mirrored variant."""
        catalog = TileCatalog.from_defs([TileDef("ramp", EDGES, "flip-vert")])
        assert len(catalog) == 2
        assert catalog[1].flip == "vert"
        assert catalog[1].edges == ("IHG", "FED", "CBA", "LKJ")

    @pytest.mark.parametrize("transform", [None, "rot-4", "flip-vert", "flip-horz"])
    def test_non_string_edges(self, transform) -> None:
        """Test that non-string edges are rejected before any transform runs."""
        with pytest.raises(InvalidCatalog):
            TileCatalog.from_defs([TileDef("bad", (1, 2, 3, 4), transform)])

    def test_variant_sides(self) -> None:
        """Test the named side accessors."""
        variant = TileVariant(0, "t", EDGES)
        assert (variant.top, variant.right, variant.bottom, variant.left) == EDGES

    def test_empty_catalog(self) -> None:
        """Test that a catalog needs at least one tile."""
        with pytest.raises(InvalidCatalog):
            TileCatalog([])

    def test_mismatched_edge_lengths(self) -> None:
        """Test that all edges must have the same length."""
        with pytest.raises(InvalidCatalog):
            TileCatalog.from_defs([
                TileDef("a", ("AAA", "AAA", "AAA", "AAA")),
                TileDef("b", ("AA", "AA", "AA", "AA")),
            ])

    def test_mismatched_lengths_within_tile(self) -> None:
        """Test that a single tile can't mix edge lengths."""
        with pytest.raises(InvalidCatalog):
            TileCatalog([TileVariant(0, "a", ("AAA", "AAA", "AAAA", "AAA"))])

    def test_wrong_side_count(self) -> None:
        """Test that tiles need exactly four edges."""
        with pytest.raises(InvalidCatalog):
            TileCatalog([TileVariant(0, "a", ("AAA", "AAA", "AAA"))])

    def test_unknown_transform(self) -> None:
        """Test that an unknown transform is rejected."""
        with pytest.raises(InvalidCatalog):
            TileCatalog.from_defs([TileDef("a", EDGES, "rot-3")])

    def test_longer_signatures(self) -> None:
        """Test that signatures don't have to be 3 characters long."""
        catalog = TileCatalog.from_defs([TileDef("wide", ("AABBA", "AAAAA", "ABBAA", "AAAAA"))])
        assert catalog.edge_length == 5


class TestJsonLoader:
    """Tests for loading tiles from json."""

    def test_parse(self) -> None:
        """Test parsing tile definitions."""
        defs = parse_tile_defs({
            "tiles": [
                {"name": "blank", "edges": ["AAA", "AAA", "AAA", "AAA"]},
                {"name": "t", "edges": ["AAA", "ABA", "ABA", "ABA"], "transform": "rot-4", "fname": "t.png"},
            ]
        })
        assert defs[0] == TileDef("blank", ("AAA", "AAA", "AAA", "AAA"))
        assert defs[1].transform == "rot-4"
        assert defs[1].fname == "t.png"

    @pytest.mark.parametrize("tile_json", [
        {},
        {"tiles": []},
        {"tiles": [{"name": "a"}]},
        {"tiles": [{"name": "a", "edges": ["AAA", "AAA"]}]},
        {"tiles": [{"name": "a", "edges": ["AAA"] * 4, "transform": "spin"}]},
        {"tiles": ["blank"]},
        {"tiles": 5},
        {"tiles": [{"name": "a", "edges": [1, 2, 3, 4], "transform": "flip-vert"}]},
        {"tiles": [{"name": "a", "edges": ["AAA", "AAA", None, "AAA"]}]},
    ])
    def test_parse_errors(self, tile_json: dict) -> None:
        """Test that malformed tile json is rejected."""
        with pytest.raises(InvalidCatalog):
            parse_tile_defs(tile_json)

    def test_load_catalog(self, tmp_path) -> None:
        """Test loading a catalog from a file."""
        path = tmp_path / "tiles.json"
        path.write_text(json.dumps({
            "tiles": [
                {"name": "blank", "edges": ["AAA", "AAA", "AAA", "AAA"]},
                {"name": "corner", "edges": ["ABA", "ABA", "AAA", "AAA"], "transform": "rot-4"},
            ]
        }))
        catalog = load_catalog(path)
        assert len(catalog) == 5
        assert catalog[2].edges == ("AAA", "ABA", "ABA", "AAA")

    def test_load_non_string_edges(self, tmp_path) -> None:
        """Test that numeric edges in a file are reported as an invalid catalog."""
        path = tmp_path / "tiles.json"
        path.write_text(json.dumps({"tiles": [{"name": "a", "edges": [1, 2, 3, 4], "transform": "flip-vert"}]}))
        with pytest.raises(InvalidCatalog):
            load_catalog(path)

    def test_load_invalid_json(self, tmp_path) -> None:
        """Test that a broken file is reported as an invalid catalog."""
        path = tmp_path / "tiles.json"
        path.write_text("{not json")
        with pytest.raises(InvalidCatalog):
            load_catalog(path)
