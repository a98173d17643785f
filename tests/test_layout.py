"""Tests for gentree/render/layout.py — deterministic placement of people, unions and edges.

Requirements tested:
- Rows are ordered by generation; a person's spouses sit right after them on the row
- Parents of the root get negative depth and are drawn above it
- Dangling references never fail the layout; they are skipped
- The same snapshot always yields the same layout
"""
import pytest

from gentree import store
from gentree.models import Partnership
from gentree.render import layout as L

from tests.conftest import graph_of, make_person


def _positions(result):
    return {node.person.id: (node.x, node.y) for node in result.person_nodes}


class TestMeasurePersonNode:
    def test_minimum_card(self):
        assert L.measure_person_node(make_person("a", first_name="A")) == (220.0, 100.0)

    def test_width_follows_name_length(self):
        assert L.measure_person_node(make_person("a", first_name="x" * 40)) == (280.0, 100.0)

    def test_width_capped_and_long_place_wraps(self):
        person = make_person("a", birth_place="p" * 100)
        width, height = L.measure_person_node(person)
        assert width == L.MAX_WIDTH
        # name + lifespan + three wrapped birth lines
        assert height == 5 * L.LINE_HEIGHT

    def test_estimate_wrapped_lines(self):
        assert L.estimate_wrapped_lines("", 220) == 0
        assert L.estimate_wrapped_lines("x" * 27, 220) == 1
        assert L.estimate_wrapped_lines("x" * 28, 220) == 2


class TestPlacementMaps:
    def test_depths(self, family):
        depth, order = L.compute_placement_maps(family, "dad")
        assert depth == {"dad": 0, "kid": 1, "grandpa": -1, "mom": 0}
        assert order["dad"] == 0
        assert sorted(order.values()) == [0, 1, 2, 3]

    def test_unreached_people_default_to_row_zero(self):
        g = graph_of(make_person("a"), make_person("b"))
        depth, order = L.compute_placement_maps(g, "a")
        assert depth["b"] == 0
        assert order["b"] == 1


class TestComputeTreeLayout:
    def test_empty_graph(self, empty_graph):
        result = L.compute_tree_layout(empty_graph)
        assert result.person_nodes == ()
        assert result.union_nodes == ()
        assert result.edges == ()
        assert (result.width, result.height) == (0, 0)

    def test_single_lineage(self, lineage):
        result = L.compute_tree_layout(lineage)
        assert _positions(result) == {"R": (160, 160), "C": (160, 440)}
        assert result.union_nodes == ()
        assert [e.id for e in result.edges] == ["direct-R-C"]
        edge = result.edges[0]
        assert (edge.from_.x, edge.from_.y) == (270, 260)
        assert (edge.to.x, edge.to.y) == (270, 440)
        assert (result.width, result.height) == (620, 700)

    def test_couple_with_child(self, couple_with_child):
        result = L.compute_tree_layout(couple_with_child)
        assert _positions(result) == {"A": (160, 160), "B": (460, 160), "C": (160, 440)}

        assert len(result.union_nodes) == 1
        union = result.union_nodes[0]
        assert union.id == "u1"
        assert union.partners == ("A", "B")
        assert union.children == ("C",)
        assert (union.x, union.y) == (408, 198)

        assert [e.id for e in result.edges] == ["u1-partner-0", "u1-partner-1", "u1-child-C"]
        child_edge = result.edges[2]
        assert (child_edge.from_.x, child_edge.from_.y) == (420, 222)
        assert (child_edge.to.x, child_edge.to.y) == (270, 440)
        assert (result.width, result.height) == (920, 700)

    def test_parent_outside_union_gets_direct_edge(self, couple_with_child):
        g = store.apply_all(couple_with_child, [
            store.UpsertPerson(person=make_person("D")),
            store.LinkParentChild(parent_id="D", child_id="C"),
        ])
        ids = [e.id for e in L.compute_tree_layout(g).edges]
        assert "direct-D-C" in ids
        assert "direct-A-C" not in ids
        assert "direct-B-C" not in ids

    def test_root_parents_drawn_above(self, lineage):
        g = store.apply(lineage, store.SetRootPerson(person_id="C"))
        result = L.compute_tree_layout(g)
        assert result.person_nodes[0].person.id == "R"
        assert _positions(result) == {"R": (160, 160), "C": (160, 440)}

    def test_spouse_adjacency(self):
        g = graph_of(make_person("P"), make_person("X"), make_person("Y"), make_person("Z"), root="P")
        g = store.apply_all(g, [
            store.LinkParentChild(parent_id="P", child_id="X"),
            store.LinkParentChild(parent_id="P", child_id="Y"),
            store.LinkSpouse(person_id="X", spouse_id="Z", union_id="u"),
        ])
        result = L.compute_tree_layout(g)
        row = [n.person.id for n in result.person_nodes if n.y == 440]
        assert row == ["X", "Z", "Y"]

    def test_dangling_references_are_skipped(self):
        g = graph_of(make_person("A", children=("ghost",), spouses=(Partnership(spouse_id="gone", union_id="u"),)),
                     root="A")
        result = L.compute_tree_layout(g)
        assert _positions(result) == {"A": (160, 160)}
        assert result.union_nodes == ()
        assert result.edges == ()
        assert result.height == 420

    def test_row_of_missing_parents_leaves_no_gap(self):
        g = graph_of(make_person("A", parents=("ghost",)), root="A")
        result = L.compute_tree_layout(g)
        assert _positions(result) == {"A": (160, 160)}
        assert result.height == 420

    def test_missing_root_falls_back_to_first_person(self, lineage):
        g = store.apply(lineage, store.SetRootPerson(person_id="ghost"))
        assert L.compute_tree_layout(g) == L.compute_tree_layout(lineage)

    def test_disconnected_person_on_row_zero(self):
        g = graph_of(make_person("a"), make_person("b"), root="a")
        assert _positions(L.compute_tree_layout(g)) == {"a": (160, 160), "b": (460, 160)}

    def test_every_person_placed_once(self, family):
        result = L.compute_tree_layout(family)
        ids = [n.person.id for n in result.person_nodes]
        assert sorted(ids) == sorted(family.people)

    def test_deterministic(self, family):
        assert L.compute_tree_layout(family) == L.compute_tree_layout(family.model_copy(deep=True))

    def test_serializes_edge_endpoints_as_from(self, lineage):
        data = L.compute_tree_layout(lineage).model_dump(by_alias=True)
        assert set(data["edges"][0]) == {"id", "from", "to"}
        assert "personNodes" in data


class TestLayoutCache:
    def test_reuses_for_same_or_equal_snapshot(self, family):
        cache = L.LayoutCache()
        first = cache.get(family)
        assert cache.get(family) is first
        assert cache.get(family.model_copy(deep=True)) is first

    def test_recomputes_on_change(self, family):
        cache = L.LayoutCache()
        first = cache.get(family)
        changed = store.apply(family, store.DeletePerson(person_id="kid"))
        assert cache.get(changed) is not first

    def test_clear(self, family):
        cache = L.LayoutCache()
        first = cache.get(family)
        cache.clear()
        second = cache.get(family)
        assert second is not first
        assert second == first


@pytest.mark.parametrize("root", ["grandpa", "dad", "mom", "kid"])
def test_layout_bounds_cover_all_nodes(family, root):
    result = L.compute_tree_layout(store.apply(family, store.SetRootPerson(person_id=root)))
    for node in result.person_nodes:
        assert node.x + node.width <= result.width
        assert node.y + node.height <= result.height
