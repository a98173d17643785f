"""Tests for gentree/graph.py — union lookups, descendant search, consistency report."""
from gentree import graph, store
from gentree.models import Partnership

from tests.conftest import graph_of, make_person


class TestResolveUnionPartners:
    def test_both_partners(self, couple_with_child):
        assert graph.resolve_union_partners(couple_with_child, "u1") == ["A", "B"]

    def test_stale_union(self, couple_with_child):
        assert graph.resolve_union_partners(couple_with_child, "nope") == []

    def test_one_sided_entry_still_names_both(self):
        g = graph_of(make_person("a", spouses=(Partnership(spouse_id="b", union_id="u"),)), make_person("b"))
        assert graph.resolve_union_partners(g, "u") == ["a", "b"]


class TestResolveDefaultPartnerIds:
    def test_single_partnership(self, couple_with_child):
        assert graph.resolve_default_partner_ids(couple_with_child, "A") == ["A", "B"]

    def test_no_partnership(self, lineage):
        assert graph.resolve_default_partner_ids(lineage, "R") == ["R"]

    def test_several_partnerships(self):
        g = graph_of(make_person("a"), make_person("b"), make_person("c"))
        g = store.apply_all(g, [
            store.LinkSpouse(person_id="a", spouse_id="b", union_id="u1"),
            store.LinkSpouse(person_id="a", spouse_id="c", union_id="u2"),
        ])
        assert graph.resolve_default_partner_ids(g, "a") == ["a"]

    def test_dangling_spouse(self):
        g = graph_of(make_person("a", spouses=(Partnership(spouse_id="ghost", union_id="u"),)))
        assert graph.resolve_default_partner_ids(g, "a") == ["a"]

    def test_missing_person(self, lineage):
        assert graph.resolve_default_partner_ids(lineage, "ghost") == []


class TestIsDescendant:
    def test_grandchild(self, family):
        assert graph.is_descendant(family, "grandpa", "kid")

    def test_ancestor_is_not_descendant(self, family):
        assert not graph.is_descendant(family, "kid", "grandpa")

    def test_self_is_not_descendant(self, family):
        assert not graph.is_descendant(family, "dad", "dad")

    def test_siblings_are_not_descendants(self, family):
        g = store.apply_all(family, [
            store.UpsertPerson(person=make_person("kid2")),
            store.LinkParentChild(parent_id="dad", child_id="kid2"),
        ])
        assert graph.is_descendant(g, "dad", "kid2")
        assert not graph.is_descendant(g, "kid", "kid2")
        assert not graph.is_descendant(g, "kid2", "kid")

    def test_unrelated_people(self, family):
        assert not graph.is_descendant(family, "grandpa", "mom")
        assert not graph.is_descendant(family, "mom", "grandpa")

    def test_terminates_on_cycle(self):
        g = graph_of(
            make_person("a", children=("b",), parents=("b",)),
            make_person("b", children=("a",), parents=("a",)),
        )
        assert graph.is_descendant(g, "a", "b")
        assert not graph.is_descendant(g, "a", "zzz")

    def test_dangling_children(self):
        g = graph_of(make_person("a", children=("ghost",)))
        assert not graph.is_descendant(g, "a", "b")


class TestCheckConsistency:
    def test_clean_graph(self, family, couple_with_child, empty_graph):
        assert graph.check_consistency(family) == []
        assert graph.check_consistency(couple_with_child) == []
        assert graph.check_consistency(empty_graph) == []

    def test_missing_root(self, lineage):
        g = store.apply(lineage, store.SetRootPerson(person_id="ghost"))
        assert graph.check_consistency(g) == ["Root person 'ghost' does not exist"]

    def test_asymmetric_parent_link(self):
        g = graph_of(make_person("p"), make_person("c", parents=("p",)))
        problems = graph.check_consistency(g)
        assert problems == ["Parent 'p' does not list 'c' as a child"]

    def test_dangling_references(self):
        g = graph_of(make_person("a", parents=("x",), children=("y",),
                                 spouses=(Partnership(spouse_id="z", union_id="u"),)))
        problems = graph.check_consistency(g)
        assert "Person 'a' has missing parent 'x'" in problems
        assert "Person 'a' has missing child 'y'" in problems
        assert "Person 'a' has missing spouse 'z' in union 'u'" in problems
        assert "Union 'u' is held by 1 people (expected 2)" in problems

    def test_key_mismatch(self):
        g = graph_of(make_person("a"))
        g = g.model_copy(update={"people": {"b": g.people["a"]}})
        assert "Person 'a' is stored under key 'b'" in graph.check_consistency(g)

    def test_does_not_modify(self):
        g = graph_of(make_person("c", parents=("p",)))
        before = g.model_copy(deep=True)
        graph.check_consistency(g)
        assert g == before
