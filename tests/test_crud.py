"""Tests for gentree/crud.py — editing flows built from store actions.

Requirements tested:
- The first person of an unrooted tree becomes its root
- A child added from a person with one partner gets both as parents
- Parent reassignment rejects self-parenting and descendants
"""
import pytest

from gentree import crud
from gentree.models import TreeGraph


class TestCreatePerson:
    def test_first_person_becomes_root(self):
        graph, pid = crud.create_person(TreeGraph(), first_name="  Ada ", last_name="Lovelace")
        assert graph.root_person_id == pid
        assert graph.people[pid].first_name == "Ada"

    def test_existing_root_kept(self, lineage):
        graph, pid = crud.create_person(lineage, first_name="Other")
        assert graph.root_person_id == "R"
        assert pid in graph.people

    def test_field_normalization(self):
        graph, pid = crud.create_person(TreeGraph(), first_name="A", birth_place=None,
                                        death_place="  ", birth_date=" 1900-01-01 ")
        person = graph.people[pid]
        assert person.birth_place == ""
        assert person.death_place is None
        assert person.birth_date == "1900-01-01"


class TestUpdatePerson:
    def test_keeps_relationships(self, family):
        graph = crud.update_person(family, "dad", first_name="David", last_name="Smith")
        dad = graph.people["dad"]
        assert dad.first_name == "David"
        assert dad.parents == ("grandpa",)
        assert dad.children == ("kid",)
        assert len(dad.spouses) == 1

    def test_missing(self, family):
        with pytest.raises(KeyError):
            crud.update_person(family, "ghost", first_name="X")


class TestAddRelatives:
    def test_add_parent(self, lineage):
        graph, pid = crud.add_parent(lineage, "C", first_name="Second")
        assert graph.people["C"].parents == ("R", pid)
        assert graph.people[pid].children == ("C",)

    def test_add_parent_missing_child(self, lineage):
        with pytest.raises(KeyError):
            crud.add_parent(lineage, "ghost", first_name="X")

    def test_add_child_uses_single_partner(self, family):
        graph, pid = crud.add_child(family, "dad", first_name="Baby")
        assert graph.people[pid].parents == ("dad", "mom")
        assert pid in graph.people["mom"].children

    def test_add_child_single_parent(self, lineage):
        graph, pid = crud.add_child(lineage, "C", first_name="G")
        assert graph.people[pid].parents == ("C",)

    def test_add_child_to_union(self, couple_with_child):
        graph, pid = crud.add_child_to_union(couple_with_child, "u1", first_name="D")
        assert graph.people[pid].parents == ("A", "B")

    def test_add_child_to_stale_union(self, couple_with_child):
        with pytest.raises(ValueError):
            crud.add_child_to_union(couple_with_child, "nope", first_name="D")

    def test_add_spouse(self, lineage):
        graph, sid, union_id = crud.add_spouse(lineage, "R", marriage_date="1950-05-05", first_name="S")
        assert graph.people["R"].spouses[0].spouse_id == sid
        assert graph.people[sid].spouses[0].spouse_id == "R"
        assert graph.people[sid].spouses[0].union_id == union_id
        assert graph.people[sid].spouses[0].marriage_date == "1950-05-05"

    def test_link_spouses(self, lineage):
        graph, union_id = crud.link_spouses(lineage, "R", "C", union_id="fixed")
        assert union_id == "fixed"
        assert graph.people["C"].spouses[0].union_id == "fixed"


class TestReassignParents:
    def test_union_selection(self, couple_with_child):
        graph, extra = crud.create_person(couple_with_child, first_name="E")
        graph = crud.reassign_parents(graph, extra, union_id="u1")
        assert graph.people[extra].parents == ("A", "B")

    def test_explicit_ids(self, family):
        graph = crud.reassign_parents(family, "kid", parent_ids=["grandpa"])
        assert graph.people["kid"].parents == ("grandpa",)

    def test_self_parent_rejected(self, family):
        with pytest.raises(ValueError, match="own parent"):
            crud.reassign_parents(family, "kid", parent_ids=["kid"])

    def test_descendant_rejected(self, family):
        with pytest.raises(ValueError, match="descendant"):
            crud.reassign_parents(family, "grandpa", parent_ids=["kid"])

    def test_empty_union_rejected(self, family):
        with pytest.raises(ValueError, match="no partners"):
            crud.reassign_parents(family, "kid", union_id="nope")

    def test_missing_child(self, family):
        with pytest.raises(KeyError):
            crud.reassign_parents(family, "ghost", parent_ids=[])


class TestDeletePerson:
    def test_delete(self, family):
        graph = crud.delete_person(family, "mom")
        assert "mom" not in graph.people
        assert graph.people["dad"].spouses == ()

    def test_missing(self, family):
        with pytest.raises(KeyError):
            crud.delete_person(family, "ghost")
