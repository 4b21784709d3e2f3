"""Tests for the entity catalog builder."""

import dataclasses
import xml.etree.ElementTree as ET

import pytest

from blockpalette.core.exceptions import DuplicateCandidateError, HostUnavailableError
from blockpalette.engine.catalog import (
    LIST_COLOR,
    LIST_OPERATIONS,
    PROCEDURE_COLOR,
    VARIABLE_COLOR,
    VARIABLE_OPERATIONS,
    CatalogBuilder,
    procedure_code,
    render_block,
)
from blockpalette.engine.labels import LabelResolver
from blockpalette.engine.models import CandidateKind, DynamicEntity, EntityKind
from blockpalette.host.workspace import BlockInstance, Variable
from tests.conftest import COMMAND_IDS, TOOLBOX_TYPES, FakeWorkspace


def _by_id(candidates):
    return {c.id: c for c in candidates}


class BrokenVariablesWorkspace(FakeWorkspace):
    def all_variables(self):
        raise RuntimeError("variable map not loaded")


class TestDiscovery:
    """Candidate universe and discovery order."""

    def test_discovery_order(self, builder):
        ids = [c.id for c in builder.list_candidates()]
        assert ids[:5] == COMMAND_IDS
        assert ids[5:10] == TOOLBOX_TYPES
        assert ids[10:15] == [f"{op.opcode}_v1" for op in VARIABLE_OPERATIONS]
        assert ids[15:25] == [f"{op.opcode}_l1" for op in LIST_OPERATIONS]
        assert ids[25:] == ["procedures_call_jump %s times"]

    def test_ids_are_unique(self, builder):
        ids = [c.id for c in builder.list_candidates()]
        assert len(ids) == len(set(ids))

    def test_collect_reports_every_source(self, builder):
        results = builder.collect()
        assert [r.source for r in results] == ["commands", "toolbox", "variables", "lists", "procedures"]
        assert all(r.ok for r in results)

    def test_commands_are_actions(self, builder):
        commands = builder.list_candidates()[:5]
        assert all(c.kind == CandidateKind.ACTION for c in commands)
        assert all(c.type_label == "Action" for c in commands)
        assert [c.text for c in commands] == [
            "Clean up blocks",
            "Collapse all blocks",
            "Expand all blocks",
            "Duplicate block...",
            "Delete block...",
        ]

    def test_rebuilt_on_every_call(self, builder, workspace):
        before = len(builder.list_candidates())
        workspace.variables.append(Variable(id="v2", name="lives"))
        assert len(builder.list_candidates()) == before + len(VARIABLE_OPERATIONS)


class TestToolbox:
    """Toolbox walking, labels, and categories."""

    def test_labels(self, builder):
        by_id = _by_id(builder.list_candidates())
        assert by_id["motion_movesteps"].text == "move steps"
        assert by_id["motion_turnright"].text == "turn degrees"
        assert by_id["looks_sayforsecs"].text == "say Hello! for seconds"
        assert by_id["operator_gt"].text == "> greater than"
        assert by_id["operator_add"].text == "+ add"

    def test_categories_and_colors(self, builder):
        by_id = _by_id(builder.list_candidates())
        assert by_id["motion_movesteps"].category == "Motion"
        assert by_id["motion_movesteps"].category_color == "#4C97FF"
        assert by_id["looks_sayforsecs"].category == "Looks"
        assert by_id["operator_gt"].category == "Operators"
        assert by_id["operator_gt"].type_label == "Operators"

    def test_template_is_serialized_definition(self, builder):
        template = _by_id(builder.list_candidates())["looks_sayforsecs"].template
        root = ET.fromstring(template.strip())
        assert root.get("type") == "looks_sayforsecs"
        assert [f.text for f in root.iter("field")] == ["Hello!", "2"]

    def test_element_tree_accepted(self, resolver, toolbox_xml):
        workspace = FakeWorkspace(toolbox=ET.fromstring(toolbox_xml))
        templates = CatalogBuilder(workspace, resolver).toolbox_templates()
        assert [t.type_id for t in templates] == TOOLBOX_TYPES

    def test_templates_hold_only_serialized_data(self, builder):
        template = builder.toolbox_templates()[0]
        assert [f.name for f in dataclasses.fields(template)] == [
            "type_id",
            "template",
            "text",
            "category",
            "category_color",
            "opcode",
        ]
        assert isinstance(template.template, str)

    def test_block_outside_category(self, resolver):
        workspace = FakeWorkspace(toolbox='<xml><block type="event_whenflagclicked"/></xml>')
        templates = CatalogBuilder(workspace, resolver).toolbox_templates()
        assert templates[0].category is None
        assert templates[0].text == "Whenflagclicked"

    def test_nested_category_wins(self, resolver):
        toolbox = (
            '<xml><category name="Outer" colour="#111111">'
            '<category name="Inner" colour="#222222"><block type="pen_clear"/></category>'
            '<block type="pen_stamp"/>'
            "</category></xml>"
        )
        templates = CatalogBuilder(FakeWorkspace(toolbox=toolbox), resolver).toolbox_templates()
        assert [(t.type_id, t.category, t.category_color) for t in templates] == [
            ("pen_clear", "Inner", "#222222"),
            ("pen_stamp", "Outer", "#111111"),
        ]

    def test_flyout_fallback(self, resolver):
        workspace = FakeWorkspace(toolbox=None, flyout=["motion_movesteps", ""])
        templates = CatalogBuilder(workspace, resolver).toolbox_templates()
        assert len(templates) == 1
        assert templates[0].template == '<block type="motion_movesteps"></block>'
        assert templates[0].text == "move steps"

    def test_malformed_toolbox_yields_no_blocks(self, resolver):
        builder = CatalogBuilder(FakeWorkspace(toolbox="<xml><category"), resolver)
        results = {r.source: r for r in builder.collect()}
        assert results["toolbox"].ok
        assert results["toolbox"].candidates == []


class TestDynamicEntities:
    """Variables, lists, and custom procedures."""

    def test_variable_expansion(self, builder):
        candidates = [c for c in builder.list_candidates() if c.category == "Variables"]
        assert [c.text for c in candidates] == [
            "score",
            "set score to",
            "change score by",
            "show variable score",
            "hide variable score",
        ]
        assert all(c.category_color == VARIABLE_COLOR for c in candidates)
        assert all(c.kind == CandidateKind.INSERT for c in candidates)

    def test_list_expansion(self, builder):
        candidates = [c for c in builder.list_candidates() if c.category == "Lists"]
        assert len(candidates) == 10
        assert all(c.category_color == LIST_COLOR for c in candidates)
        assert "scores contains" in [c.text for c in candidates]

    def test_list_only_workspace(self, resolver):
        workspace = FakeWorkspace(variables=[Variable(id="l9", name="scores", type="list")])
        candidates = CatalogBuilder(workspace, resolver).list_candidates()
        lists = [c for c in candidates if c.category == "Lists"]
        assert len(lists) == 10
        assert not [c for c in candidates if c.category == "Variables"]

    def test_unnamed_variable_skipped(self, resolver):
        workspace = FakeWorkspace(variables=[Variable(id="v9", name="")])
        assert CatalogBuilder(workspace, resolver).dynamic_entities(EntityKind.VARIABLE) == []

    def test_variable_template(self, builder):
        entity = DynamicEntity(kind=EntityKind.VARIABLE, name="score", id="v1")
        setter = builder.expand_entity(entity)[1]
        root = ET.fromstring(setter.template)
        assert root.get("type") == "data_setvariableto"
        field = root.find("field")
        assert field.get("name") == "VARIABLE"
        assert field.get("id") == "v1"
        assert field.text == "score"
        assert root.find("value/shadow/field").text == "0"
        assert setter.block_type == "data_setvariableto"

    def test_list_template_inputs(self, builder):
        entity = DynamicEntity(kind=EntityKind.LIST, name="scores", id="l1")
        insert = next(t for t in builder.expand_entity(entity) if t.opcode == "data_insertatlist")
        root = ET.fromstring(insert.template)
        assert root.find("field").get("variabletype") == "list"
        assert [v.get("name") for v in root.findall("value")] == ["ITEM", "INDEX"]

    def test_entity_names_are_escaped(self, builder):
        entity = DynamicEntity(kind=EntityKind.VARIABLE, name='say "hi" & <bye>', id="v&1")
        template = builder.expand_entity(entity)[0].template
        field = ET.fromstring(template).find("field")
        assert field.text == 'say "hi" & <bye>'
        assert field.get("id") == "v&1"

    def test_procedures_deduplicated(self, builder):
        procedures = [c for c in builder.list_candidates() if c.category == "My Blocks"]
        assert len(procedures) == 1
        assert procedures[0].text == "jump %s times"
        assert procedures[0].category_color == PROCEDURE_COLOR

    def test_procedure_call_carries_mutation(self, builder):
        call = _by_id(builder.list_candidates())["procedures_call_jump %s times"]
        root = ET.fromstring(call.template)
        assert root.get("type") == "procedures_call"
        mutation = root.find("mutation")
        assert mutation.get("proccode") == "jump %s times"
        assert mutation.get("argumentids") == '["a1"]'

    def test_definition_without_prototype_skipped(self, resolver):
        workspace = FakeWorkspace(blocks=[BlockInstance(id="d", type="procedures_definition")])
        assert CatalogBuilder(workspace, resolver).dynamic_entities(EntityKind.PROCEDURE) == []


class TestProcedureCode:
    def test_host_proc_code(self):
        assert procedure_code(BlockInstance(id="p", type="x", proc_code="fly")) == "fly"

    def test_mutation_attribute(self):
        prototype = BlockInstance(id="p", type="x", mutation='<mutation proccode="glide %n"/>')
        assert procedure_code(prototype) == "glide %n"

    def test_malformed_mutation_uses_fields(self):
        prototype = BlockInstance(id="p", type="x", mutation="<mutation", fields={"NAME": "hop"})
        assert procedure_code(prototype) == "hop"

    def test_nothing_known(self):
        assert procedure_code(BlockInstance(id="p", type="x")) == ""


class TestSourceIsolation:
    """A failing source never empties the palette."""

    def test_no_workspace_keeps_commands(self, resolver):
        builder = CatalogBuilder(None, resolver)
        assert [c.id for c in builder.list_candidates()] == COMMAND_IDS
        failed = [r for r in builder.collect() if not r.ok]
        assert [r.source for r in failed] == ["toolbox", "variables", "lists", "procedures"]
        assert all(isinstance(r.error, HostUnavailableError) for r in failed)

    def test_unavailable_workspace(self, resolver, toolbox_xml):
        workspace = FakeWorkspace(toolbox=toolbox_xml, available=False)
        assert [c.id for c in CatalogBuilder(workspace, resolver).list_candidates()] == COMMAND_IDS

    def test_failing_variables_keep_other_sources(self, resolver, toolbox_xml):
        workspace = BrokenVariablesWorkspace(toolbox=toolbox_xml)
        failures = []
        builder = CatalogBuilder(workspace, resolver, on_failure=failures.append)
        ids = [c.id for c in builder.list_candidates()]
        assert ids == COMMAND_IDS + TOOLBOX_TYPES
        assert [r.source for r in failures] == ["variables", "lists"]
        assert all(isinstance(r.error, RuntimeError) for r in failures)

    def test_failure_hook_errors_are_contained(self, resolver, toolbox_xml):
        def hook(result):
            raise ValueError("observer broke")

        workspace = BrokenVariablesWorkspace(toolbox=toolbox_xml)
        builder = CatalogBuilder(workspace, resolver, on_failure=hook)
        assert len(builder.list_candidates()) == 10

    def test_require_workspace_raises(self, resolver):
        with pytest.raises(HostUnavailableError):
            CatalogBuilder(None, resolver).toolbox_templates()


class TestDuplicateIds:
    DUPLICATE_TOOLBOX = (
        '<xml><category name="Motion">'
        '<block type="motion_movesteps"/><block type="motion_movesteps"/><block type="motion_movesteps"/>'
        "</category></xml>"
    )

    def test_duplicates_renamed(self, resolver):
        workspace = FakeWorkspace(toolbox=self.DUPLICATE_TOOLBOX)
        ids = [c.id for c in CatalogBuilder(workspace, resolver).list_candidates()]
        assert ids[5:] == ["motion_movesteps", "motion_movesteps#2", "motion_movesteps#3"]

    def test_strict_mode_fails_offending_source(self, resolver):
        workspace = FakeWorkspace(
            toolbox=self.DUPLICATE_TOOLBOX,
            variables=[Variable(id="v1", name="score")],
        )
        builder = CatalogBuilder(workspace, resolver, strict_ids=True)
        results = {r.source: r for r in builder.collect()}
        assert isinstance(results["toolbox"].error, DuplicateCandidateError)
        assert results["toolbox"].error.candidate_id == "motion_movesteps"
        assert results["commands"].ok
        assert len(results["variables"].candidates) == len(VARIABLE_OPERATIONS)


class TestInvocations:
    """Candidate actions delegate to the workspace."""

    def test_insert_toolbox_block(self, builder, workspace):
        _by_id(builder.list_candidates())["motion_movesteps"].invoke()
        template, block_type = workspace.created[0]
        assert block_type == "motion_movesteps"
        assert 'type="motion_movesteps"' in template

    def test_insert_variable_block_uses_opcode(self, builder, workspace):
        _by_id(builder.list_candidates())["data_changevariableby_v1"].invoke()
        assert workspace.created[0][1] == "data_changevariableby"

    def test_insert_procedure_call(self, builder, workspace):
        _by_id(builder.list_candidates())["procedures_call_jump %s times"].invoke()
        assert workspace.created[0][1] == "procedures_call"

    def test_clean_up(self, builder, workspace):
        _by_id(builder.list_candidates())["clean-up"].invoke()
        assert workspace.cleaned == 1

    def test_collapse_and_expand(self, builder, workspace):
        by_id = _by_id(builder.list_candidates())
        by_id["collapse"].invoke()
        assert workspace.collapsed == {"def1": True, "def2": True, "b1": True}
        by_id["expand"].invoke()
        assert workspace.collapsed == {"def1": False, "def2": False, "b1": False}

    def test_pick_without_picker_is_noop(self, builder, workspace):
        _by_id(builder.list_candidates())["delete"].invoke()
        assert workspace.deleted == []

    def test_invoke_after_workspace_unavailable(self, builder, workspace):
        candidate = _by_id(builder.list_candidates())["clean-up"]
        workspace.available = False
        with pytest.raises(HostUnavailableError):
            candidate.invoke()


class TestRenderBlock:
    def test_bare_block(self):
        assert render_block("bare_block.xml.j2", type_id="pen_clear") == '<block type="pen_clear"></block>'

    def test_missing_variable_is_an_error(self):
        with pytest.raises(Exception):
            render_block("bare_block.xml.j2")


def test_resolver_without_catalog_still_labels(toolbox_xml):
    builder = CatalogBuilder(FakeWorkspace(toolbox=toolbox_xml), LabelResolver())
    texts = [c.text for c in builder.list_candidates()[5:]]
    assert texts == ["Movesteps", "Turnright", "Sayforsecs", "> greater than", "+ add"]
