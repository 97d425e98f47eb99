"""Tests for the grammar document models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from tacassist.core.ir import (
    CategoryItem,
    Grammar,
    SkipItem,
    StructureOneOf,
    StructureSequence,
    StructureToken,
    SwitchGrammarItem,
    TemplateDefinition,
    TemplateField,
    TokenDefinition,
    ValueItem,
)


class TestTokenDefinition:
    def test_camel_case_aliases(self) -> None:
        definition = TokenDefinition.model_validate(
            {"pattern": "^(CB|TCU)$", "appendToPrevious": True, "greedy": False}
        )
        assert definition.append_to_previous is True
        assert definition.greedy is False

    def test_python_names_accepted(self) -> None:
        definition = TokenDefinition(values=["CAVOK"], append_to_previous=False)
        assert definition.values == ["CAVOK"]
        assert definition.greedy is True

    def test_frozen(self) -> None:
        definition = TokenDefinition(pattern="^X$")
        with pytest.raises(ValidationError):
            definition.pattern = "^Y$"  # type: ignore[misc]


class TestStructureNodes:
    def test_discriminates_node_kinds(self) -> None:
        grammar = Grammar.model_validate(
            {
                "structure": [
                    {"id": "a"},
                    {"id": "b", "oneOf": [{"id": "c"}, {"id": "d"}]},
                    {"id": "e", "sequence": [{"id": "f", "cardinality": [0, None]}]},
                ]
            }
        )
        a, b, e = grammar.structure
        assert isinstance(a, StructureToken)
        assert isinstance(b, StructureOneOf)
        assert isinstance(e, StructureSequence)
        assert [n.id for n in b.one_of] == ["c", "d"]
        assert e.sequence[0].max is None

    def test_default_cardinality(self) -> None:
        node = StructureToken(id="a")
        assert (node.min, node.max) == (1, 1)
        assert node.terminal is False

    @pytest.mark.parametrize("cardinality", [[-1, 1], [2, 1], [0, 0]])
    def test_invalid_cardinality(self, cardinality: list[int]) -> None:
        with pytest.raises(ValidationError):
            StructureToken.model_validate({"id": "a", "cardinality": cardinality})


class TestSuggestionItems:
    def test_discriminates_item_types(self) -> None:
        grammar = Grammar.model_validate(
            {
                "suggestions": {
                    "items": {
                        "x": [
                            {"text": "A"},
                            {"type": "skip", "description": "No value"},
                            {"type": "category", "text": "More", "children": [{"text": "B"}]},
                            {"type": "switchGrammar", "target": "fc", "dynamic": "DDHH/DDHH-short"},
                        ]
                    }
                }
            }
        )
        value, skip, category, switch = grammar.suggestions.items["x"]
        assert isinstance(value, ValueItem)
        assert isinstance(skip, SkipItem)
        assert isinstance(category, CategoryItem)
        assert isinstance(category.children[0], ValueItem)
        assert isinstance(switch, SwitchGrammarItem)
        assert switch.target == "fc"

    def test_editable_region_end_before_start(self) -> None:
        with pytest.raises(ValidationError):
            ValueItem.model_validate({"text": "XXXX", "editable": [{"start": 3, "end": 1}]})


class TestTemplate:
    def test_column_width_configured(self) -> None:
        template = TemplateDefinition(label_column_width=22)
        assert template.column_width() == 22

    def test_column_width_from_longest_label(self) -> None:
        template = TemplateDefinition(
            fields=[
                TemplateField(label="DTG:", label_type="a", value_type="b"),
                TemplateField(label="SUMMIT ELEV:", label_type="c", value_type="d"),
            ]
        )
        assert template.column_width() == len("SUMMIT ELEV:") + 2

    def test_empty_template(self) -> None:
        assert TemplateDefinition().column_width() == 0


class TestGrammar:
    def test_token_ids_keep_declaration_order(self) -> None:
        grammar = Grammar.model_validate(
            {"tokens": {"zulu": {"values": ["Z"]}, "alpha": {"values": ["A"]}}}
        )
        assert grammar.token_ids() == ["zulu", "alpha"]

    def test_template_mode_alias(self) -> None:
        grammar = Grammar.model_validate({"templateMode": True, "template": {"labelColumnWidth": 10}})
        assert grammar.template_mode is True
        assert grammar.template is not None
        assert grammar.template.column_width() == 10
