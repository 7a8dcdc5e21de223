"""
Tests for the proposal data type and prompt rendering.
"""

import pytest

from enrichment.discovery.barcode_lookup import BarcodeData
from enrichment.discovery.providers import SearchResult
from enrichment.services.prompts import SYSTEM_PROMPT, build_user_prompt
from enrichment.services.proposal import EnrichmentProposal, coerce_confidence


class TestCoerceConfidence:
    @pytest.mark.parametrize("value,expected", [
        (0.8, 0.8),
        (1, 1.0),
        ("0.65", 0.65),
        (" 0.5 ", 0.5),
    ])
    def test_numbers(self, value, expected):
        assert coerce_confidence(value) == expected

    @pytest.mark.parametrize("value", [None, True, "alta", float("nan"), [0.5], {"v": 1}])
    def test_non_numbers(self, value):
        assert coerce_confidence(value) is None


class TestEnrichmentProposal:
    def test_from_dict_keeps_wire_keys(self, proposal_data):
        proposal = EnrichmentProposal.from_dict(proposal_data)

        assert proposal.confidence_score == 0.85
        assert proposal.tags == ["laptop", "asus", "vivobook", "intel core i5"]
        assert proposal.metafields["custom.memoria_ram"] == "16 GB"
        assert proposal.image_analysis.current_quality == "mala"
        assert proposal.to_dict() == proposal_data

    def test_from_dict_tolerates_bad_shapes(self):
        proposal = EnrichmentProposal.from_dict({
            "confidence_score": "0.7",
            "description_html": 42,
            "tags": ["ok", "", 3, "  otro  "],
            "metafields": {"custom.peso": 1.5, "custom.color": None, "custom.modelo": {"a": 1}},
            "image_analysis": {"current_quality": "excelente", "suggested_alt_texts": "no"},
        })

        assert proposal.confidence_score == 0.7
        assert proposal.description_html == ""
        assert proposal.tags == ["ok", "otro"]
        assert proposal.metafields == {"custom.peso": "1.5", "custom.color": None, "custom.modelo": None}
        assert proposal.image_analysis.current_quality == "regular"
        assert proposal.image_analysis.suggested_alt_texts == []

    def test_from_empty_dict(self):
        proposal = EnrichmentProposal.from_dict({})

        assert proposal.confidence_score is None
        assert proposal.tags == []
        assert proposal.metafields == {}


class TestBuildUserPrompt:
    def test_includes_product_and_search_data(self, catalog_item_factory):
        item = catalog_item_factory()
        results = [SearchResult(title="ASUS Vivobook 15 specs", snippet="Intel Core i5-1235U", link="https://asus.com")]

        prompt = build_user_prompt(item, results)

        assert "ASUS Vivobook 15 X1504ZA" in prompt
        assert "X1504ZA-I5" in prompt
        assert "- ASUS Vivobook 15 specs: Intel Core i5-1235U" in prompt
        assert "Sin datos de codigo de barras" in prompt
        assert '"custom.memoria_ram"' in prompt

    def test_without_search_results(self, catalog_item_factory):
        prompt = build_user_prompt(catalog_item_factory(), [])

        assert "No se encontro informacion adicional" in prompt

    def test_barcode_section(self, catalog_item_factory):
        barcode = BarcodeData(name="Vivobook 15", brand="ASUS", specs={"weight": "1.7 kg"}, source="upcitemdb")

        prompt = build_user_prompt(catalog_item_factory(), [], barcode)

        assert "- Marca: ASUS" in prompt
        assert "- weight: 1.7 kg" in prompt


def test_system_prompt_forbids_prices():
    assert "NUNCA incluyas informacion de precios" in SYSTEM_PROMPT
