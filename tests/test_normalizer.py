import json

import pytest

from translatebridge.ai.exceptions import ResponseParseError
from translatebridge.translation.normalizer import (
    ResponseKind,
    extract_heuristic,
    extract_labeled_blocks,
    extract_structured,
    extract_tagged_blocks,
    match_json_object,
    normalize,
    safe_parse_json_object,
)

from fakes import SPANISH_TRANSLATION, SPANISH_VERIFICATION

LABELED = """INTENT: Give the patient a clear instruction about taking medication.
CULTURAL_CONSIDERATIONS: Spanish-speaking patients expect the formal usted form from clinicians.
STRATEGY: Formal register, short imperative sentence.
TRANSLATION: Por favor, tome su medicamento con comida después de las comidas.
CULTURAL_NOTES: Used the formal usted form and a polite opener."""

TAGGED = """<response>
<intent>Give the patient a clear instruction about taking medication.</intent>
<cultural_considerations>Spanish-speaking patients expect the formal usted form from clinicians.</cultural_considerations>
<strategy>Formal register, short imperative sentence.</strategy>
<translation>Por favor, tome su medicamento con comida después de las comidas.</translation>
<cultural_notes>Used the formal usted form and a polite opener.</cultural_notes>
</response>"""


class TestStructured:
    def test_reads_tool_input(self):
        fields = extract_structured(SPANISH_TRANSLATION, ResponseKind.TRANSLATION)
        assert fields["translation"] == SPANISH_TRANSLATION["translation"]
        assert fields["culturalNotes"] == SPANISH_TRANSLATION["culturalNotes"]

    def test_reads_json_in_code_fence(self):
        text = "```json\n" + json.dumps(SPANISH_VERIFICATION) + "\n```"
        fields = extract_structured(text, ResponseKind.VERIFICATION)
        assert fields["literalTranslation"] == SPANISH_VERIFICATION["literalTranslation"]

    def test_accepts_snake_case_keys(self):
        payload = {"literal_translation": "Take your medicine.", "perceived_tone": "Polite"}
        fields = extract_structured(payload, ResponseKind.VERIFICATION)
        assert fields == {"literalTranslation": "Take your medicine.", "perceivedTone": "Polite"}

    def test_non_json_text(self):
        assert extract_structured("just some words", ResponseKind.TRANSLATION) is None


class TestLabeledBlocks:
    def test_sections_run_to_next_label(self):
        fields = extract_labeled_blocks(LABELED, ResponseKind.TRANSLATION)
        assert fields["strategy"] == "Formal register, short imperative sentence."
        assert fields["translation"] == "Por favor, tome su medicamento con comida después de las comidas."

    def test_multiline_value(self):
        text = "TRANSLATION: Línea uno.\nLínea dos.\nCULTURAL NOTES: Formal."
        fields = extract_labeled_blocks(text, ResponseKind.TRANSLATION)
        assert fields["translation"] == "Línea uno.\nLínea dos."
        assert fields["culturalNotes"] == "Formal."

    def test_markdown_and_numbering(self):
        text = "1. **Intent**: Remind.\n2. **TRANSLATION:** \"Tome agua.\"\n3. **Cultural Notes**: None."
        fields = extract_labeled_blocks(text, ResponseKind.TRANSLATION)
        assert fields["intent"] == "Remind."
        assert fields["translation"] == "Tome agua."

    def test_label_must_start_a_line(self):
        text = "LITERAL TRANSLATION: Keep this tone: friendly.\nTONE: Warm."
        fields = extract_labeled_blocks(text, ResponseKind.VERIFICATION)
        assert fields["literalTranslation"] == "Keep this tone: friendly."
        assert fields["perceivedTone"] == "Warm."

    def test_no_labels(self):
        assert extract_labeled_blocks("Hola, ¿cómo está?", ResponseKind.TRANSLATION) is None


class TestTaggedBlocks:
    def test_nested_tags(self):
        fields = extract_tagged_blocks(TAGGED, ResponseKind.TRANSLATION)
        assert fields["culturalConsiderations"].startswith("Spanish-speaking")
        assert fields["translation"] == "Por favor, tome su medicamento con comida después de las comidas."

    def test_case_insensitive_close_tag(self):
        fields = extract_tagged_blocks("<Revised_Translation>Hola.</revised_translation>", ResponseKind.REFINEMENT)
        assert fields == {"revisedTranslation": "Hola."}

    def test_unclosed_tag_ignored(self):
        assert extract_tagged_blocks("<translation>Hola", ResponseKind.TRANSLATION) is None


class TestHeuristic:
    def test_first_sentence(self):
        fields = extract_heuristic("Tome su medicamento. Gracias por su tiempo.", ResponseKind.TRANSLATION)
        assert fields == {"translation": "Tome su medicamento."}

    def test_skips_lines_without_letters(self):
        fields = extract_heuristic("---\n\n42\nTake it with food.", ResponseKind.VERIFICATION)
        assert fields == {"literalTranslation": "Take it with food."}

    def test_non_latin_sentence_end(self):
        fields = extract_heuristic("请饭后服药。谢谢", ResponseKind.TRANSLATION)
        assert fields == {"translation": "请饭后服药。"}


class TestNormalize:
    def test_three_shapes_are_equivalent(self):
        from_tool = normalize("", ResponseKind.TRANSLATION, structured=SPANISH_TRANSLATION)
        from_labels = normalize(LABELED, ResponseKind.TRANSLATION)
        from_tags = normalize(TAGGED, ResponseKind.TRANSLATION)
        assert from_tool == from_labels == from_tags == SPANISH_TRANSLATION

    def test_optional_fields_default_to_empty(self):
        fields = normalize("TRANSLATION: Hola.", ResponseKind.TRANSLATION)
        assert fields["translation"] == "Hola."
        assert fields["intent"] == ""
        assert fields["culturalNotes"] == ""

    def test_tool_input_missing_required_falls_back_to_text(self):
        fields = normalize(
            "REVISED TRANSLATION: Le rogamos que tome agua.",
            ResponseKind.REFINEMENT,
            structured={"changesExplanation": "More formal."},
        )
        assert fields["revisedTranslation"] == "Le rogamos que tome agua."
        assert fields["changesExplanation"] == "More formal."

    def test_structured_wins_over_text(self):
        fields = normalize(
            "TRANSLATION: from text.",
            ResponseKind.TRANSLATION,
            structured={"translation": "from tool."},
        )
        assert fields["translation"] == "from tool."

    def test_plain_text_uses_heuristic(self):
        fields = normalize("Por favor, tome agua. Es importante.", ResponseKind.TRANSLATION)
        assert fields["translation"] == "Por favor, tome agua."

    @pytest.mark.parametrize("raw", ["", "   ", "12345 --- 678", "```\n{}\n```", "<div></div>"])
    def test_malformed_raises_parse_error(self, raw):
        with pytest.raises(ResponseParseError) as excinfo:
            normalize(raw, ResponseKind.VERIFICATION)
        assert excinfo.value.code == "parse_error"
        assert excinfo.value.details["field"] == "literalTranslation"


def test_match_json_object_skips_braces_in_strings():
    text = 'Result: {"translation": "use {braces}", "n": {"a": 1}} trailing'
    assert json.loads(match_json_object(text)) == {"translation": "use {braces}", "n": {"a": 1}}


def test_safe_parse_rejects_arrays():
    assert safe_parse_json_object("[1, 2, 3]") is None


class TestMissingRequiredSection:
    def test_labeled_translation_without_translation_section(self):
        raw = "INTENT: Give the patient a clear instruction.\nSTRATEGY: Formal register.\nCULTURAL_NOTES: Used usted."
        with pytest.raises(ResponseParseError) as excinfo:
            normalize(raw, ResponseKind.TRANSLATION)
        assert excinfo.value.details == {"kind": "translation", "field": "translation"}

    def test_tagged_verification_without_back_translation(self):
        raw = "<perceived_tone>Polite.</perceived_tone><overall_assessment>Clear.</overall_assessment>"
        with pytest.raises(ResponseParseError):
            normalize(raw, ResponseKind.VERIFICATION)

    def test_tool_input_without_required_field(self):
        with pytest.raises(ResponseParseError):
            normalize("", ResponseKind.TRANSLATION, structured={"intent": "Remind the patient."})

    def test_refinement_never_guesses(self):
        with pytest.raises(ResponseParseError):
            normalize("Le rogamos que tome su medicamento.", ResponseKind.REFINEMENT)

    def test_refinement_explanation_is_not_promoted(self):
        raw = "CHANGES_EXPLANATION: I switched to the formal usted form.\nIMPROVEMENT_NOTES: Sounds more respectful."
        with pytest.raises(ResponseParseError) as excinfo:
            normalize(raw, ResponseKind.REFINEMENT)
        assert excinfo.value.details["field"] == "revisedTranslation"
