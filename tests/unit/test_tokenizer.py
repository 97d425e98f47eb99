"""Tests for the grammar-driven tokenizer."""

from __future__ import annotations

import pytest

from tacassist.core.grammar_store import GrammarStore
from tacassist.core.ir import ERROR, WHITESPACE, ActiveGrammar, Grammar, Token, TokenDefinition
from tacassist.core.tokenizer import (
    Tokenizer,
    coalesce_whitespace,
    literal_text,
    multi_word_literals,
    token_matches,
    tokenize,
    tokenize_raw,
)
from tacassist.core.validators import ValidatorRegistry

METAR = "METAR LFPG 151230Z 24010KT 9999 FEW020 15/10 Q1013"


def _words(tokens: list[Token]) -> list[tuple[str, str]]:
    return [(t.type, t.text) for t in tokens if not t.is_whitespace]


def _assert_covers(tokens: list[Token], text: str) -> None:
    assert "".join(t.text for t in tokens) == text
    position = 0
    for token in tokens:
        assert token.start == position
        assert token.end == position + len(token.text)
        position = token.end


class TestHelpers:
    def test_token_matches_is_case_insensitive(self) -> None:
        assert token_matches("cavok", TokenDefinition(values=["CAVOK"]))
        assert token_matches("q1013", TokenDefinition(pattern="^Q\\d{4}$"))
        assert not token_matches("Q101", TokenDefinition(pattern="^Q\\d{4}$"))

    def test_invalid_pattern_never_matches(self) -> None:
        assert not token_matches("ABC", TokenDefinition(pattern="^(ABC$"))

    def test_literal_text(self) -> None:
        assert literal_text("^WS ALL RWY$") == "WS ALL RWY"
        assert literal_text("^NOSIG$") == "NOSIG"
        assert literal_text("^\\d{4}$") is None

    def test_multi_word_literals_longest_first(self, metar: Grammar) -> None:
        literals = multi_word_literals(metar)
        assert ("WS ALL RWY", "windShearAll") in literals
        lengths = [len(literal) for literal, _ in literals]
        assert lengths == sorted(lengths, reverse=True)

    def test_coalesce_whitespace(self) -> None:
        merged = coalesce_whitespace(
            [Token(" ", WHITESPACE, 0, 1), Token("\n", WHITESPACE, 1, 2), Token("A", ERROR, 2, 3)]
        )
        assert [(t.type, t.text) for t in merged] == [(WHITESPACE, " \n"), (ERROR, "A")]


class TestRawMode:
    def test_every_word_is_unknown(self) -> None:
        tokens = tokenize_raw("HELLO  WORLD")
        _assert_covers(tokens, "HELLO  WORLD")
        assert _words(tokens) == [(ERROR, "HELLO"), (ERROR, "WORLD")]
        assert tokens[0].error == "Unknown token: HELLO"

    def test_without_grammar(self) -> None:
        assert tokenize("", None) == []
        assert _words(tokenize("A", None)) == [(ERROR, "A")]


class TestNormalMode:
    def test_metar_tokens(self, metar: Grammar) -> None:
        tokens = tokenize(METAR, metar)
        _assert_covers(tokens, METAR)
        assert [t.type for t in tokens if not t.is_whitespace] == [
            "identifier",
            "icao",
            "datetime",
            "wind",
            "visibility",
            "cloud",
            "temperature",
            "pressure",
        ]
        assert not any(t.is_error for t in tokens)

    def test_token_metadata(self, metar: Grammar) -> None:
        icao = tokenize(METAR, metar)[2]
        assert icao.type == "icao"
        assert icao.category == "location"
        assert icao.description == "ICAO location indicator"

    def test_whitespace_is_preserved(self, metar: Grammar) -> None:
        text = "METAR  LFPG\n151230Z\t"
        tokens = tokenize(text, metar)
        _assert_covers(tokens, text)
        assert [t.text for t in tokens if t.is_whitespace] == ["  ", "\n", "\t"]

    def test_idempotent(self, metar: Grammar, validators: ValidatorRegistry) -> None:
        tokenizer = Tokenizer(metar, validators)
        assert tokenizer.tokenize(METAR) == tokenizer.tokenize(METAR)

    def test_out_of_order_token(self, metar: Grammar) -> None:
        tokens = tokenize("METAR LFPG 151230Z 24010KT 9999 FEW020 Q1013", metar)
        last = tokens[-1]
        assert last.type == ERROR
        assert last.error == "Unexpected QNH at this position: Q1013"

    def test_unknown_word(self, metar: Grammar) -> None:
        tokens = tokenize("METAR LFPG HELLO", metar)
        assert tokens[-1].type == ERROR
        assert tokens[-1].error == "Unknown token: HELLO"

    def test_multi_word_literal(self, metar: Grammar) -> None:
        text = "METAR LFPG 151230Z 24010KT CAVOK 15/10 Q1013 WS ALL RWY NOSIG"
        tokens = tokenize(text, metar)
        _assert_covers(tokens, text)
        assert ("windShearAll", "WS ALL RWY") in _words(tokens)
        assert _words(tokens)[-1] == ("nosig", "NOSIG")

    def test_tracker_exposed_after_tokenize(self, metar: Grammar) -> None:
        tokenizer = Tokenizer(metar)
        tokenizer.tokenize("METAR LFPG 151230Z NIL")
        assert tokenizer.tracker is not None
        assert tokenizer.tracker.finished


class TestKeywordGrammar:
    def test_repetition_overflow_is_unexpected(self, keyword_grammar: Grammar) -> None:
        tokens = tokenize("KW 1 2 3 4", keyword_grammar)
        words = _words(tokens)
        assert words[:4] == [("kw", "KW"), ("num", "1"), ("num", "2"), ("num", "3")]
        assert words[4] == (ERROR, "4")
        assert tokens[-1].error == "Unexpected number at this position: 4"

    def test_lowercase_input_keeps_text(self, keyword_grammar: Grammar) -> None:
        assert _words(tokenize("kw 1 end", keyword_grammar)) == [
            ("kw", "kw"),
            ("num", "1"),
            ("end", "end"),
        ]

    def test_free_floating_token_does_not_advance(self, keyword_grammar: Grammar) -> None:
        tokens = tokenize("KW NOTE 1", keyword_grammar)
        assert _words(tokens) == [("kw", "KW"), ("note", "NOTE"), ("num", "1")]
        assert not any(t.is_error for t in tokens)

    def test_words_after_terminal(self, keyword_grammar: Grammar) -> None:
        tokens = tokenize("KW 1 END 2", keyword_grammar)
        assert tokens[-1].error == "Unexpected number at this position: 2"


class TestValidation:
    def test_validator_error_keeps_type(self, metar: Grammar, validators: ValidatorRegistry) -> None:
        tokens = tokenize("METAR LFPG 320000Z", metar, validators)
        datetime_token = tokens[-1]
        assert datetime_token.type == "datetime"
        assert datetime_token.error == "Invalid day: 32 (must be 01-31)"
        assert datetime_token.is_error

    def test_no_registry_skips_validation(self, metar: Grammar) -> None:
        tokens = tokenize("METAR LFPG 320000Z", metar)
        assert tokens[-1].error is None

    def test_pattern_validator_receives_context(
        self,
        metar: Grammar,
        metar_active: ActiveGrammar,
    ) -> None:
        seen = []
        registry = ValidatorRegistry(builtins=False)
        registry.register("sa.*.*.pressure", lambda ctx: seen.append(ctx) or "QNH out of range")

        tokens = tokenize(METAR, metar, registry, metar_active)

        assert tokens[-1].error == "QNH out of range"
        assert seen[0].token_value == "Q1013"
        assert seen[0].full_text == METAR
        assert seen[0].position == METAR.index("Q1013")
        assert seen[0].grammar_code == "sa"


class TestTemplateMode:
    @pytest.fixture
    def vaa(self, store: GrammarStore) -> Grammar:
        grammar = store.load("fv")
        assert grammar is not None
        return grammar

    def test_labels_and_values(self, vaa: Grammar) -> None:
        text = (
            "VA ADVISORY\n"
            "DTG:                  20260315/1020Z\n"
            "VAAC:                 TOULOUSE"
        )
        tokens = tokenize(text, vaa)
        _assert_covers(tokens, text)
        assert _words(tokens) == [
            ("identifier", "VA ADVISORY"),
            ("dtgLabel", "DTG:"),
            ("dtg", "20260315/1020Z"),
            ("vaacLabel", "VAAC:"),
            ("vaac", "TOULOUSE"),
        ]

    def test_multi_word_value(self, vaa: Grammar) -> None:
        text = "VA ADVISORY\nPSN:                  N1234 E12345"
        assert _words(tokenize(text, vaa))[-1] == ("position", "N1234 E12345")

    def test_continuation_line(self, vaa: Grammar) -> None:
        text = (
            "VA ADVISORY\n"
            "INFO SOURCE:          SATELLITE\n"
            "                      PILOT REPORT"
        )
        tokens = tokenize(text, vaa)
        _assert_covers(tokens, text)
        assert _words(tokens)[-1] == ("infoSource", "PILOT REPORT")

    def test_label_without_value(self, vaa: Grammar) -> None:
        text = "VA ADVISORY\nDTG:"
        assert _words(tokenize(text, vaa)) == [("identifier", "VA ADVISORY"), ("dtgLabel", "DTG:")]

    def test_value_validated(self, vaa: Grammar, validators: ValidatorRegistry) -> None:
        text = "VA ADVISORY\nDTG:                  20261315/1020Z"
        tokens = tokenize(text, vaa, validators)
        assert tokens[-1].type == "dtg"
        assert tokens[-1].error == "Invalid month: 13"

    def test_unknown_line(self, vaa: Grammar) -> None:
        tokens = tokenize("VA ADVISORY\nHELLO", vaa)
        assert tokens[-1].type == ERROR


class TestWarningGrammars:
    def _tokenize(self, store: GrammarStore, validators: ValidatorRegistry, name: str, text: str) -> list[Token]:
        grammar = store.load(name)
        assert grammar is not None
        tokens = tokenize(text, grammar, validators, ActiveGrammar(code=name))
        _assert_covers(tokens, text)
        assert [t for t in tokens if t.is_error] == []
        return tokens

    def test_airmet(self, store: GrammarStore, validators: ValidatorRegistry) -> None:
        text = "LFFF AIRMET 1 VALID 151200/151600 LFPW- LFFF FRANCE FIR MOD TURB OBS ENTIRE FIR SFC/FL100 STNR NC"
        words = _words(self._tokenize(store, validators, "wa", text))
        assert words[1] == ("identifier", "AIRMET")
        assert ("phenomenon", "MOD TURB") in words
        assert ("level", "SFC/FL100") in words

    def test_airmet_cancellation(self, store: GrammarStore, validators: ValidatorRegistry) -> None:
        text = "LFFF AIRMET 2 VALID 151400/151800 LFPW- LFFF FRANCE FIR CNL AIRMET 1 151200/151600"
        words = _words(self._tokenize(store, validators, "wa", text))
        assert words[-3:] == [
            ("cnl", "CNL AIRMET"),
            ("cancelledNumber", "1"),
            ("cancelledValidity", "151200/151600"),
        ]

    def test_volcanic_ash_sigmet(self, store: GrammarStore, validators: ValidatorRegistry) -> None:
        text = "LFFF SIGMET 3 VALID 151200/151800 LFPW- LFFF FRANCE FIR VA CLD OBS ENTIRE FIR FL350 MOV NE 20KT WKN"
        words = _words(self._tokenize(store, validators, "wv", text))
        assert ("phenomenon", "VA CLD") in words
        assert words[-3:] == [("direction", "NE"), ("speed", "20KT"), ("intensity", "WKN")]

    def test_tropical_cyclone_sigmet(self, store: GrammarStore, validators: ValidatorRegistry) -> None:
        text = (
            "KZMA SIGMET 2 VALID 151200/151800 KKCI- KZMA MIAMI OCEANIC FIR "
            "TC IRMA OBS ENTIRE FIR FL450 MOV NW 10KT INTSF"
        )
        words = _words(self._tokenize(store, validators, "wc", text))
        assert ("firName", "OCEANIC") in words
        index = words.index(("phenomenon", "TC"))
        assert words[index + 1] == ("tcName", "IRMA")

    def test_sigmet_phenomenon_not_valid_in_airmet(self, store: GrammarStore) -> None:
        grammar = store.load("wa")
        assert grammar is not None
        text = "LFFF AIRMET 1 VALID 151200/151600 LFPW- LFFF FRANCE FIR SEV TURB"
        assert tokenize(text, grammar)[-1].is_error


class TestTropicalCycloneAdvisory:
    @pytest.fixture
    def tca(self, store: GrammarStore) -> Grammar:
        grammar = store.load("fk")
        assert grammar is not None
        return grammar

    def test_full_advisory(self, tca: Grammar, validators: ValidatorRegistry) -> None:
        text = (
            "TC ADVISORY\n"
            "DTG:                  20260315/1200Z\n"
            "TCAC:                 MIAMI\n"
            "TC:                   IRMA\n"
            "ADVISORY NR:          2026/12\n"
            "OBS PSN:              15/1145Z N2706 W07306\n"
            "MOV:                  NW 20KMH\n"
            "INTST CHANGE:         INTSF\n"
            "C:                    965HPA\n"
            "MAX WIND:             50MPS\n"
            "FCST PSN +6 HR:       15/1800Z N2748 W07350\n"
            "RMK:                  NIL\n"
            "NXT MSG:              20260315/1800Z"
        )
        tokens = tokenize(text, tca, validators, ActiveGrammar(code="fk"))
        _assert_covers(tokens, text)
        assert [t for t in tokens if t.is_error] == []
        words = _words(tokens)
        assert words[0] == ("identifier", "TC ADVISORY")
        assert ("tcName", "IRMA") in words
        assert ("obsPosition", "15/1145Z N2706 W07306") in words
        assert ("pressureLabel", "C:") in words
        assert ("fcst6Position", "15/1800Z N2748 W07350") in words
        assert words[-1] == ("nextMessage", "20260315/1800Z")

    def test_similar_labels(self, tca: Grammar) -> None:
        text = (
            "TC ADVISORY\n"
            "TCAC:                 TOKYO\n"
            "TC:                   HAIKUI\n"
            "CB:                   WI 180NM OF TC CENTRE"
        )
        types = [t for t, _ in _words(tokenize(text, tca))]
        assert types == ["identifier", "tcacLabel", "tcac", "tcLabel", "tcName", "cbLabel", "cb"]
