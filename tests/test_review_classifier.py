from __future__ import annotations

import pytest

from lexibatch.core.config import AppSettings
from lexibatch.services.review import (
    AI_ADAPTATION,
    AI_WARNING,
    CRITICAL_REASON,
    IDENTICAL_REASON,
    UNTRANSLATED,
    UNTRANSLATED_CRITICAL,
    PhraseTable,
    ReviewClassifier,
    is_identical_to_source,
)


@pytest.fixture()
def new_language() -> ReviewClassifier:
    return ReviewClassifier.for_new_language(AppSettings(database_url=None))


@pytest.fixture()
def importer() -> ReviewClassifier:
    return ReviewClassifier.for_import(AppSettings(database_url=None))


def test_identical_text_without_note_is_untranslated(new_language: ReviewClassifier) -> None:
    decision = new_language.classify("Settings", "Settings")

    assert decision is not None
    assert decision.classification == UNTRANSLATED
    assert decision.reason == IDENTICAL_REASON


def test_identical_text_keeps_model_note_as_reason(new_language: ReviewClassifier) -> None:
    decision = new_language.classify("Wifi", "Wifi", "Brand name kept as is")

    assert decision is not None
    assert decision.classification == UNTRANSLATED
    assert decision.reason == "Brand name kept as is"


@pytest.mark.parametrize("source", ["42", "3.14", "A", " ", "-7"])
def test_numbers_and_single_characters_are_not_flagged(
    new_language: ReviewClassifier, source: str
) -> None:
    assert new_language.classify(source, source) is None


def test_nan_is_not_treated_as_numeric() -> None:
    assert is_identical_to_source("NaN", "NaN") is True


def test_justification_only_note_is_a_false_alarm(new_language: ReviewClassifier) -> None:
    note = "Kept consistent with the glossary entry."

    assert new_language.classify("Deck", "Mazo", note) is None


def test_warning_phrase_overrides_justification(new_language: ReviewClassifier) -> None:
    note = "Consistent with glossary but the meaning is ambiguous here."

    decision = new_language.classify("Play", "Jouer", note)

    assert decision is not None
    assert decision.classification == AI_ADAPTATION
    assert decision.reason == note


def test_note_without_known_phrases_is_flagged(new_language: ReviewClassifier) -> None:
    decision = new_language.classify("Pot", "Bote", "Chose the gambling sense.")

    assert decision is not None
    assert decision.classification == AI_ADAPTATION


def test_clean_translation_needs_no_review(new_language: ReviewClassifier) -> None:
    assert new_language.classify("Start game", "Spiel starten") is None
    assert new_language.classify("Start game", "Spiel starten", "   ") is None


def test_import_classifier_uses_warning_label(importer: ReviewClassifier) -> None:
    decision = importer.classify("Fold", "Se coucher", "Literal rendering, please check.")

    assert decision is not None
    assert decision.classification == AI_WARNING


def test_import_classifier_does_not_flag_identical_text_alone(
    importer: ReviewClassifier,
) -> None:
    assert importer.classify("Lobby", "Lobby") is None


def test_sensitive_identical_term_is_critical(importer: ReviewClassifier) -> None:
    assert importer.contains_sensitive_term("Open the live table now")

    decision = importer.classify("Live Table", "Live Table", is_sensitive_term=True)

    assert decision is not None
    assert decision.classification == UNTRANSLATED_CRITICAL
    assert decision.reason == CRITICAL_REASON


def test_sensitive_term_that_was_translated_is_not_critical(importer: ReviewClassifier) -> None:
    assert importer.classify("Checkpoint", "Kontrollpunkt", is_sensitive_term=True) is None


def test_custom_phrase_tables_are_respected() -> None:
    classifier = ReviewClassifier(
        phrases=PhraseTable(justification=("house style",), warning=("verify",)),
        sensitive_terms=["Jackpot"],
    )

    assert classifier.classify("Bet", "Mise", "Matches house style.") is None
    flagged = classifier.classify("Bet", "Mise", "Matches house style, verify tone.")
    assert flagged is not None
    assert classifier.contains_sensitive_term("MEGA JACKPOT")
    assert not classifier.contains_sensitive_term("Deck")


@pytest.mark.parametrize(
    ("source", "translated", "note", "sensitive", "expected"),
    [
        ("5", "5", None, False, None),
        ("Start Game", "Start Game", None, False, UNTRANSLATED),
        ("Driver", "Driver", None, True, UNTRANSLATED_CRITICAL),
        ("X", "Y", "kept in English, ambiguous term", False, AI_ADAPTATION),
        ("X", "Y", "translated consistently per glossary", False, None),
    ],
)
def test_reference_decisions(
    new_language: ReviewClassifier,
    source: str,
    translated: str,
    note: str | None,
    sensitive: bool,
    expected: str | None,
) -> None:
    decision = new_language.classify(source, translated, note, is_sensitive_term=sensitive)

    assert (decision.classification if decision else None) == expected
