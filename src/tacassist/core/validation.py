"""
Message validation.

Collects token errors (unknown or misplaced words, validator rejections) and,
for a final check, structural incompleteness: required structure nodes that
were never reached, or required template fields that are missing.
Incompleteness is kept in its own list so that an editor can stay silent
about it while the message is still being typed.
"""

from __future__ import annotations

from .ir import ActiveGrammar, Grammar, Token, ValidationIssue, ValidationResult
from .structure import StructureTracker
from .tokenizer import Tokenizer, tokenize_raw
from .validators import ValidatorRegistry


def token_errors(tokens: list[Token]) -> list[ValidationIssue]:
    """One issue per error token, in text order."""
    return [
        ValidationIssue(
            message=token.error or f"Unknown token: {token.text}",
            position=token.start,
            token=token.text,
        )
        for token in tokens
        if token.is_error
    ]


def incompleteness(
    text: str,
    tokens: list[Token],
    grammar: Grammar,
    tracker: StructureTracker | None,
) -> list[ValidationIssue]:
    """Required elements missing at the end of the message."""
    issues: list[ValidationIssue] = []
    end = len(text)

    if grammar.template_mode and grammar.template is not None:
        present = {token.type for token in tokens}
        for field in grammar.template.fields:
            if field.required and field.label_type not in present:
                issues.append(ValidationIssue(f"Missing required field: {field.label}", end))
        return issues

    if tracker is not None and not tracker.is_complete():
        labels = []
        for token_id in tracker.missing_token_ids():
            definition = grammar.tokens.get(token_id)
            labels.append(definition.description if definition and definition.description else token_id)
        expected = " or ".join(labels) if labels else "more elements"
        issues.append(ValidationIssue(f"Incomplete message: expected {expected}", end))
    return issues


def validate_message(
    text: str,
    grammar: Grammar | None,
    validators: ValidatorRegistry | None = None,
    active: ActiveGrammar | None = None,
    final: bool = False,
) -> ValidationResult:
    """
    Validate a message.

    Args:
        text: Message text
        grammar: Resolved grammar; None validates as raw text
        validators: Validator registry
        active: Grammar identity for validator dispatch
        final: Also report structural incompleteness

    Returns:
        ValidationResult; ``valid`` is False when any error or (for a final
        check) any incompleteness was found
    """
    if grammar is None:
        errors = token_errors(tokenize_raw(text))
        return ValidationResult(valid=not errors, errors=errors)

    tokenizer = Tokenizer(grammar, validators, active)
    tokens = tokenizer.tokenize(text)
    errors = token_errors(tokens)
    incomplete = incompleteness(text, tokens, grammar, tokenizer.tracker) if final else []
    return ValidationResult(valid=not errors and not incomplete, errors=errors, incomplete=incomplete)
