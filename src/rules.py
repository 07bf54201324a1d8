#!/usr/bin/env python3
"""
rules.py - Mapping trie and rule trie built from a mapping table and rules

================================================================================
TWO STAGES
================================================================================

Transliteration happens in two stages, each backed by its own Trie:

    keystrokes ──► MAPPING TRIE ──► semantic tokens ──► RULE TRIE ──► script
    "k" "k" "a"     "kk"? no          CONSONANT/KA        [CONSONANT]
                    "k" -> KA         CONSONANT/KA        [CONSONANT]
                    "a" -> A          DEPENDENT/A         [DEPENDENT]

MAPPING TRIE
    Keyed by scheme characters. A node holds a list of MappingOutput
    candidates because one spelling can stand for several tokens ("a" is both
    the independent VOWEL/A and the DEPENDENT/A sign). Candidates are kept in
    mapping-table order.

RULE TRIE
    Keyed by RuleInput tokens. A RuleInput is either specific (type and key,
    e.g. SIGN/HALANT) or generic (type only, e.g. CONSONANT). A node's value is
    the RuleOutput template to render once the token sequence is complete.

================================================================================
RULE SYNTAX
================================================================================

Each rule is one line of two tab-separated columns:

    [CONSONANT][CONSONANT]<TAB>[CONSONANT][SIGN/HALANT][CONSONANT]

Tokens are wrapped in [ ] or { }. In the output column:

    [TYPE] or {TYPE}    placeholder filled at run time with the script text
                        collected through a generic edge of that name
    [TYPE/KEY]          fixed text: the script of that mapping
    {TYPE/KEY}          fixed text: the first scheme spelling of that mapping

A generic input written N:TYPE matches TYPE but collects under the name
"N:TYPE", so rules can tell two tokens of the same type apart.

================================================================================
REVERSE MODE
================================================================================

With is_reverse=True the same definitions produce tries that read script
text backwards and emit scheme text backwards. Script and scheme swap roles,
each rule's output tokens become its input tokens and both are reversed. When
several keys of one type share the same script text, the last one declared
wins so that overridden mappings never leave stale reverse entries.
================================================================================
"""

import logging
import re
from collections import namedtuple

from errors import ParseError
from ordered_map import OrderedMap
from trie import Trie

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r'(\[[^\]]+?\]|\{[^\}]+?\})')

FIXED = 'fixed'
PLACEHOLDER = 'placeholder'

MappingOutput = namedtuple('MappingOutput', ['type', 'key', 'script'])


class RuleInput:
    """Edge label of the rule trie.

    Equality and hashing only look at (type, key), so RuleInput('1:CONSONANT')
    and RuleInput('CONSONANT') are the same edge; the edge actually stored in
    the trie keeps its own replacent_key.
    """

    __slots__ = ('type', 'key', '_replacent_key')

    def __init__(self, rule_type, key=None):
        self._replacent_key = None
        self.key = key
        if key is None and ':' in rule_type:
            self._replacent_key = rule_type
            self.type = rule_type.split(':')[1]
        else:
            self.type = rule_type

    @property
    def replacent_key(self):
        """Name under which fragments collected through this edge are filed."""
        return self._replacent_key or self.type

    @property
    def is_specific(self):
        return self.key is not None

    def __eq__(self, other):
        if not isinstance(other, RuleInput):
            return NotImplemented
        return self.type == other.type and self.key == other.key

    def __hash__(self):
        return hash((self.type, self.key))

    def __str__(self):
        return self.type if self.key is None else f'{self.type}/{self.key}'

    def __repr__(self):
        return f'RuleInput({str(self)!r})'


class RuleOutput:
    """Output template: a sequence of (FIXED, text) and (PLACEHOLDER, name) parts."""

    def __init__(self, parts):
        self.parts = tuple(parts)

    def __eq__(self, other):
        if not isinstance(other, RuleOutput):
            return NotImplemented
        return self.parts == other.parts

    def __hash__(self):
        return hash(self.parts)

    def __repr__(self):
        return f'RuleOutput({list(self.parts)!r})'

    def generate(self, replacements):
        """Render the template.

        replacements maps a placeholder name to the fragments collected for it,
        in collection order. Each occurrence of a placeholder consumes the next
        fragment of its name; a missing fragment renders as an empty string.
        """
        consumed = {}
        output = []
        for kind, text in self.parts:
            if kind == FIXED:
                output.append(text)
                continue
            fragments = replacements.get(text, ())
            index = consumed.get(text, 0)
            consumed[text] = index + 1
            if index < len(fragments):
                output.append(fragments[index])
        return ''.join(output)


def _tokens(template, rule, line_number, column):
    """Split one column of a rule into the bracket-stripped token texts."""
    tokens = TOKEN_PATTERN.findall(template)
    if not tokens or TOKEN_PATTERN.sub('', template).strip():
        raise ParseError(f'{column} part: {template} of IME Rule: {rule} cannot be parsed', line_number)
    return tokens


def _pieces(token, rule, line_number):
    pieces = token[1:-1].split('/')
    if len(pieces) > 2:
        raise ParseError(f'Unable to parse component: {token} of rule: {rule}', line_number)
    return pieces


def _reverse_mappings(mappings):
    """Swap scheme and script so the reverse tries read script text backwards.

    Per type, script text is first mapped back to the last key declaring it,
    so that a key overridden by a later one with the same script disappears.
    """
    reverse = {}
    for mapping_type, values in mappings.items():
        script_to_key = OrderedMap()
        for key, (schemes, script) in values.items():
            if not script or not schemes:
                continue
            script_to_key[script] = key
        reverse_values = OrderedMap()
        for script, key in script_to_key.items():
            schemes = values[key][0]
            reverse_values[key] = ([script[::-1]], schemes[0][::-1])
        reverse[mapping_type] = reverse_values
    return reverse


class Rules:
    """Mapping trie and rule trie for one (scheme, script) pair.

    mappings is type -> key -> (list of scheme spellings, script text or None)
    with keys in declaration order; rules is an iterable of rule lines.
    """

    def __init__(self, rules, mappings, is_reverse=False):
        self.is_reverse = is_reverse
        self.mappings = mappings
        self.mapping_trie = Trie()
        self.rule_trie = Trie()

        walked = _reverse_mappings(mappings) if is_reverse else mappings
        for mapping_type, values in walked.items():
            for key, (schemes, script) in values.items():
                for spelling in schemes:
                    if not spelling:
                        continue
                    self.mapping_trie.setdefault(spelling, []).append(MappingOutput(mapping_type, key, script))

        rule_count = 0
        for line_number, rule in enumerate(rules, 1):
            if not rule.strip():
                continue
            columns = rule.split('\t')
            if len(columns) != 2:
                raise ParseError(f'IME Rule not two column TSV: {rule}', line_number)
            if is_reverse:
                inputs, output = self._parse_reverse(columns, rule, line_number)
            else:
                inputs, output = self._parse_forward(columns, rule, line_number)
            self.rule_trie[inputs] = output
            rule_count += 1

        direction = 'reverse' if is_reverse else 'forward'
        logger.info(f'Built {direction} rules: {len(self.mapping_trie)} mapping entries, '
                    f'{rule_count} rules ({self.rule_trie.node_count} rule trie nodes)')

    def _lookup(self, pieces, token, rule, line_number):
        values = self.mappings.get(pieces[0])
        if values is None or pieces[1] not in values:
            raise ParseError(f'Cannot find mapping for {token} in rule: {rule}', line_number)
        return values[pieces[1]]

    def _parse_forward(self, columns, rule, line_number):
        inputs = []
        for token in _tokens(columns[0], rule, line_number, 'Input'):
            pieces = _pieces(token, rule, line_number)
            inputs.append(RuleInput(*pieces))

        parts = []
        for token in _tokens(columns[1], rule, line_number, 'Output'):
            pieces = _pieces(token, rule, line_number)
            if len(pieces) == 1:
                parts.append((PLACEHOLDER, pieces[0]))
                continue
            schemes, script = self._lookup(pieces, token, rule, line_number)
            if token.startswith('{'):
                if not schemes:
                    raise ParseError(f'Mapping for {token} has no scheme in rule: {rule}', line_number)
                parts.append((FIXED, schemes[0]))
            else:
                if script is None:
                    raise ParseError(f'Mapping for {token} has no script in rule: {rule}', line_number)
                parts.append((FIXED, script))
        return tuple(inputs), RuleOutput(parts)

    def _parse_reverse(self, columns, rule, line_number):
        inputs = []
        for token in reversed(_tokens(columns[1], rule, line_number, 'Output')):
            pieces = _pieces(token, rule, line_number)
            inputs.append(RuleInput(*pieces))

        parts = []
        for token in reversed(_tokens(columns[0], rule, line_number, 'Input')):
            pieces = _pieces(token, rule, line_number)
            if len(pieces) == 1:
                parts.append((PLACEHOLDER, pieces[0]))
                continue
            schemes, _ = self._lookup(pieces, token, rule, line_number)
            if not schemes:
                raise ParseError(f'Mapping for {token} has no scheme in rule: {rule}', line_number)
            parts.append((FIXED, schemes[0][::-1]))
        return tuple(inputs), RuleOutput(parts)
