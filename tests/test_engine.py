#!/usr/bin/env python3
# tests/test_engine.py - Unit tests for engine.py

import pytest
import os
import sys

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from engine import (
    Engine,
    EpochEvent,
    EpochState,
    Result,
    REVISIONS,
    KEEP,
    ABANDON,
    REPLAY,
)
from ordered_map import OrderedMap
from rules import Rules, MappingOutput, RuleInput
from trie_walker import MAPPED_OUTPUT, MAPPED_NO_OUTPUT


def _engine(rules, **tables):
    mappings = {}
    for mapping_type, entries in tables.items():
        mappings[mapping_type] = OrderedMap()
        for key, spellings, script in entries:
            mappings[mapping_type][key] = (spellings, script)
    return Engine(Rules(rules, mappings))


@pytest.fixture
def letters():
    """Keys a and abc, so that "ab" is a dangling prefix after a match"""
    return _engine(['[LETTER]\t[LETTER]'],
                   LETTER=[('A', ['a'], 'A'), ('ABC', ['abc'], 'ABC')])


class TestConsonantClusters:
    """Test suite for compositions that keep revising their own output"""

    def test_first_consonant_is_final(self, engine):
        """Test that the first Result of a session opens a new composition"""
        assert engine.execute('k') == [Result('k', 'क', True, False)]

    def test_cluster_replaces_previous_output(self, engine):
        """Test k, k, a, u revising one composition"""
        assert engine.execute('k') == [Result('k', 'क', True, False)]
        assert engine.execute('k') == [Result('kk', 'क्क', False, False)]
        assert engine.execute('a') == [Result('kka', 'क्क', False, False)]
        assert engine.execute('u') == [Result('kkau', 'क्कौ', False, False)]

    def test_sequence_is_concatenation_of_symbols(self, engine, hindi_rules, hindi_mappings):
        """Test that execute() of a string equals executing each character"""
        other = Engine(Rules(hindi_rules, hindi_mappings))
        expected = []
        for char in 'kkau':
            expected.extend(other.execute(char))

        assert engine.execute('kkau') == expected

    def test_dependent_vowel(self, engine):
        """Test a consonant followed by a dependent vowel sign"""
        assert engine.execute('k') == [Result('k', 'क', True, False)]
        assert engine.execute('u') == [Result('ku', 'कु', False, False)]

    def test_longer_spelling_steps_back(self, engine):
        """Test that "aa" supersedes the provisional "a" in the same composition"""
        assert engine.execute('m') == [Result('m', 'म', True, False)]
        assert engine.execute('a') == [Result('ma', 'म', False, False)]
        assert engine.execute('a') == [Result('maa', 'मा', False, False)]

    def test_unextendable_token_starts_new_composition(self, engine):
        """Test that a consonant after a completed syllable is final"""
        engine.execute('ma')
        assert engine.execute('r') == [Result('r', 'र', True, False)]

    def test_nukta_prefix_is_appendage(self, engine):
        """Test a rule prefix without a value, then its completion"""
        engine.execute('kk')
        assert engine.execute('Z') == [Result('Z', '़', False, True)]
        assert engine.execute('i') == [Result('kkZi', 'क्क़ि', False, False)]

    def test_independent_vowels(self, engine):
        """Test that a longer vowel spelling revises the shorter one"""
        assert engine.execute('a') == [Result('a', 'अ', True, False)]
        assert engine.execute('i') == [Result('ai', 'ऐ', False, False)]


class TestPassThrough:
    """Test suite for symbols without a mapping"""

    @pytest.mark.parametrize('symbol', ['(', ')', ',', ';', '7', ' '])
    def test_identity_is_final(self, engine, symbol):
        """Test that an unmapped symbol comes back unchanged and final"""
        assert engine.execute(symbol) == [Result(symbol, symbol, True, False)]

    def test_each_unmapped_symbol_is_independent(self, engine):
        """Test several unmapped symbols in a row"""
        assert engine.execute('(),') == [
            Result('(', '(', True, False),
            Result(')', ')', True, False),
            Result(',', ',', True, False),
        ]

    def test_unmapped_after_composition(self, engine):
        """Test that an unmapped symbol ends the composition"""
        engine.execute('ma')
        assert engine.execute(';') == [Result(';', ';', True, False)]

    def test_token_without_rule(self, engine):
        """Test a mapped token that no rule starts with"""
        assert engine.execute('~') == [Result('~', '~', True, False)]


class TestIncompleteSpellings:
    """Test suite for mapped-no-output prefixes and their revision"""

    def test_prefix_resolves_into_composition(self, engine):
        """Test k . l u composing into one Result"""
        assert engine.execute('k') == [Result('k', 'क', True, False)]
        assert engine.execute('.') == [Result('.', '.', False, True)]
        assert engine.execute('l') == [Result('l', 'l', False, True)]
        assert engine.execute('u') == [Result('k.lu', 'कॢ', False, False)]
        assert engine.execute('p') == [Result('p', 'प', True, False)]
        assert engine.execute('i') == [Result('pi', 'पि', False, False)]

    def test_prefix_at_start(self, engine):
        """Test that a fresh prefix is a final appendage"""
        assert engine.execute('.') == [Result('.', '.', True, True)]
        assert engine.execute('l') == [Result('l', 'l', False, True)]
        assert engine.execute('u') == [Result('.lu', 'ऌ', False, False)]

    def test_abandoned_prefix_becomes_literal(self, engine):
        """Test that a prefix which never completes is kept as literal text"""
        engine.execute('.l')
        assert engine.execute('n') == [
            Result('.l', '.l', False, False),
            Result('n', 'न', True, False),
        ]

    def test_abandoned_prefix_after_composition(self, engine):
        """Test that the composition before an abandoned prefix is restored and closed"""
        engine.execute('k.l')
        assert engine.execute('n') == [
            Result('k', 'क', False, False),
            Result('.l', '.l', True, False),
            Result('n', 'न', True, False),
        ]

    def test_mapped_symbol_after_bare_prefix(self, engine):
        """Test that a mapped symbol cutting a prefix short is still transliterated"""
        assert engine.execute('.') == [Result('.', '.', True, True)]
        assert engine.execute('k') == [
            Result('.', '.', False, False),
            Result('k', 'क', True, False),
        ]

    def test_unmapped_symbol_after_prefix(self, engine):
        """Test that a symbol unmapped everywhere still passes through after a prefix"""
        engine.execute('.')
        assert engine.execute('x') == [
            Result('.', '.', False, False),
            Result('x', 'x', True, False),
        ]

    def test_replayed_prefix_is_dropped_first(self, letters):
        """Test that a dangling prefix after a match is replayed, not lost"""
        assert letters.execute('a') == [Result('a', 'A', True, False)]
        assert letters.execute('b') == [Result('b', 'b', False, True)]
        assert letters.execute('x') == [
            Result('a', 'A', False, False),
            Result('b', 'b', True, False),
            Result('x', 'x', True, False),
        ]

    def test_prefix_completes_longer_match(self, letters):
        """Test that completing the longer spelling replaces the shorter match"""
        letters.execute('ab')
        assert letters.execute('c') == [Result('abc', 'ABC', False, False)]


class TestCandidateSelection:
    """Test suite for choosing among MappingOutput candidates"""

    def test_first_candidate_with_edge_wins(self):
        """Test that table order breaks ties between candidates"""
        engine = _engine(['[X]\t[X]', '[Y]\t[Y]'],
                         X=[('P', ['p'], 'x1')],
                         Y=[('P', ['p'], 'y1')])

        assert engine.execute('p') == [Result('p', 'x1', True, False)]

    def test_later_candidate_used_when_first_has_no_edge(self):
        """Test that a candidate without an onward edge is skipped"""
        engine = _engine(['[Y]\t[Y]'],
                         X=[('P', ['p'], 'x1')],
                         Y=[('P', ['p'], 'y1')])

        assert engine.execute('p') == [Result('p', 'y1', True, False)]

    def test_specific_edge_before_generic(self):
        """Test that a (type, key) rule beats the (type) rule"""
        engine = _engine(['[C]\t[C]', '[C/KA]\t[C/KA][C/KA]'],
                         C=[('KA', ['k'], 'क'), ('GA', ['g'], 'ग')])

        assert engine.execute('k') == [Result('k', 'कक', True, False)]
        assert engine.execute('g') == [Result('g', 'ग', True, False)]

    def test_positional_placeholders(self):
        """Test that N:TYPE inputs keep their fragments apart"""
        engine = _engine(['[1:C][2:C]\t[2:C][1:C]'],
                         C=[('KA', ['k'], 'क'), ('TA', ['t'], 'त')])

        assert engine.execute('k') == [Result('k', 'क', True, True)]
        assert engine.execute('t') == [Result('kt', 'तक', False, False)]


class TestReset:
    """Test suite for reset()"""

    def test_reset_twice_is_harmless(self, engine):
        """Test that resetting a fresh engine twice leaves it usable"""
        assert engine.reset() is None
        assert engine.reset() is None
        assert engine.execute('k') == [Result('k', 'क', True, False)]

    @pytest.mark.parametrize('typed', ['k.', 'kk', 'k.l', '.'])
    def test_reset_twice_after_partial_composition(self, engine, typed):
        """Test that both walkers are back at the root after resetting a partial composition"""
        engine.execute(typed)
        engine.reset()
        engine.reset()

        assert engine._mapping_walker.is_at_root
        assert engine._rule_walker.is_at_root
        assert len(engine.state) == 0
        assert engine.execute('k') == [Result('k', 'क', True, False)]

    def test_reset_starts_new_composition(self, engine):
        """Test that reset() discards the open composition"""
        engine.execute('k')
        engine.reset()

        assert len(engine.state) == 0
        assert engine.execute('k') == [Result('k', 'क', True, False)]

    def test_reverse_engine(self, reverse_engine):
        """Test that the reverse engine reads reversed script text"""
        assert reverse_engine.execute('य') == [Result('य', 'y', True, False)]


class TestRevisionTable:
    """Test suite for the revision table"""

    def test_every_combination_is_covered(self):
        """Test that the table is total over its three flags"""
        assert len(REVISIONS) == 8

    def test_entries(self):
        """Test the decisions for a dangling prefix"""
        assert REVISIONS[(False, False, True)] == KEEP
        assert REVISIONS[(True, False, False)] == ABANDON
        assert REVISIONS[(False, True, False)] == ABANDON
        assert REVISIONS[(True, True, True)] == REPLAY
        assert REVISIONS[(False, True, True)] == REPLAY


class TestEpochState:
    """Test suite for EpochState bookkeeping"""

    @pytest.fixture
    def state(self):
        state = EpochState()
        state.add(EpochEvent(0, MAPPED_OUTPUT, 'a', MappingOutput('LETTER', 'A', 'A'),
                             0, MAPPED_OUTPUT, (RuleInput('LETTER'),), None))
        state.add(EpochEvent(0, MAPPED_NO_OUTPUT, 'ab', None, 0, None, None, None))
        return state

    def test_rule_epoch_tracking(self, state):
        """Test that only a different rule epoch counts as new"""
        assert not state.is_new_rule_epoch(0)
        assert state.is_new_rule_epoch(1)

    def test_dangling_prefix(self, state):
        """Test the raw input after the last token of the epoch"""
        assert state.dangling_prefix() == 'b'

    def test_truncate_dangling(self, state):
        """Test dropping trailing incomplete spellings"""
        removed = state.truncate_dangling()

        assert [event.mapping_input for event in removed] == ['ab']
        assert len(state) == 1

    def test_discard_epoch(self, state):
        """Test that discarding reports what was there"""
        assert state.discard_epoch(0) == (True, True)
        assert len(state) == 0
        assert state.discard_epoch(0) == (False, False)
        # The rule epoch survives a discard
        assert not state.is_new_rule_epoch(0)

    def test_reset_clears_rule_epoch(self, state):
        """Test that after reset() any rule epoch is new"""
        state.reset()

        assert state.is_new_rule_epoch(0)
        assert state.composition() is None
