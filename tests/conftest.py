#!/usr/bin/env python3
# tests/conftest.py - Shared fixtures: a small Hindi mapping and its engines

import os
import sys

import pytest

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from engine import Engine
from ordered_map import OrderedMap
from rules import Rules
from transliterator import Transliterator


def _table(*entries):
    table = OrderedMap()
    for key, spellings, script in entries:
        table[key] = (list(spellings), script)
    return table


HINDI_MAPPINGS = {
    'CONSONANT': _table(
        ('KA', ['k'], 'क'),
        ('KHA', ['kh'], 'ख'),
        ('GA', ['g'], 'ग'),
        ('TA', ['t'], 'त'),
        ('NA', ['n'], 'न'),
        ('PA', ['p'], 'प'),
        ('MA', ['m'], 'म'),
        ('YA', ['y'], 'य'),
        ('RA', ['r'], 'र'),
        ('LA', ['l'], 'ल'),
        ('SA', ['s'], 'स'),
        ('HA', ['h'], 'ह'),
    ),
    'VOWEL': _table(
        ('A', ['a'], 'अ'),
        ('AA', ['aa', 'A'], 'आ'),
        ('I', ['i'], 'इ'),
        ('II', ['ii', 'I'], 'ई'),
        ('U', ['u'], 'उ'),
        ('UU', ['uu', 'U'], 'ऊ'),
        ('E', ['e'], 'ए'),
        ('AI', ['ai'], 'ऐ'),
        ('O', ['o'], 'ओ'),
        ('AU', ['au'], 'औ'),
        ('VOCALIC_L', ['.lu'], 'ऌ'),
    ),
    'DEPENDENT': _table(
        ('A', ['a'], None),
        ('AA', ['aa', 'A'], 'ा'),
        ('I', ['i'], 'ि'),
        ('II', ['ii', 'I'], 'ी'),
        ('U', ['u'], 'ु'),
        ('UU', ['uu', 'U'], 'ू'),
        ('E', ['e'], 'े'),
        ('AI', ['ai'], 'ै'),
        ('O', ['o'], 'ो'),
        ('AU', ['au'], 'ौ'),
        ('VOCALIC_L', ['.lu'], 'ॢ'),
    ),
    'SIGN': _table(
        ('HALANT', ['~'], '्'),
        ('NUKTA', ['Z'], '़'),
    ),
}

HINDI_RULES = [
    '[CONSONANT]\t[CONSONANT]',
    '[CONSONANT][CONSONANT]\t[CONSONANT][SIGN/HALANT][CONSONANT]',
    '[CONSONANT][DEPENDENT]\t[CONSONANT][DEPENDENT]',
    '[CONSONANT][CONSONANT][DEPENDENT]\t[CONSONANT][SIGN/HALANT][CONSONANT][DEPENDENT]',
    '[CONSONANT][CONSONANT][SIGN/NUKTA][DEPENDENT]\t[CONSONANT][SIGN/HALANT][CONSONANT][SIGN/NUKTA][DEPENDENT]',
    '[VOWEL]\t[VOWEL]',
]


@pytest.fixture
def hindi_mappings():
    """Hindi mapping table: type -> key -> (spellings, script)"""
    return HINDI_MAPPINGS


@pytest.fixture
def hindi_rules():
    """Hindi composition rules"""
    return list(HINDI_RULES)


@pytest.fixture
def engine():
    """Forward engine over the Hindi mapping"""
    return Engine(Rules(HINDI_RULES, HINDI_MAPPINGS))


@pytest.fixture
def reverse_engine():
    """Reverse engine over the Hindi mapping"""
    return Engine(Rules(HINDI_RULES, HINDI_MAPPINGS, is_reverse=True))


@pytest.fixture
def transliterator(engine):
    """Transliterator with the default configuration"""
    return Transliterator(engine)
