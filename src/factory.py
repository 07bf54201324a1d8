#!/usr/bin/env python3
"""
factory.py - Building Rules, engines and literators from in-memory definitions

================================================================================
DEFINITIONS
================================================================================

Definitions are passed in as text, keyed by name:

    schemes  name -> three-column TSV    type  key  spellings
                                         CONSONANT  KA  k, q
    scripts  name -> three-column TSV    type  key  hex code points
                                         CONSONANT  KA  915
    rules    name -> rule lines

The rule text for a (scheme, script) pair is the one named
"<script>-<scheme>", or "Default" when there is none. Besides rules it may
hold override lines, applied in order as they are read:

    Scheme: Extra, Other     layer the named scheme texts on top
    Script: Extra            layer the named script texts on top
    Rule: Common             include the named rule text here

Later definitions of a (type, key) replace earlier ones and move behind them
(OrderedMap), so overrides win wherever order matters.

Mapping tables and rules can also be exchanged as one JSON bundle:

    {"mappings": {"CONSONANT": {"KA": [["k"], "क"]}},
     "rules": ["[CONSONANT]\\t[CONSONANT]"]}
================================================================================
"""

import logging
import re

import orjson

from custom_engine import CustomEngine
from custom_engine import parse_custom_mapping
from engine import Engine
from errors import InvalidSelectionError
from errors import ParseError
from ordered_map import OrderedMap
from rules import Rules
from transliterator import Anteliterator
from transliterator import Transliterator
from util import apply_logging_level
from util import get_config_data

logger = logging.getLogger(__name__)

SCHEME_OVERRIDE_PATTERN = re.compile(r'^\s*Scheme\s*:\s*(.+)\s*$')
SCRIPT_OVERRIDE_PATTERN = re.compile(r'^\s*Script\s*:\s*(.+)\s*$')
RULE_OVERRIDE_PATTERN = re.compile(r'^\s*Rule\s*:\s*(.+)\s*$')

DEFAULT_RULE_NAME = 'Default'


def _split_list(value):
    return [item.strip() for item in value.split(',')]


def parse_three_column_tsv(text, mapping=None, source='<string>'):
    '''
    Parse "type<TAB>key<TAB>value" lines into type -> OrderedMap(key -> value).

    Lines are layered onto mapping when one is given. Blank lines and lines
    starting with "//" are skipped, and so are lines that do not have exactly
    three non-empty columns (with a warning).
    '''
    if mapping is None:
        mapping = {}
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith('//'):
            continue
        columns = [column.strip() for column in line.split('\t')]
        if len(columns) != 3 or not all(columns):
            logger.warning(f'Ignoring unparsable line: {line} in {source}')
            continue
        mapping_type, key, value = columns
        if mapping_type not in mapping:
            mapping[mapping_type] = OrderedMap()
        mapping[mapping_type][key] = value
    return mapping


def _decode_code_points(value, mapping_type, key):
    try:
        return ''.join(chr(int(code_point, 16)) for code_point in _split_list(value))
    except ValueError:
        raise ParseError(f'Invalid code points "{value}" for {mapping_type}/{key}') from None


class EngineFactory:
    '''
    Builds Rules and Engines for (scheme, script) pairs from named texts.
    '''

    def __init__(self, schemes=None, scripts=None, rules=None):
        self.schemes = dict(schemes or {})
        self.scripts = dict(scripts or {})
        self.rule_texts = dict(rules or {})

    def available_schemes(self):
        return sorted(self.schemes)

    def available_scripts(self):
        return sorted(self.scripts)

    def _rule_name(self, scheme_name, script_name):
        specific = f'{script_name}-{scheme_name}'
        if specific in self.rule_texts:
            return specific
        return DEFAULT_RULE_NAME

    def _text(self, texts, name, kind):
        if name not in texts:
            raise InvalidSelectionError(f'{kind}: {name} is not available')
        return texts[name]

    def _parse_rule_text(self, rule_name, scheme_map, script_map, including=()):
        """Returns (rule, (rule_name, line_number)) entries in inclusion order."""
        if rule_name in including:
            raise ParseError(f'Rule: {rule_name} includes itself')
        text = self._text(self.rule_texts, rule_name, 'Rule')
        entries = []
        for line_number, line in enumerate(text.splitlines(), 1):
            if not line.strip():
                continue
            scheme_override = SCHEME_OVERRIDE_PATTERN.match(line)
            script_override = SCRIPT_OVERRIDE_PATTERN.match(line)
            rule_override = RULE_OVERRIDE_PATTERN.match(line)
            if scheme_override:
                for name in _split_list(scheme_override.group(1)):
                    parse_three_column_tsv(self._text(self.schemes, name, 'Scheme'), scheme_map, f'scheme {name}')
            elif script_override:
                for name in _split_list(script_override.group(1)):
                    parse_three_column_tsv(self._text(self.scripts, name, 'Script'), script_map, f'script {name}')
            elif rule_override:
                for name in _split_list(rule_override.group(1)):
                    entries.extend(self._parse_rule_text(name, scheme_map, script_map, including + (rule_name,)))
            else:
                entries.append((line, (rule_name, line_number)))
        return entries

    def _parse(self, scheme_name, script_name):
        if scheme_name not in self.schemes or script_name not in self.scripts:
            raise InvalidSelectionError(f'Scheme: {scheme_name} and Script: {script_name} are invalid')
        scheme_map = parse_three_column_tsv(self.schemes[scheme_name], source=f'scheme {scheme_name}')
        script_map = parse_three_column_tsv(self.scripts[script_name], source=f'script {script_name}')
        entries = self._parse_rule_text(self._rule_name(scheme_name, script_name), scheme_map, script_map)

        mappings = {}
        for mapping_type, keys in scheme_map.items():
            values = OrderedMap()
            for key, spellings in keys.items():
                script = script_map.get(mapping_type, {}).get(key)
                if script is not None:
                    script = _decode_code_points(script, mapping_type, key)
                values[key] = (_split_list(spellings), script)
            mappings[mapping_type] = values
        logger.info(f'Parsed {scheme_name}/{script_name}: {len(entries)} rules, '
                    f'{sum(len(values) for values in mappings.values())} mappings')
        return entries, mappings

    def parse(self, scheme_name, script_name):
        '''
        Returns:
            tuple: (rules, mappings) where mappings is
            type -> OrderedMap(key -> (list of scheme spellings, script text or None))
        '''
        entries, mappings = self._parse(scheme_name, script_name)
        return [rule for rule, _ in entries], mappings

    def rules(self, scheme_name, script_name, is_reverse=False):
        '''
        Build Rules; a ParseError carries the line number within the named rule text.
        '''
        entries, mappings = self._parse(scheme_name, script_name)
        try:
            return Rules([rule for rule, _ in entries], mappings, is_reverse=is_reverse)
        except ParseError as e:
            if e.line_number is None:
                raise
            rule_name, line_number = entries[e.line_number - 1][1]
            raise ParseError(f'Rule: {rule_name}: {e.message}', line_number) from e

    def engine(self, scheme_name, script_name):
        return Engine(self.rules(scheme_name, script_name))

    def reverse_engine(self, scheme_name, script_name):
        return Engine(self.rules(scheme_name, script_name, is_reverse=True))


def load_mapping_bundle(data):
    '''
    Decode a JSON mapping bundle (str or bytes).

    Returns:
        tuple: (rules, mappings) in the shape Rules() accepts
    '''
    try:
        bundle = orjson.loads(data)
    except orjson.JSONDecodeError as e:
        logger.error(f'Failed to parse mapping bundle JSON - {e}')
        raise ParseError(f'Invalid mapping bundle JSON: {e}') from e
    if not isinstance(bundle, dict):
        raise ParseError('Mapping bundle has to be a JSON object')

    rules = bundle.get('rules', [])
    if not isinstance(rules, list) or not all(isinstance(rule, str) for rule in rules):
        raise ParseError('"rules" of a mapping bundle has to be a list of strings')

    raw_mappings = bundle.get('mappings', {})
    if not isinstance(raw_mappings, dict):
        raise ParseError('"mappings" of a mapping bundle has to be an object')
    mappings = {}
    for mapping_type, keys in raw_mappings.items():
        if not isinstance(keys, dict):
            raise ParseError(f'Mappings of type {mapping_type} have to be an object')
        values = OrderedMap()
        for key, value in keys.items():
            if not isinstance(value, list) or len(value) != 2:
                raise ParseError(f'Mapping {mapping_type}/{key} has to be [[spellings], script]')
            spellings, script = value
            if not isinstance(spellings, list) or not all(isinstance(s, str) for s in spellings):
                raise ParseError(f'Spellings of {mapping_type}/{key} have to be a list of strings')
            if script is not None and not isinstance(script, str):
                raise ParseError(f'Script of {mapping_type}/{key} has to be a string or null')
            values[key] = (spellings, script)
        mappings[mapping_type] = values
    return rules, mappings


def dump_mapping_bundle(rules, mappings):
    bundle = {
        'mappings': {
            mapping_type: {key: [list(spellings), script] for key, (spellings, script) in values.items()}
            for mapping_type, values in mappings.items()
        },
        'rules': list(rules),
    }
    return orjson.dumps(bundle)


class CustomFactory:
    '''
    Builds CustomEngines from named custom mapping texts.
    '''

    def __init__(self, custom_mappings=None):
        self.custom_mappings = dict(custom_mappings or {})

    def available_custom_mappings(self):
        return sorted(self.custom_mappings)

    def custom_mapping(self, name, is_reverse=False):
        if name not in self.custom_mappings:
            raise InvalidSelectionError(f'Custom mapping: {name} is not available')
        return parse_custom_mapping(self.custom_mappings[name], is_reverse=is_reverse)

    def custom_engine(self, name, is_reverse=False):
        return CustomEngine(self.custom_mapping(name, is_reverse).trie)


class LiteratorFactory:
    '''
    Entry point: hands out Transliterators and Anteliterators.

    config is validated with util.get_config_data(); the repairs it made are
    kept in config_warnings.
    '''

    def __init__(self, config=None, engine_factory=None, custom_factory=None):
        self.config, self.config_warnings = get_config_data(config)
        apply_logging_level(self.config)
        self.engine_factory = engine_factory if engine_factory is not None else EngineFactory()
        self.custom_factory = custom_factory if custom_factory is not None else CustomFactory()

    def available_schemes(self):
        return self.engine_factory.available_schemes()

    def available_scripts(self):
        return self.engine_factory.available_scripts()

    def available_custom_mappings(self):
        return self.custom_factory.available_custom_mappings()

    def transliterator(self, scheme_name, script_name):
        return Transliterator(self.engine_factory.engine(scheme_name, script_name), self.config)

    def anteliterator(self, scheme_name, script_name):
        forward = Engine(self.engine_factory.rules(scheme_name, script_name))
        reverse = Engine(self.engine_factory.rules(scheme_name, script_name, is_reverse=True))
        return Anteliterator(forward, reverse, self.config)

    def _custom_config(self, custom_mapping):
        config = dict(self.config)
        config['stop_character'] = custom_mapping.stop_char
        if config['escape_character'] == custom_mapping.stop_char:
            logger.warning(f'Custom mapping {custom_mapping.name!r} uses the escape character as stop-char')
        return config

    def custom_transliterator(self, name):
        custom_mapping = self.custom_factory.custom_mapping(name)
        return Transliterator(CustomEngine(custom_mapping.trie), self._custom_config(custom_mapping))

    def custom_anteliterator(self, name):
        forward = self.custom_factory.custom_mapping(name)
        reverse = self.custom_factory.custom_mapping(name, is_reverse=True)
        return Anteliterator(CustomEngine(forward.trie), CustomEngine(reverse.trie), self._custom_config(forward))
