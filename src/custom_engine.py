#!/usr/bin/env python3
"""
custom_engine.py - Single-level engine for custom mappings

A custom mapping is a flat table of input sequences to output text, with no
semantic tokens and no rules in between. CustomEngine walks one Trie and
honours the same execute()/reset() contract and Result stream as Engine.

The mapping is written in a small line-oriented language:

    name: Sanskrit shortcuts
    version: 1.0
    stop-char: \\
    using classes

    class VOWEL {
    a    अ
    i    इ
    }

    k{VOWEL}    क*
    om    ॐ

The header section ends at the first line that is neither "key: value" nor
"using classes". A class is referenced as pre{CLASS}post on the input side
and expands to one mapping per member; when the output holds the wildcard
("*" by default) the member's value is substituted for it.
"""

import logging
import re
from collections import namedtuple

from engine import Result
from engine import identity
from errors import ParseError
from trie import Trie
from trie_walker import MAPPED_NO_OUTPUT
from trie_walker import MAPPED_OUTPUT
from trie_walker import TrieWalker

logger = logging.getLogger(__name__)

HEADER_PATTERN = re.compile(r'^\s*(.*\S)\s*:\s*(.*\S)\s*$')
USING_CLASSES_PATTERN = re.compile(r'^\s*using\s+classes\s*$')
CLASS_DELIMITERS_PATTERN = re.compile(r'^\s*(\S)\s*(\S)\s*$')
SIMPLE_MAPPING_PATTERN = re.compile(r'^\s*(\S+)\s+(\S+)\s*$')

CustomMapping = namedtuple('CustomMapping', ['name', 'version', 'stop_char', 'trie'])


class CustomEngine:
    """Longest-match engine over a single Trie of input sequences to output text."""

    def __init__(self, trie):
        self.trie = trie
        self._walker = TrieWalker(trie)
        self._epoch = None
        # (epoch, input, output) of the most recent mapped output
        self._last_match = None
        self._dangling = False

    def reset(self):
        self._walker.reset()
        self._epoch = None
        self._last_match = None
        self._dangling = False

    def execute(self, inputs):
        results = []
        for symbol in inputs:
            for walker_result in self._walker.walk(symbol):
                results.extend(self._handle(walker_result))
        return results

    def _handle(self, walker_result):
        results = []
        inputs = ''.join(walker_result.inputs)
        is_new_epoch = walker_result.epoch != self._epoch

        # The raw tail shown after the last match is about to be replayed
        if self._dangling and is_new_epoch and self._last_match is not None \
                and self._last_match[0] == self._epoch:
            _, match_input, match_output = self._last_match
            results.append(Result(match_input, match_output, False, False))
        self._dangling = False

        if walker_result.type == MAPPED_OUTPUT:
            self._epoch = walker_result.epoch
            self._last_match = (walker_result.epoch, inputs, walker_result.output)
            results.append(Result(inputs, walker_result.output, is_new_epoch, False))
        elif walker_result.type == MAPPED_NO_OUTPUT:
            self._epoch = walker_result.epoch
            self._dangling = True
            output = inputs
            if self._last_match is not None and self._last_match[0] == walker_result.epoch:
                _, match_input, match_output = self._last_match
                output = match_output + inputs[len(match_input):]
            results.append(Result(inputs, output, is_new_epoch, False))
        else:
            self._epoch = None
            self._last_match = None
            results.append(identity(inputs, True))
        return results


class _CustomMappingParser:

    def __init__(self, is_reverse):
        self.is_reverse = is_reverse
        self.name = None
        self.version = None
        self.stop_char = '\\'
        self.using_classes = False
        self.class_start = '{'
        self.class_end = '}'
        self.wildcard = '*'
        self.trie = Trie()
        # Class name -> member input -> member output
        self.classes = {}
        self.current_class = None
        self.class_definition_pattern = None
        self.class_key_pattern = None
        self.wildcard_value_pattern = None

    def parse_header(self, line, line_number):
        """Returns True once the line is no longer a header line."""
        match = HEADER_PATTERN.match(line)
        if match:
            key, value = match.group(1), match.group(2)
            key = key.lower()
            if key == 'version':
                try:
                    self.version = float(value)
                except ValueError:
                    raise ParseError('version has to be a number', line_number) from None
            elif key == 'name':
                self.name = value
            elif key == 'stop-char':
                if len(value) != 1:
                    raise ParseError('stop-char needs to be a single character', line_number)
                self.stop_char = value
            elif key == 'wildcard':
                if len(value) != 1:
                    raise ParseError('wildcard needs to be a single character', line_number)
                self.wildcard = value
            elif key == 'class-delimiters':
                delimiters = CLASS_DELIMITERS_PATTERN.match(value)
                if not delimiters:
                    raise ParseError(f'Invalid class delimiter values: {value}', line_number)
                self.class_start, self.class_end = delimiters.group(1), delimiters.group(2)
            else:
                raise ParseError(f'Invalid header key: {key}', line_number)
            return False
        if USING_CLASSES_PATTERN.match(line):
            self.using_classes = True
            return False

        start = re.escape(self.class_start)
        end = re.escape(self.class_end)
        self.class_definition_pattern = re.compile(rf'^\s*class\s+(\S+)\s+{start}\s*$')
        self.class_key_pattern = re.compile(rf'^\s*(\S*){start}(\S+){end}(\S*)\s*$')
        self.wildcard_value_pattern = re.compile(rf'^\s*(\S*){re.escape(self.wildcard)}(\S*)\s*$')
        return True

    def add(self, input_text, output_text):
        if self.is_reverse:
            self.trie[output_text[::-1]] = input_text[::-1]
        else:
            self.trie[input_text] = output_text

    def parse_mapping(self, line, line_number):
        mapping = SIMPLE_MAPPING_PATTERN.match(line)
        if mapping:
            input_text, output_text = mapping.group(1), mapping.group(2)
            class_key = self.class_key_pattern.match(input_text)
            if class_key:
                self._expand_class(class_key, output_text, line_number)
            elif self.current_class is not None:
                self.classes[self.current_class][input_text] = output_text
            else:
                self.add(input_text, output_text)
            return

        definition = self.class_definition_pattern.match(line)
        if definition:
            class_name = definition.group(1)
            if not self.using_classes:
                raise ParseError(f'Header does not specify using classes but class: {class_name} encountered', line_number)
            if self.current_class is not None:
                raise ParseError(f'Class definition for class: {self.current_class} not closed '
                                 f'but new definition for class: {class_name} opened', line_number)
            self.current_class = class_name
            self.classes[class_name] = {}
            return

        if line.strip() == self.class_end:
            if self.current_class is None:
                raise ParseError('Closing a class definition that was never opened', line_number)
            if not self.using_classes:
                raise ParseError('Header does not specify using classes but class close encountered', line_number)
            self.current_class = None
            return

        raise ParseError(f'Malformed mapping: {line}', line_number)

    def _expand_class(self, class_key, output_text, line_number):
        pre_class, class_name, post_class = class_key.group(1), class_key.group(2), class_key.group(3)
        if not self.using_classes:
            raise ParseError(f'Header does not specify using classes but class: {class_name} encountered', line_number)
        if class_name == self.current_class:
            raise ParseError(f'Attempting to use class: {class_name} before its definition was closed', line_number)
        members = self.classes.get(class_name)
        if members is None:
            raise ParseError(f'Class name: {class_name} is undefined', line_number)
        wildcard = self.wildcard_value_pattern.match(output_text)
        for member_input, member_output in members.items():
            expanded = f'{pre_class}{member_input}{post_class}'
            if wildcard:
                self.add(expanded, f'{wildcard.group(1)}{member_output}{wildcard.group(2)}')
            else:
                self.add(expanded, output_text)


def parse_custom_mapping(text, is_reverse=False):
    """Parse a custom mapping definition into a CustomMapping."""
    parser = _CustomMappingParser(is_reverse)
    done_parsing_headers = False
    for line_number, line in enumerate(text.splitlines(), 1):
        if not line.strip():
            continue
        if not done_parsing_headers:
            done_parsing_headers = parser.parse_header(line, line_number)
        if done_parsing_headers:
            parser.parse_mapping(line, line_number)
    if parser.current_class is not None:
        logger.warning(f'Class definition for class: {parser.current_class} was never closed')
    logger.info(f'Parsed custom mapping {parser.name!r}: {len(parser.trie)} mappings')
    return CustomMapping(parser.name, parser.version, parser.stop_char, parser.trie)
