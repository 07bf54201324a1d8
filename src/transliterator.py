#!/usr/bin/env python3
"""
transliterator.py - Aggregation of engine Results into finalized/unfinalized text

================================================================================
THE BUFFER
================================================================================

Engines emit a stream of Result records. The aggregators here keep them in a
buffer split by a finalized index:

    buffer:   [ R0 ][ R1 ][ R2 ] | [ R3 ][ R4 ]
                   finalized     ^    unfinalized
                          finalized_index

handle_results() applies each new Result:

    is_previous_final          everything already buffered becomes finalized
    not final, not appendage   the unfinalized region is replaced
    appendage                  the Result is added to the unfinalized region

Transliterator feeds scheme text into an engine and exposes the collapsed
buffer as a Literated tuple. Anteliterator runs the reverse direction.

================================================================================
STOP AND ESCAPE CHARACTERS
================================================================================

The engine never sees these two characters:

    stop (default "\\")      ends the current composition; typed twice it
                             produces a literal stop character
    escape (default "`")     toggles literal pass-through for everything up
                             to the next escape; typed twice it produces a
                             literal escape character
================================================================================
"""

import functools
import logging
import threading
from collections import namedtuple

from engine import Result
from engine import identity
from util import get_default_config_data

logger = logging.getLogger(__name__)

Literated = namedtuple('Literated', [
    'finalized_input',
    'finalized_output',
    'unfinalized_input',
    'unfinalized_output',
])


def handle_results(raw_results, buffer, finalized_index):
    """Apply Results to buffer in place; returns the new finalized index."""
    for result in raw_results:
        if result.is_previous_final:
            finalized_index = len(buffer)
        elif not result.is_appendage:
            del buffer[finalized_index:]
        buffer.append(result)
    return finalized_index


def collapse(buffer, finalized_index):
    finalized = buffer[:finalized_index]
    unfinalized = buffer[finalized_index:]
    return Literated(
        ''.join(result.input for result in finalized),
        ''.join(result.output for result in finalized),
        ''.join(result.input for result in unfinalized),
        ''.join(result.output for result in unfinalized),
    )


class Transliterator:
    '''
    Stateful aggregator of scheme input into script output.

    Input given to transliterate() accumulates across calls until reset().
    '''

    def __init__(self, engine, config=None):
        self.engine = engine
        self.config = config if config is not None else get_default_config_data()
        self.stop_character = self.config['stop_character']
        self.escape_character = self.config['escape_character']
        self._buffer = []
        self._finalized_index = 0
        self._was_stop = False
        self._is_escaped = False
        self._escape_just_opened = False

    def _handle(self, raw_results):
        self._finalized_index = handle_results(raw_results, self._buffer, self._finalized_index)

    def _feed(self, text):
        for char in text:
            if self._is_escaped:
                self._feed_escaped(char)
            elif char == self.escape_character:
                self.engine.reset()
                self._handle([Result(char, '', True)])
                self._is_escaped = True
                self._escape_just_opened = True
                self._was_stop = False
            elif char == self.stop_character:
                self.engine.reset()
                # Only a doubled stop character is output
                output = char if self._was_stop else ''
                self._handle([Result(char, output, True)])
                self._was_stop = not self._was_stop
            else:
                self._handle(self.engine.execute(char))
                self._was_stop = False

    def _feed_escaped(self, char):
        if char == self.escape_character:
            output = char if self._escape_just_opened else ''
            self._handle([Result(char, output, True)])
            self._is_escaped = False
        else:
            self._handle([identity(char, True)])
        self._escape_just_opened = False
        self._was_stop = False

    def collapse(self):
        return collapse(self._buffer, self._finalized_index)

    def transliterate(self, text):
        '''
        Add text to the aggregated input and return the aggregated output.

        Returns:
            Literated: (finalized_input, finalized_output, unfinalized_input, unfinalized_output)
        '''
        self._feed(text)
        return self.collapse()

    def transliterate_results(self, text):
        '''
        Same as transliterate() but returns a copy of the raw Result buffer.
        '''
        self._feed(text)
        return list(self._buffer)

    def delete(self):
        '''
        Delete the last input character of the unfinalized region.

        Returns:
            tuple: (unfinalized_input, unfinalized_output, was_handled) where
            was_handled is False when there was nothing unfinalized to delete
        '''
        region = self._buffer[self._finalized_index:]
        if not region:
            return '', '', False
        text = ''.join(result.input for result in region)
        del self._buffer[self._finalized_index:]
        self.engine.reset()
        if text[-1] == self.escape_character:
            self._is_escaped = not self._is_escaped
        self._escape_just_opened = False
        self._was_stop = False
        logger.debug(f'delete(): re-feeding {text[:-1]!r}')
        self._feed(text[:-1])
        literated = self.collapse()
        return literated.unfinalized_input, literated.unfinalized_output, True

    def reset(self):
        '''
        Clear all state and return what was aggregated before clearing.
        '''
        self.engine.reset()
        literated = self.collapse()
        self._buffer = []
        self._finalized_index = 0
        self._was_stop = False
        self._is_escaped = False
        self._escape_just_opened = False
        return literated


class Anteliterator:
    '''
    Reverse transliteration of script text into scheme text.

    Unlike Transliterator, nothing accumulates: every anteliterate() call
    takes the whole script text.
    '''

    def __init__(self, forward_engine, reverse_engine, config=None):
        self.config = config if config is not None else get_default_config_data()
        self.stop_character = self.config['stop_character']
        self.escape_character = self.config['escape_character']
        self.reverse_engine = reverse_engine
        self._verifier = Transliterator(forward_engine, self.config)

    def _chunks(self, script_text):
        """(script, scheme) pairs in reading order."""
        self.reverse_engine.reset()
        buffer = []
        handle_results(self.reverse_engine.execute(script_text[::-1]), buffer, 0)
        self.reverse_engine.reset()
        return [(result.input[::-1], result.output[::-1]) for result in reversed(buffer)]

    def _escape(self, scheme):
        escaped = []
        for char in scheme:
            if char in (self.stop_character, self.escape_character):
                escaped.append(char)
            escaped.append(char)
        return ''.join(escaped)

    def _literal(self, script):
        """Scheme text that reproduces script verbatim through escaped sections."""
        literal = []
        for index, segment in enumerate(script.split(self.escape_character)):
            if index:
                literal.append(self.escape_character * 2)
            if segment:
                literal.append(f'{self.escape_character}{segment}{self.escape_character}')
        return ''.join(literal)

    def _compose(self, scheme_text):
        self._verifier.reset()
        literated = self._verifier.transliterate(scheme_text)
        self._verifier.reset()
        return literated.finalized_output + literated.unfinalized_output

    def anteliterate(self, script_text):
        '''
        Returns the scheme text that transliterates back into script_text.
        '''
        output = ''
        consumed = ''
        for script, scheme in self._chunks(script_text):
            if not script:
                continue
            consumed += script
            scheme = self._escape(scheme)
            if self._compose(output + scheme) == consumed:
                output += scheme
                continue
            separated = output + self.stop_character + scheme
            if self._compose(separated) == consumed:
                output = separated
                continue
            literal = self._literal(script)
            logger.debug(f'Escaping {script!r}: {scheme!r} does not compose back')
            if self._compose(output + literal) != consumed:
                logger.warning(f'Unable to verify anteliteration of {script!r} as {literal!r}')
            output += literal
        return output


class SynchronizedLiterator:
    '''
    Wraps a Transliterator or Anteliterator so that every method call holds
    a lock; use this when one instance is shared between threads.
    '''

    def __init__(self, literator):
        self._literator = literator
        self._lock = threading.Lock()

    def __getattr__(self, name):
        attribute = getattr(self._literator, name)
        if not callable(attribute):
            return attribute

        @functools.wraps(attribute)
        def locked(*args, **kwargs):
            with self._lock:
                return attribute(*args, **kwargs)
        return locked
