#!/usr/bin/env python3
"""
engine.py - Tandem walk over the mapping trie and the rule trie

================================================================================
OVERVIEW
================================================================================

The Engine turns keystrokes into Result records. It drives two TrieWalkers:

    symbol ──► mapping walker ──► WalkerResult ──► rule walker ──► Result(s)
               (scheme chars)     (candidates)     (tokens)

Every mapping result is classified by the mapping walker:

    MAPPED_OUTPUT     a complete scheme spelling; its candidates are tried
                      against the rule trie (specific edge first, then the
                      generic edge of the candidate's type)
    MAPPED_NO_OUTPUT  a valid but incomplete spelling; shown raw for now
    NO_MAPPED_OUTPUT  nothing maps; passed through unchanged and finalized

================================================================================
RESULTS AND FINALIZATION
================================================================================

A Result is (input, output, is_previous_final, is_appendage).

    is_previous_final   everything emitted before this Result is now fixed
    is_appendage        concatenate onto the unfinalized output instead of
                        replacing it

Typing "k" "k" "a" "u" with a Hindi mapping:

    k  -> Result("k",    "क",    final)       new composition
    k  -> Result("kk",   "क्क",   not final)   replaces "क"
    a  -> Result("kka",  "क्क",   not final)   replaces "क्क"
    u  -> Result("kkau", "क्कौ",  not final)   replaces "क्क"

A composition stays open as long as the rule trie keeps matching; the next
token that cannot extend it closes it, and the Result that opens the new
composition carries is_previous_final.

================================================================================
EPOCH BOOKKEEPING
================================================================================

EpochState records one EpochEvent per handled mapping result since the rule
walker was last at the root. The displayed text of the open composition is
always recomputed from these events, so revising history is a matter of
dropping events and emitting the recomputed composition again.

An incomplete spelling that never completes must not vanish. When the last
recorded event is MAPPED_NO_OUTPUT, the next mapping result is checked
against REVISIONS before it is handled:

    (terminal, epoch changed, epoch had a token)  ->  action
    ----------------------------------------------------------
    (False,    False,         *)                  ->  KEEP
    (True,     False,         *)                  ->  ABANDON
    (*,        True,          False)              ->  ABANDON
    (*,        True,          True)               ->  REPLAY

KEEP     the prefix is still growing in the same epoch.
ABANDON  the prefix is turned into literal text after the composition, and
         a new composition starts.
REPLAY   the mapping walker is replaying the prefix as new input; the raw
         prefix is dropped from the composition, the replay re-adds it.
================================================================================
"""

import logging
from collections import namedtuple

from ordered_map import OrderedMap
from rules import RuleInput
from trie_walker import MAPPED_NO_OUTPUT
from trie_walker import MAPPED_OUTPUT
from trie_walker import NO_MAPPED_OUTPUT
from trie_walker import TrieWalker

logger = logging.getLogger(__name__)

Result = namedtuple('Result', ['input', 'output', 'is_previous_final', 'is_appendage'],
                    defaults=(False, False))

EpochEvent = namedtuple('EpochEvent', [
    'mapping_epoch',
    'mapping_type',
    'mapping_input',
    'mapping_output',
    'rule_epoch',
    'rule_type',
    'rule_input',
    'rule_output',
])

KEEP = 'keep'
ABANDON = 'abandon'
REPLAY = 'replay'

# (mapping result is terminal, mapping epoch changed, that epoch had a token)
REVISIONS = {
    (False, False, False): KEEP,
    (False, False, True): KEEP,
    (True, False, False): ABANDON,
    (True, False, True): ABANDON,
    (False, True, False): ABANDON,
    (True, True, False): ABANDON,
    (False, True, True): REPLAY,
    (True, True, True): REPLAY,
}


def identity(inputs, is_previous_final):
    return Result(inputs, inputs, is_previous_final, False)


def is_token(event):
    """True for events that advanced the rule walker."""
    return event.rule_type is not None


class EpochState:
    """Events recorded since the rule walker last left the root."""

    def __init__(self):
        self.events = []
        # Mapping epoch -> index of its first event
        self._epoch_index = {}
        self._last_rule_epoch = None

    def __len__(self):
        return len(self.events)

    @property
    def last_event(self):
        return self.events[-1] if self.events else None

    @property
    def has_tokens(self):
        return any(is_token(event) for event in self.events)

    def reset(self):
        self.events = []
        self._epoch_index = {}
        self._last_rule_epoch = None

    def add(self, event):
        if event.mapping_epoch not in self._epoch_index:
            self._epoch_index[event.mapping_epoch] = len(self.events)
        self._last_rule_epoch = event.rule_epoch
        self.events.append(event)

    def is_new_rule_epoch(self, rule_epoch):
        return self._last_rule_epoch != rule_epoch

    def epoch_events(self, mapping_epoch):
        index = self._epoch_index.get(mapping_epoch)
        if index is None:
            return []
        return self.events[index:]

    def epoch_has_token(self, mapping_epoch):
        return any(is_token(event) for event in self.epoch_events(mapping_epoch))

    def discard_epoch(self, mapping_epoch):
        """Drop every event of mapping_epoch; returns (had_token, had_events)."""
        index = self._epoch_index.get(mapping_epoch)
        if index is None:
            return False, False
        removed = self.events[index:]
        self._truncate(index)
        return any(is_token(event) for event in removed), bool(removed)

    def truncate_dangling(self):
        """Drop trailing MAPPED_NO_OUTPUT events; returns the dropped events."""
        index = len(self.events)
        while index > 0 and self.events[index - 1].mapping_type == MAPPED_NO_OUTPUT:
            index -= 1
        removed = self.events[index:]
        self._truncate(index)
        return removed

    def dangling_prefix(self):
        """Raw input of the trailing incomplete spelling, after the last token of its epoch."""
        last = self.last_event
        if last is None or last.mapping_type != MAPPED_NO_OUTPUT:
            return ''
        tokens = [event for event in self.epoch_events(last.mapping_epoch) if is_token(event)]
        if tokens:
            return last.mapping_input[len(tokens[-1].mapping_input):]
        return last.mapping_input

    def _truncate(self, index):
        del self.events[index:]
        self._epoch_index = {epoch: start for epoch, start in self._epoch_index.items() if start < index}

    def replacements(self, events):
        """Collect script fragments of generic edges, by placeholder name."""
        replacements = OrderedMap()
        for event in events:
            if not is_token(event):
                continue
            edge = event.rule_input[-1]
            if edge.key is not None:
                continue
            name = edge.replacent_key
            if name not in replacements:
                replacements[name] = []
            replacements[name].append(event.mapping_output.script or '')
        return replacements

    def composition(self):
        """(input, output) of the open composition, or None when nothing is recorded."""
        if not self.events:
            return None
        last_match = None
        for index, event in enumerate(self.events):
            if event.rule_type == MAPPED_OUTPUT:
                last_match = index

        inputs = []
        outputs = []
        tail_start = 0
        if last_match is not None:
            head = [event for event in self.events[:last_match + 1] if is_token(event)]
            inputs.extend(event.mapping_input for event in head)
            outputs.append(self.events[last_match].rule_output.generate(self.replacements(head)))
            tail_start = last_match + 1

        for event in self.events[tail_start:]:
            if is_token(event):
                inputs.append(event.mapping_input)
                outputs.append(event.mapping_output.script or '')
            elif event.mapping_type == MAPPED_NO_OUTPUT:
                inputs.append(event.mapping_input[-1])
                outputs.append(event.mapping_input[-1])
        return ''.join(inputs), ''.join(outputs)


class Engine:
    """Incremental transliteration over a Rules instance.

    Rules (and their tries) are shared read-only; every Engine owns its own
    walkers and EpochState, so one Engine must not be driven from several
    threads at once.
    """

    def __init__(self, rules):
        self.rules = rules
        self._mapping_walker = TrieWalker(rules.mapping_trie)
        self._rule_walker = TrieWalker(rules.rule_trie)
        self._state = EpochState()

    @property
    def state(self):
        return self._state

    def reset(self):
        self._mapping_walker.reset()
        self._rule_walker.reset()
        self._state.reset()

    def execute(self, inputs):
        """Feed one or more symbols; returns the Results in emission order."""
        results = []
        for symbol in inputs:
            for mapping_result in self._mapping_walker.walk(symbol):
                results.extend(self._revise(mapping_result))
                results.extend(self._handle(mapping_result))
        return results

    def _reset_rules(self):
        self._state.reset()
        self._rule_walker.reset()

    def _composition_result(self, is_previous_final):
        composition = self._state.composition()
        if composition is None:
            return []
        return [Result(composition[0], composition[1], is_previous_final, False)]

    def _revise(self, mapping_result):
        last = self._state.last_event
        if last is None or last.mapping_type != MAPPED_NO_OUTPUT:
            return []
        action = REVISIONS[(
            mapping_result.type == NO_MAPPED_OUTPUT,
            mapping_result.epoch != last.mapping_epoch,
            self._state.epoch_has_token(last.mapping_epoch),
        )]
        if action == KEEP:
            return []

        if action == REPLAY:
            logger.debug(f'Dropping dangling prefix {last.mapping_input!r} that is being replayed')
            self._state.truncate_dangling()
            return self._composition_result(False)

        prefix = self._state.dangling_prefix()
        logger.debug(f'Abandoning incomplete spelling {prefix!r}')
        self._state.truncate_dangling()
        results = self._composition_result(False)
        if results:
            results.append(identity(prefix, True))
        else:
            results.append(identity(prefix, False))
        self._reset_rules()
        return results

    def _handle(self, mapping_result):
        if mapping_result.type == MAPPED_OUTPUT:
            return self._handle_mapped(mapping_result)

        inputs = ''.join(mapping_result.inputs)
        if mapping_result.type == MAPPED_NO_OUTPUT:
            is_previous_final = self._state.is_new_rule_epoch(self._rule_walker.epoch)
            self._state.add(EpochEvent(mapping_result.epoch, MAPPED_NO_OUTPUT, inputs, None,
                                       self._rule_walker.epoch, None, None, None))
            symbol = mapping_result.inputs[-1]
            return [Result(symbol, symbol, is_previous_final, True)]

        self._reset_rules()
        return [identity(inputs, True)]

    def _select(self, candidates):
        """First candidate with an onward rule edge, specific edge before generic."""
        node = self._rule_walker.current_node
        for candidate in candidates:
            for rule_input in (RuleInput(candidate.type, candidate.key), RuleInput(candidate.type)):
                if node.child(rule_input) is not None:
                    return candidate, rule_input
        return None, None

    def _handle_mapped(self, mapping_result):
        inputs = ''.join(mapping_result.inputs)
        # A longer spelling in the same epoch supersedes the provisional one
        had_token, had_events = self._state.discard_epoch(mapping_result.epoch)
        if had_token:
            self._rule_walker.step_back()

        candidate, rule_input = self._select(mapping_result.output)
        if candidate is None:
            if self._state.has_tokens:
                results = self._composition_result(False) if had_events else []
                logger.debug(f'{inputs!r} cannot extend the composition; starting a new one')
                self._reset_rules()
                return results + self._handle_mapped(mapping_result)
            self._reset_rules()
            return [identity(inputs, not had_events)]

        rule_results = self._rule_walker.walk(rule_input)
        assert len(rule_results) == 1 and rule_results[0].type in (MAPPED_OUTPUT, MAPPED_NO_OUTPUT), \
            f'Rule edge {rule_input} vanished while walking'
        rule_result = rule_results[0]

        is_previous_final = self._state.is_new_rule_epoch(rule_result.epoch)
        self._state.add(EpochEvent(mapping_result.epoch, MAPPED_OUTPUT, inputs, candidate,
                                   rule_result.epoch, rule_result.type, rule_result.inputs,
                                   rule_result.output))
        if rule_result.type == MAPPED_OUTPUT or had_events:
            return self._composition_result(is_previous_final)
        return [Result(inputs, candidate.script or '', is_previous_final, True)]
