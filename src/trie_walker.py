#!/usr/bin/env python3
"""
trie_walker.py - Incremental longest-match recognizer over a Trie

A TrieWalker holds a cursor into one Trie and is fed one symbol at a time.
Every walk() returns a list of WalkerResult records classified as:

    MAPPED_OUTPUT      the symbols since the last reset match a stored value
    MAPPED_NO_OUTPUT   the symbols form a valid prefix without a value yet
    NO_MAPPED_OUTPUT   nothing in the trie continues with this symbol

On a dead end the walker hands back what it already matched: everything
typed after the most recent match is replayed from the root in a fresh
epoch. Replays can dead-end again and cascade, so a single walk() may
return several results. When nothing matched below an incomplete prefix,
the offending symbol is retried from the root; only a symbol without an
edge at the root comes back as NO_MAPPED_OUTPUT.

Example with the keys "a", "ab", "p" and "kln":

    p q   -> "p" matched, "q" has no edge below "p"; "q" is replayed
             from the root, finds no edge there either and comes back as
             NO_MAPPED_OUTPUT
    k a   -> "k" is only a prefix of "kln" and "a" has no edge below it;
             "a" is retried from the root as a new epoch and matches
    ab p  -> "ab" matched, "p" has no edge below "ab", so "p" is replayed
             from the root as a new epoch and matches on its own

The epoch counter is bumped every time the cursor returns to the root.
Callers only ever compare epochs for equality.
"""

import logging
from collections import namedtuple

logger = logging.getLogger(__name__)

MAPPED_OUTPUT = 'mappedOutput'
MAPPED_NO_OUTPUT = 'mappedNoOutput'
NO_MAPPED_OUTPUT = 'noMappedOutput'

WalkerResult = namedtuple('WalkerResult', ['inputs', 'output', 'type', 'epoch'])


class TrieWalker:
    """Cursor over a Trie that is advanced one symbol at a time."""

    def __init__(self, trie):
        self._trie = trie
        self._node = trie.root
        self._inputs = []
        # Lengths of self._inputs right after each match since the last reset
        self._match_ends = []
        self.epoch = 0

    @property
    def trie(self):
        return self._trie

    @property
    def inputs(self):
        return tuple(self._inputs)

    @property
    def current_node(self):
        return self._node

    @property
    def is_at_root(self):
        return self._node.is_root

    def reset(self):
        """Return the cursor to the root and start a new epoch."""
        self._node = self._node.root
        self._inputs = []
        self._match_ends = []
        self.epoch += 1

    def step_back(self):
        """Undo one symbol of forward progress without starting a new epoch."""
        if self._node.is_root:
            return
        self._inputs.pop()
        if self._node.value is not None:
            self._match_ends.pop()
        self._node = self._node.parent

    def walk_all(self, symbols):
        results = []
        for symbol in symbols:
            results.extend(self.walk(symbol))
        return results

    def walk(self, symbol):
        child = self._node.child(symbol)
        if child is not None:
            # Record the stored symbol: equal lookups may still differ in detail
            self._inputs.append(child.symbol)
            self._node = child
            if child.value is not None:
                self._match_ends.append(len(self._inputs))
                return [WalkerResult(tuple(self._inputs), child.value, MAPPED_OUTPUT, self.epoch)]
            return [WalkerResult(tuple(self._inputs), None, MAPPED_NO_OUTPUT, self.epoch)]

        self._inputs.append(symbol)
        if self._match_ends:
            remaining = self._inputs[self._match_ends[-1]:]
            logger.debug(f'Dead end at {symbol!r}; replaying {remaining!r}')
            self.reset()
            return self.walk_all(remaining)

        if not self._node.is_root:
            # Nothing matched below the prefix; the symbol may still map on its own
            logger.debug(f'Dead end at {symbol!r} below an incomplete prefix; retrying from the root')
            self.reset()
            return self.walk(symbol)

        result = WalkerResult((symbol,), None, NO_MAPPED_OUTPUT, self.epoch)
        self.reset()
        return [result]
