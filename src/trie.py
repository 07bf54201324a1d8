#!/usr/bin/env python3
"""
trie.py - Prefix tree over sequences of symbols

================================================================================
LAYOUT
================================================================================

A Trie keeps all of its nodes in one arena of parallel lists, addressed by
an integer index. Index 0 is the root. Every node records:

    - the symbol on the edge that leads to it (None for the root)
    - its optional value
    - the index of its parent (None for the root)
    - a dict of symbol -> child index

    root(0) ──'a'──► 1 ──'b'──► 2 (value "AB")
       │
       └────'p'──► 3 (value "P")

Parents are plain indices into the same arena, so walking back to the root
or up to the parent never needs an owning reference. The root of every node
is index 0 of its arena.

Symbols can be any hashable value. The mapping trie is keyed by single
characters, the rule trie by RuleInput tokens.

TrieNode is a lightweight (trie, index) view used by callers that want to
navigate node by node (TrieWalker does).
================================================================================
"""

import logging

logger = logging.getLogger(__name__)

ROOT_INDEX = 0


class TrieNode:
    """View of a single node in a Trie arena."""

    __slots__ = ('trie', 'index')

    def __init__(self, trie, index):
        self.trie = trie
        self.index = index

    def __eq__(self, other):
        if not isinstance(other, TrieNode):
            return NotImplemented
        return self.trie is other.trie and self.index == other.index

    def __hash__(self):
        return hash((id(self.trie), self.index))

    def __repr__(self):
        return f'TrieNode(key={self.key!r}, value={self.value!r})'

    @property
    def value(self):
        return self.trie._values[self.index]

    @value.setter
    def value(self, value):
        self.trie._values[self.index] = value

    @property
    def symbol(self):
        """The symbol stored on the edge leading to this node."""
        return self.trie._symbols[self.index]

    @property
    def is_root(self):
        return self.index == ROOT_INDEX

    @property
    def is_leaf(self):
        return not self.trie._children[self.index]

    @property
    def parent(self):
        # The root is its own parent
        parent = self.trie._parents[self.index]
        if parent is None:
            return self
        return TrieNode(self.trie, parent)

    @property
    def root(self):
        return TrieNode(self.trie, ROOT_INDEX)

    @property
    def key(self):
        """The symbols from the root down to this node, as a tuple."""
        symbols = []
        index = self.index
        while index != ROOT_INDEX:
            symbols.append(self.trie._symbols[index])
            index = self.trie._parents[index]
        symbols.reverse()
        return tuple(symbols)

    def child(self, symbol):
        index = self.trie._children[self.index].get(symbol)
        if index is None:
            return None
        return TrieNode(self.trie, index)

    def children(self):
        return [TrieNode(self.trie, index) for index in self.trie._children[self.index].values()]

    def get(self, key, default=None):
        """Look up a multi-symbol key relative to this node."""
        index = self.trie._find(key, self.index)
        if index is None or self.trie._values[index] is None:
            return default
        return self.trie._values[index]

    def set(self, key, value):
        """Store a value under a multi-symbol key relative to this node."""
        return self.trie._insert(key, value, self.index)


class Trie:
    """Prefix tree mapping symbol sequences to values.

    The usual mapping protocol works on whole keys:

        >>> trie = Trie()
        >>> trie['ab'] = 'AB'
        >>> trie['ab']
        'AB'
        >>> trie.get('a') is None
        True
        >>> trie.child('a').child('b').value
        'AB'
    """

    def __init__(self, value=None):
        self._symbols = [None]
        self._values = [value]
        self._parents = [None]
        self._children = [{}]

    def __len__(self):
        """Number of keys that carry a value."""
        return sum(1 for value in self._values[1:] if value is not None)

    def __contains__(self, key):
        return self.get(key) is not None

    def __getitem__(self, key):
        value = self.get(key)
        if value is None:
            raise KeyError(key)
        return value

    def __setitem__(self, key, value):
        self._insert(key, value, ROOT_INDEX)

    def __iadd__(self, other):
        return self.merge(other)

    def __repr__(self):
        return f'Trie({dict(self.items())!r})'

    @property
    def root(self):
        return TrieNode(self, ROOT_INDEX)

    @property
    def node_count(self):
        return len(self._values)

    def child(self, symbol):
        return self.root.child(symbol)

    def node(self, key):
        """Return the node reached by key, or None when the path does not exist."""
        index = self._find(key, ROOT_INDEX)
        if index is None:
            return None
        return TrieNode(self, index)

    def get(self, key, default=None):
        return self.root.get(key, default)

    def set(self, key, value):
        return self._insert(key, value, ROOT_INDEX)

    def setdefault(self, key, default):
        """Return the value under key, storing default first when there is none."""
        node = self._insert(key, None, ROOT_INDEX, overwrite=False)
        if node.value is None:
            node.value = default
        return node.value

    def items(self):
        """Yield (key, value) for every node that carries a value, depth first."""
        stack = [ROOT_INDEX]
        while stack:
            index = stack.pop()
            if index != ROOT_INDEX and self._values[index] is not None:
                yield TrieNode(self, index).key, self._values[index]
            stack.extend(reversed(list(self._children[index].values())))

    def merge(self, other, resolve=None):
        """Union other into this trie.

        Children missing here are copied over. When both tries carry a value
        at the same key, resolve(key, current, incoming) picks the value to
        keep; without a resolver the incoming value wins (last write wins).
        """
        pairs = [(ROOT_INDEX, ROOT_INDEX)]
        while pairs:
            mine, theirs = pairs.pop()
            incoming = other._values[theirs]
            if incoming is not None:
                current = self._values[mine]
                if current is None:
                    self._values[mine] = incoming
                else:
                    key = TrieNode(self, mine).key
                    merged = resolve(key, current, incoming) if resolve else incoming
                    if merged != current:
                        logger.warning(f'Replacing value {current!r} with {merged!r} at key {key!r}')
                    self._values[mine] = merged
            for symbol, their_child in other._children[theirs].items():
                my_child = self._children[mine].get(symbol)
                if my_child is None:
                    my_child = self._new_node(mine, other._symbols[their_child])
                pairs.append((my_child, their_child))
        return self

    def _new_node(self, parent, symbol):
        index = len(self._values)
        self._symbols.append(symbol)
        self._values.append(None)
        self._parents.append(parent)
        self._children.append({})
        self._children[parent][symbol] = index
        return index

    def _find(self, key, start):
        if len(key) == 0:
            raise ValueError('Trie keys must have at least one symbol')
        index = start
        for symbol in key:
            index = self._children[index].get(symbol)
            if index is None:
                return None
        return index

    def _insert(self, key, value, start, overwrite=True):
        if len(key) == 0:
            raise ValueError('Trie keys must have at least one symbol')
        index = start
        for symbol in key:
            child = self._children[index].get(symbol)
            if child is None:
                child = self._new_node(index, symbol)
            index = child
        if overwrite:
            self._values[index] = value
        return TrieNode(self, index)
