#!/usr/bin/env python3
"""
ordered_map.py - Dictionary ordered by recency of update

Keys are enumerated in increasing order of recency: the key that was
created or updated the longest time ago comes first, the most recently
written key comes last. Layering override tables relies on this, since a
key redefined by a later table must also move behind the keys it overrides.

    >>> m = OrderedMap(a=1, b=2)
    >>> m['a'] = 3
    >>> list(m)
    ['b', 'a']
"""

from collections import OrderedDict


class OrderedMap(OrderedDict):

    def __setitem__(self, key, value):
        super().__setitem__(key, value)
        self.move_to_end(key)

    def __repr__(self):
        return f'OrderedMap({list(self.items())!r})'
