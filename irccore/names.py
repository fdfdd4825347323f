"""
Comparison of nicks and channel names.

RFC 1459 treats ``[]\\^`` as the upper case of ``{}|~``, so ``Nick[1]``
and ``nick{1}`` name the same user. The session can be configured to
honor that mapping or to compare names exactly.
"""

from jaraco.collections import KeyTransformingDict
from jaraco.text import FoldedCase


class Name(FoldedCase):
    """
    A nick or channel name that compares using the RFC 1459 case mapping.

    >>> Name('#Python[dev]') == Name('#python{dev}')
    True
    >>> Name('Nick^').lower()
    'nick~'
    >>> Name('').lower()
    ''

    The original spelling is kept.

    >>> str(Name('Alice'))
    'Alice'
    """

    mapping = str.maketrans(r"[]\^", r"{}|~")

    def lower(self):
        return super().lower().translate(self.mapping)

    def casefold(self):
        """
        FoldedCase caches ``casefold`` on the instance; the cached value
        would miss the mapping, so it is never stored.

        >>> name = Name('[Away]')
        >>> name.casefold(), name.casefold()
        ('{away}', '{away}')
        """
        return super().casefold().translate(self.mapping)

    def __setattr__(self, key, val):
        if key == 'casefold':
            return
        return super().__setattr__(key, val)


def equal(a, b, casefold=True):
    """
    Compare two nicks or channel names.

    >>> equal('Alice', 'alice')
    True
    >>> equal('Alice', 'alice', casefold=False)
    False
    >>> equal('nick[away]', 'NICK{AWAY}')
    True
    >>> equal(None, 'alice')
    False
    """
    if a is None or b is None:
        return False
    if casefold:
        return Name(a).lower() == Name(b).lower()
    return a == b


class NameDict(KeyTransformingDict):
    """
    A mapping keyed by nicks or channel names, matched using the RFC 1459
    case mapping.

    >>> users = NameDict(Alice=1)
    >>> users['ALICE'], 'alice' in users
    (1, True)
    >>> users['#chan[1]'] = 2
    >>> users.pop('#CHAN{1}')
    2

    Keys keep the spelling they were stored with.

    >>> [str(key) for key in users]
    ['Alice']
    """

    @staticmethod
    def transform_key(key):
        if isinstance(key, str):
            key = Name(key)
        return key


def name_dict(casefold=True):
    """
    Construct an empty mapping keyed by nicks or channel names.

    With ``casefold``, keys are compared using the RFC 1459 case mapping;
    otherwise keys must match exactly.

    >>> d = name_dict()
    >>> d['Bob'] = 1
    >>> 'BOB' in d
    True
    >>> d = name_dict(casefold=False)
    >>> d['Bob'] = 1
    >>> 'BOB' in d
    False
    """
    return NameDict() if casefold else {}
