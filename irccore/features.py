import collections
import logging

log = logging.getLogger(__name__)

mode_names = {
    'o': 'op',
    'v': 'voice',
    'h': 'halfop',
    'a': 'admin',
    'q': 'owner',
}
"Names used in a roster for the channel modes a server may advertise"


class FeatureSet:
    """
    An implementation of features as loaded from an ISUPPORT server directive.

    Each feature is loaded into an attribute of the same name (but lowercased
    to match Python sensibilities).

    >>> f = FeatureSet()
    >>> f.load(['target', 'PREFIX=(qov)~@+', 'are supported by this server'])
    >>> f.prefix == {'~': 'q', '@': 'o', '+': 'v'}
    True

    Order of prefix is relevant, so it is retained.

    >>> tuple(f.prefix)
    ('~', '@', '+')

    >>> f.load_feature('CHANMODES=foo,bar,baz')
    >>> f.chanmodes
    ['foo', 'bar', 'baz']
    """

    def __init__(self):
        self._set_rfc1459_prefixes()

    def _set_rfc1459_prefixes(self):
        "install standard (RFC1459) prefixes"
        self.set('PREFIX', collections.OrderedDict([('@', 'o'), ('+', 'v')]))

    def set(self, name, value=True):
        "set a feature value"
        setattr(self, name.lower(), value)

    def remove(self, feature_name):
        if feature_name in vars(self):
            delattr(self, feature_name)
        if feature_name == 'prefix':
            self._set_rfc1459_prefixes()

    def load(self, arguments):
        "Load the values from the parameters of a 005 reply"
        features = arguments[1:-1]
        list(map(self.load_feature, features))

    def load_feature(self, feature):
        # negating
        if feature.startswith('-'):
            return self.remove(feature[1:].lower())

        name, sep, value = feature.partition('=')

        if not sep:
            return

        if not value and name != 'PREFIX':
            self.set(name)
            return

        parser = getattr(self, '_parse_' + name, self._parse_other)
        try:
            value = parser(value)
        except ValueError:
            log.warning("Ignoring unparseable feature %r", feature)
            return
        self.set(name, value)

    def split_prefixes(self, name):
        """
        Separate the membership prefixes from a NAMES entry.

        Returns the bare nick and the roster modes the prefixes denote.

        >>> f = FeatureSet()
        >>> f.split_prefixes('@alice')
        ('alice', {'op'})
        >>> f.split_prefixes('+bob')
        ('bob', {'voice'})
        >>> f.split_prefixes('carol')
        ('carol', set())

        Servers with multi-prefix enabled may send several.

        >>> sorted(f.split_prefixes('@+dave')[1])
        ['op', 'voice']
        """
        modes = set()
        while name and name[0] in self.prefix:
            mode = self.prefix[name[0]]
            modes.add(mode_names.get(mode, mode))
            name = name[1:]
        return name, modes

    @staticmethod
    def _parse_PREFIX(value):
        """
        channel user prefixes

        An empty value means the server has none.

        >>> FeatureSet._parse_PREFIX('')
        OrderedDict()
        >>> FeatureSet._parse_PREFIX('ov')
        Traceback (most recent call last):
        ...
        ValueError: Malformed PREFIX: 'ov'
        """
        if not value:
            return collections.OrderedDict()
        if not value.startswith('(') or value.count(')') != 1:
            raise ValueError("Malformed PREFIX: {value!r}".format(**locals()))
        channel_modes, channel_chars = value.split(')')
        channel_modes = channel_modes[1:]
        return collections.OrderedDict(zip(channel_chars, channel_modes))

    @staticmethod
    def _parse_CHANMODES(value):
        "channel mode letters"
        return value.split(',')

    @staticmethod
    def _parse_other(value):
        if value.isdigit():
            return int(value)
        return value
