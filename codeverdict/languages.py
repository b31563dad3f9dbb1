"""
The table of source languages the grading engine accepts.

Submissions arrive tagged with whatever the client sends ("js", "Python3",
"C++", ...). languages.yaml maps those tags onto a handful of canonical
language ids, and records for each language how its source is parsed and
how its comments are written.
"""
import re

from . import config
from . import logger

log = logger.get('languages')

PARSERS = ('esprima', 'tree-sitter')
COMMENT_STYLES = ('hash', 'c')


class LanguageConfigError(Exception):
    """Exception class for errors in language configuration."""
    pass


def _tag_list(value):
    return value.lower().split()


class Language(object):
    """
    One entry of the language table.

    Attributes:
        lang_id: canonical id, e.g. "javascript"
        name: human-readable name
        priority: tie breaker between languages claiming the same tag; the
            highest priority language is the fallback for unknown tags
        aliases: lower-cased tags normalizing to this language
        parser: AST backend, one of PARSERS
        grammar: grammar name handed to the parser backend
        comments: comment syntax, one of COMMENT_STYLES
    """

    # field -> (expected type, conversion applied to the stored value)
    __FIELDS = {
        'name': (str, None),
        'priority': (int, None),
        'aliases': (str, _tag_list),
        'parser': (str, None),
        'grammar': (str, None),
        'comments': (str, None),
    }

    def __init__(self, lang_id, lang_spec):
        if not re.fullmatch('[a-z][a-z0-9]*', lang_id):
            raise LanguageConfigError(f'"{lang_id}" is not a valid language id')
        self.lang_id = lang_id
        for field in Language.__FIELDS:
            setattr(self, field, None)
        self.aliases = []
        self.update(lang_spec)

    def __repr__(self):
        return f'Language({self.lang_id!r})'

    def matches(self, tag):
        """Check whether a (lower-cased) language tag refers to this language."""
        return tag == self.lang_id or tag in self.aliases

    def update(self, values):
        """Override some subset of the fields, then re-validate the entry."""
        for field, value in values.items():
            if field not in Language.__FIELDS:
                raise LanguageConfigError(f'{self.lang_id}: unknown field "{field}"')
            expected, convert = Language.__FIELDS[field]
            # bool is an int subclass but never a valid priority
            if not isinstance(value, expected) or isinstance(value, bool):
                raise LanguageConfigError(
                    f'{self.lang_id}: {field} should be {expected.__name__}, '
                    f'got {type(value).__name__}')
            setattr(self, field, convert(value) if convert else value)
        self.__validate()

    def __validate(self):
        for field in ('name', 'priority', 'grammar'):
            if getattr(self, field) is None:
                raise LanguageConfigError(f'{self.lang_id}: {field} is missing')
        if self.parser not in PARSERS:
            raise LanguageConfigError(
                f'{self.lang_id}: parser must be one of {", ".join(PARSERS)}, not {self.parser}')
        if self.comments not in COMMENT_STYLES:
            raise LanguageConfigError(
                f'{self.lang_id}: comments must be one of {", ".join(COMMENT_STYLES)}, '
                f'not {self.comments}')


class Languages(object):
    """The language table, keyed by language id."""

    def __init__(self, data=None):
        self.languages = {}
        if data is not None:
            self.update(data)

    def get(self, lang_id):
        if not isinstance(lang_id, str):
            raise LanguageConfigError(f'language ids are strings, got {lang_id!r}')
        return self.languages.get(lang_id)

    def fallback(self):
        """The language used for tags that match nothing: the one with highest priority."""
        if not self.languages:
            raise LanguageConfigError('No languages configured')
        return max(self.languages.values(), key=lambda lang: lang.priority)

    def normalize(self, tag):
        """Map a free-form language tag onto a configured language.

        Args:
            tag: language tag such as "js", "Python3" or "C++".

        Returns:
            Language object. Unknown or non-string tags map to the
            fallback language.
        """
        if isinstance(tag, str):
            tag = tag.strip().lower()
            candidates = [lang for lang in self.languages.values() if lang.matches(tag)]
            if candidates:
                return max(candidates, key=lambda lang: lang.priority)
            if tag:
                log.warning('Unknown language "%s", treating it as %s', tag, self.fallback().name)
        return self.fallback()

    def update(self, data):
        """Merge language configuration into the table.

        A (possibly partial) entry for a language already in the table
        updates that language; other entries add new languages. Entries may
        also be ready-made Language objects.
        """
        if not isinstance(data, dict):
            raise LanguageConfigError(
                f'language configuration should be a mapping, got {type(data).__name__}')

        for lang_id, lang_spec in data.items():
            self.get(lang_id)
            if isinstance(lang_spec, Language):
                self.languages[lang_id] = lang_spec
            elif not isinstance(lang_spec, dict):
                raise LanguageConfigError(
                    f'{lang_id}: entry should be a mapping, got {type(lang_spec).__name__}')
            elif lang_id in self.languages:
                self.languages[lang_id].update(lang_spec)
            else:
                self.languages[lang_id] = Language(lang_id, lang_spec)

        claimed = {}
        for lang in self.languages.values():
            other = claimed.setdefault(lang.priority, lang)
            if other is not lang:
                raise LanguageConfigError(
                    f'{other.lang_id} and {lang.lang_id} share priority {lang.priority}')


_languages = None


def load_language_config():
    """Load languages.yaml into a Languages table.

    An override layer that breaks the table is reported and the bundled
    table is used instead.
    """
    try:
        return Languages(config.load_config('languages.yaml'))
    except (config.ConfigError, LanguageConfigError) as err:
        log.warning('Language configuration unusable (%s); using the bundled table', err)
        return Languages(config.load_bundled('languages.yaml'))


def get_languages():
    """The process-wide language table, loaded on first use."""
    global _languages
    if _languages is None:
        _languages = load_language_config()
    return _languages


def normalize(tag):
    """Normalize a language tag to a language id ("javascript", "python", ...)."""
    return get_languages().normalize(tag).lang_id
