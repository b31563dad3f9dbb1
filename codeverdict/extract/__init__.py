"""
Feature extraction.

extract_features() is the single entry point. It picks a strategy per
call: the AST extractor when AST analysis is enabled and a parser exists
for the language, otherwise the pattern extractor. Both produce the same
FeatureVector shape, and neither ever raises on bad input; code that
cannot be analysed yields FeatureVector().
"""
from abc import ABC, abstractmethod

from .. import config
from .. import languages
from .. import logger
from .. import parsers
from ..features import FeatureVector
from ..source import decode_source, has_program_text, strip_comments
from . import javascript, patterns, treesitter
from .facts import assemble, get_table

log = logger.get('extract')


class FeatureExtractor(ABC):
    name: str = ''

    def extract(self, code, language) -> FeatureVector:
        """Extract features, falling back to the default vector on any failure."""
        text = decode_source(code)
        if text is None:
            log.warning('Cannot extract features from %s; using defaults', type(code).__name__)
            return FeatureVector()
        if not has_program_text(text):
            return FeatureVector()
        lang = languages.get_languages().normalize(language)
        try:
            return self._extract(text, lang)
        except RecursionError:
            log.warning('%s extractor: program nests too deeply; using defaults', self.name)
            return FeatureVector()
        except config.ConfigError as err:
            log.error('%s extractor: %s; using defaults', self.name, err)
            return FeatureVector()

    @abstractmethod
    def _extract(self, code: str, lang: languages.Language) -> FeatureVector:
        ...


class ASTFeatureExtractor(FeatureExtractor):
    """Walks the syntax tree once, depth first."""

    name = 'ast'

    def _extract(self, code, lang):
        tree = parsers.parse(code, lang.lang_id)
        if tree is None:
            log.warning('Could not parse %s submission; using default features', lang.name)
            return FeatureVector()
        if tree.kind == parsers.ESTREE:
            facts = javascript.collect_facts(tree.root)
        else:
            facts = treesitter.collect_facts(tree.root, lang.lang_id)
        return assemble(facts, code, strip_comments(code, lang.comments), get_table(lang.lang_id))


class PatternFeatureExtractor(FeatureExtractor):
    """Regex matching over per-language keyword tables."""

    name = 'pattern'

    def _extract(self, code, lang):
        source = strip_comments(code, lang.comments)
        table = get_table(lang.lang_id)
        facts = patterns.collect_facts(source, table, lang.comments)
        return assemble(facts, code, source, table)


def select_extractor(language) -> FeatureExtractor:
    if config.ast_enabled() and parsers.is_available(language):
        return ASTFeatureExtractor()
    return PatternFeatureExtractor()


def extract_features(code, language, extractor: FeatureExtractor | None = None) -> FeatureVector:
    """Describe the structure of a submission.

    Args:
        code: source code, as text or bytes (decoded as UTF-8, invalid
            sequences replaced).
        language: language tag; unknown tags are treated as Python.
        extractor: force a strategy instead of choosing one.

    Returns:
        A fully populated FeatureVector.
    """
    if extractor is None:
        extractor = select_extractor(language)
    return extractor.extract(code, language)
