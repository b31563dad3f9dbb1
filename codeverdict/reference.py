"""
Reference logic: the per-question description of the algorithm a
submission is expected to implement.

Documents live as one JSON file per question (Q001.json, Q010.json, ...)
in a logic directory, optionally with an index.json listing them. The
directory is, in decreasing order of priority, the one passed to
ReferenceLogicLoader, $CODEVERDICT_LOGIC_DIR, reference_logic_dir in
grading.yaml, or the logic/ directory shipped with the package.

A document missing one of the two complexity fields is still loaded, with
O(1) substituted and a warning logged. A document missing any other
mandatory field, or with a field of the wrong type, is rejected: get()
returns None, and callers must read that as "no rubric available".
"""
import json
import os
import re
import threading
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from . import config
from . import logger
from .complexity import Complexity, normalize

log = logger.get('reference')

DEFAULT_LOGIC_DIR = Path(__file__).parent / 'logic'
INDEX_FILE = 'index.json'

REQUIRED_FIELDS = (
    'questionId',
    'expectedAlgorithm',
    'allowedApproaches',
    'expectedTimeComplexity',
    'expectedSpaceComplexity',
    'disallowedPatterns',
)
RECOVERABLE_FIELDS = ('expectedTimeComplexity', 'expectedSpaceComplexity')


class ReferenceLogicError(Exception):
    """A reference logic document is missing or malformed."""
    pass


class _Model(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra='ignore',
        populate_by_name=True,
        alias_generator=to_camel,
    )


class Constraints(_Model):
    should_read_input: bool | None = None
    should_use_loops: bool | None = None
    should_use_recursion: bool | None = None
    min_line_count: int | None = None
    max_line_count: int | None = None


class ReferenceSolution(_Model):
    code: str
    language: str = 'python'


class ReferenceLogic(_Model):
    """
    The expected algorithm for one question.

    The six mandatory fields are questionId, expectedAlgorithm,
    allowedApproaches, disallowedPatterns and the two expected
    complexities; the rest is optional and mostly descriptive.
    """

    question_id: str
    expected_algorithm: str
    allowed_approaches: list[str]
    disallowed_patterns: list[str]
    expected_time_complexity: Complexity
    expected_space_complexity: Complexity
    acceptable_complexities: list[Complexity] = []
    paradigm: str | None = None
    constraints: Constraints = Field(default_factory=Constraints)

    title: str | None = None
    difficulty: str | None = None
    detailed_description: str | None = None
    hints: list[str] = []
    common_mistakes: list[str] = []
    solution_approach: str | None = None
    rubric: dict[str, Any] = {}
    reference_solution: ReferenceSolution | None = None

    @field_validator('expected_time_complexity', mode='before')
    @classmethod
    def _time_class(cls, value: Any) -> Complexity:
        return normalize(value)

    @field_validator('expected_space_complexity', mode='before')
    @classmethod
    def _space_class(cls, value: Any) -> Complexity:
        return normalize(value, space=True)

    @field_validator('acceptable_complexities', mode='before')
    @classmethod
    def _time_classes(cls, value: Any) -> list[Complexity]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError('acceptableComplexities must be an array')
        return [normalize(item) for item in value]

    @field_validator('constraints', mode='before')
    @classmethod
    def _no_constraints(cls, value: Any) -> Any:
        return {} if value is None else value

    def to_dict(self) -> dict:
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)


_QUESTION_ID = re.compile(r'^[Qq]?(\d+)$')
_SAFE_ID = re.compile(r'^[A-Za-z0-9_-]+$')


def normalize_question_id(question_id) -> str | None:
    """Canonical Q0NN key for a question id.

    1, "1", "001", "q1" and "Q001" all become "Q001". Other ids made of
    letters, digits, "_" and "-" are kept as they are; anything else
    (including ids that could escape the logic directory) gives None.
    """
    if isinstance(question_id, bool):
        return None
    if isinstance(question_id, int):
        return f'Q{question_id:03d}' if question_id >= 0 else None
    if not isinstance(question_id, str):
        return None
    text = question_id.strip()
    match = _QUESTION_ID.match(text)
    if match:
        return f'Q{int(match.group(1)):03d}'
    if _SAFE_ID.match(text):
        return text
    return None


def validate(document: Any, question_id: str) -> ReferenceLogic:
    """Check a parsed document and build a ReferenceLogic from it.

    Raises:
        ReferenceLogicError: if a mandatory field is missing or a field
            has the wrong type.
    """
    if not isinstance(document, dict):
        raise ReferenceLogicError(f'{question_id}: document must be a JSON object')

    missing = [key for key in REQUIRED_FIELDS if key not in document and key not in RECOVERABLE_FIELDS]
    if missing:
        raise ReferenceLogicError(f'{question_id}: missing required fields: {", ".join(missing)}')

    for key in ('questionId', 'expectedAlgorithm'):
        if not isinstance(document[key], str):
            raise ReferenceLogicError(f'{question_id}: {key} must be a string')
    for key in ('allowedApproaches', 'disallowedPatterns'):
        value = document[key]
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise ReferenceLogicError(f'{question_id}: {key} must be an array of strings')

    absent = [key for key in RECOVERABLE_FIELDS if not isinstance(document.get(key), str) or not document[key].strip()]
    if absent:
        log.warning('Missing complexity fields for %s (%s). Applied safe defaults: O(1).',
                    question_id, ', '.join(absent))
        document = dict(document)
        for key in absent:
            document[key] = Complexity.CONSTANT.value

    try:
        return ReferenceLogic.model_validate(document)
    except ValidationError as err:
        raise ReferenceLogicError(f'{question_id}: {err}') from err


class ReferenceLogicCache(object):
    """Loaded reference logic by question id.

    Reads of a cached entry take no lock. The first load of a key is done
    under that key's own lock, so concurrent first requests for the same
    question read the file once while other keys load in parallel. Failed
    loads are not cached.
    """

    def __init__(self):
        self._entries: dict[str, ReferenceLogic] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_lock = threading.Lock()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def get_or_load(self, key: str, load) -> ReferenceLogic | None:
        entry = self._entries.get(key)
        if entry is not None:
            return entry
        with self._lock_for(key):
            entry = self._entries.get(key)
            if entry is None:
                entry = load(key)
                if entry is not None:
                    self._entries[key] = entry
            return entry

    def clear(self) -> None:
        with self._locks_lock:
            self._entries.clear()
            self._locks.clear()


def resolve_logic_dir(logic_dir=None) -> Path:
    if logic_dir is not None:
        return Path(logic_dir)
    env = os.environ.get('CODEVERDICT_LOGIC_DIR')
    if env:
        return Path(env)
    try:
        configured = config.grading_config().get('reference_logic_dir')
    except config.ConfigError as err:
        log.error('Could not read grading configuration: %s', err)
        configured = None
    if configured:
        return Path(configured)
    return DEFAULT_LOGIC_DIR


class ReferenceLogicLoader(object):
    """Loads, validates and caches reference logic documents."""

    def __init__(self, logic_dir=None, cache: ReferenceLogicCache | None = None):
        self.logic_dir = resolve_logic_dir(logic_dir)
        self.cache = cache if cache is not None else ReferenceLogicCache()
        self.reads = 0

    def _load(self, key: str) -> ReferenceLogic | None:
        path = self.logic_dir / f'{key}.json'
        if not path.is_file():
            log.warning('Reference logic not found for %s in %s', key, self.logic_dir)
            return None
        self.reads += 1
        try:
            with open(path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as err:
            log.error('Failed to read reference logic %s: %s', path, err)
            return None
        try:
            logic = validate(document, key)
        except ReferenceLogicError as err:
            log.error('Invalid reference logic: %s', err)
            return None
        log.debug('Loaded reference logic for %s', key)
        return logic

    def get(self, question_id) -> ReferenceLogic | None:
        """Reference logic for a question, or None if there is no valid document."""
        key = normalize_question_id(question_id)
        if key is None:
            log.warning('Invalid question id %r', question_id)
            return None
        return self.cache.get_or_load(key, self._load)

    def clear_cache(self) -> None:
        self.cache.clear()

    def all_question_ids(self) -> list[str]:
        if not self.logic_dir.is_dir():
            return []
        return sorted(path.stem for path in self.logic_dir.glob('*.json') if path.name != INDEX_FILE)

    def _indexed_ids(self) -> list[str] | None:
        path = self.logic_dir / INDEX_FILE
        if not path.is_file():
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                index = json.load(f)
        except (OSError, json.JSONDecodeError) as err:
            log.warning('Ignoring unreadable %s: %s', path, err)
            return None
        questions = index.get('questions') if isinstance(index, dict) else None
        if not isinstance(questions, list):
            log.warning('Ignoring %s: no "questions" array', path)
            return None
        ids = []
        for entry in questions:
            if isinstance(entry, dict):
                entry = entry.get('questionId')
            if entry is not None:
                ids.append(entry)
        return ids

    def preload_all(self) -> int:
        """Load every question listed in index.json (or found in the directory).

        Returns:
            number of questions successfully loaded.
        """
        ids = self._indexed_ids()
        if ids is None:
            ids = self.all_question_ids()
        loaded = sum(1 for question_id in ids if self.get(question_id) is not None)
        log.info('Preloaded %d of %d reference logic documents', loaded, len(ids))
        return loaded

    def hints(self, question_id) -> list[str]:
        logic = self.get(question_id)
        return list(logic.hints) if logic else []

    def common_mistakes(self, question_id) -> list[str]:
        logic = self.get(question_id)
        return list(logic.common_mistakes) if logic else []

    def solution_approach(self, question_id) -> str:
        logic = self.get(question_id)
        if logic is None or not logic.solution_approach:
            return 'No approach documented'
        return logic.solution_approach

    def rubric(self, question_id) -> dict:
        logic = self.get(question_id)
        return dict(logic.rubric) if logic else {}

    def question_metadata(self, question_id) -> dict | None:
        logic = self.get(question_id)
        if logic is None:
            return None
        return {
            'questionId': logic.question_id,
            'title': logic.title or 'Untitled',
            'difficulty': logic.difficulty or 'Unknown',
            'description': logic.detailed_description or 'No description',
            'algorithm': logic.expected_algorithm,
            'complexity': logic.expected_time_complexity.value,
            'paradigm': logic.paradigm,
        }


_default_loader: ReferenceLogicLoader | None = None
_default_loader_lock = threading.Lock()


def default_loader() -> ReferenceLogicLoader:
    """The process-wide loader, created on first use."""
    global _default_loader
    with _default_loader_lock:
        if _default_loader is None:
            _default_loader = ReferenceLogicLoader()
        return _default_loader


def get_reference_logic(question_id, loader: ReferenceLogicLoader | None = None) -> ReferenceLogic | None:
    return (loader or default_loader()).get(question_id)
