"""
Fuzzy entity matching against the roster and the tag vocabulary.

Names extracted by the model from a coach's note rarely match the database
exactly ("Jay" for "Jayden Smith", "pick and roll" for "Pick-and-Roll").
Matching is case-insensitive and runs in two passes:

1. exact: the extracted name equals a display name, first name, last name
   or alias (tags: name, tag_name or a synonym)
2. fuzzy: one string contains the other; confidence is capped at 0.7

Anything left over is queued for human review: players in flagged_names,
tags in tag_suggestions. Those inserts are best-effort and never fail the
request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import FlaggedName, Person, PersonGroup, Tag, TagSuggestion
from schemas import ExtractedEntity

logger = logging.getLogger(__name__)

FUZZY_CONFIDENCE_CAP = 0.7


def normalize(name: Optional[str]) -> str:
    return (name or "").strip().lower()


def names_overlap(a: str, b: str) -> bool:
    """Bidirectional substring containment of two normalized, non-empty names."""
    if not a or not b:
        return False
    return a in b or b in a


def person_name_variants(person: Person) -> List[str]:
    variants = [person.display_name, person.first_name, person.last_name]
    variants.extend(person.aliases or [])
    full = " ".join(p for p in (person.first_name, person.last_name) if p)
    if full:
        variants.append(full)
    seen: List[str] = []
    for v in variants:
        n = normalize(v)
        if n and n not in seen:
            seen.append(n)
    return seen


def tag_name_variants(tag: Tag) -> List[str]:
    variants = [tag.name, tag.tag_name]
    variants.extend(tag.synonyms or [])
    seen: List[str] = []
    for v in variants:
        n = normalize(v)
        if n and n not in seen:
            seen.append(n)
    return seen


def match_mentions_to_roster(mentions: Iterable[str], roster: Sequence[Person]) -> Set[str]:
    """Ids of roster players any of whose names overlaps any mentioned name."""
    normalized = [normalize(m) for m in mentions]
    normalized = [m for m in normalized if m]
    matched: Set[str] = set()
    for person in roster:
        variants = person_name_variants(person)
        if any(names_overlap(m, v) for m in normalized for v in variants):
            matched.add(person.id)
    return matched


def load_group_roster(db: Session, group_id: str, role: str = "player") -> List[Person]:
    return (
        db.query(Person)
        .join(PersonGroup, PersonGroup.person_id == Person.id)
        .filter(PersonGroup.group_id == group_id, PersonGroup.role == role)
        .order_by(Person.display_name)
        .all()
    )


@dataclass
class EntityMatch:
    extracted_name: str
    confidence: float
    match_type: str  # 'exact' | 'fuzzy' | 'unmatched'
    matched_id: Optional[str] = None
    matched_name: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.matched_id is not None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EntityMatcher:
    """
    Resolves extracted names for one request.

    Candidate rows are loaded once per matcher. Review-queue inserts go
    through the caller's session inside savepoints, so they commit or roll
    back with the request but cannot poison it.
    """

    def __init__(self, db: Session, *, source_text: Optional[str] = None, group_id: Optional[str] = None):
        self.db = db
        self.source_text = source_text
        self.group_id = group_id
        self._people: Optional[List[Person]] = None
        self._tags: Dict[str, List[Tag]] = {}

    # -- candidates -------------------------------------------------------

    def _candidate_people(self) -> List[Person]:
        if self._people is None:
            people: List[Person] = []
            if self.group_id:
                people = load_group_roster(self.db, self.group_id)
            if not people:
                people = self.db.query(Person).order_by(Person.display_name).all()
            self._people = people
        return self._people

    def _candidate_tags(self, tag_type: str) -> List[Tag]:
        if tag_type not in self._tags:
            self._tags[tag_type] = (
                self.db.query(Tag)
                .filter(Tag.tag_type == tag_type, Tag.active.is_(True))
                .order_by(Tag.name)
                .all()
            )
        return self._tags[tag_type]

    # -- matching ---------------------------------------------------------

    @staticmethod
    def _best(name: str, confidence: float, candidates: List[Any], variants_of) -> EntityMatch:
        target = normalize(name)
        for candidate in candidates:
            if target in variants_of(candidate):
                return EntityMatch(name, confidence, "exact", candidate.id, _label(candidate))
        for candidate in candidates:
            if any(names_overlap(target, v) for v in variants_of(candidate)):
                return EntityMatch(
                    name, min(confidence, FUZZY_CONFIDENCE_CAP), "fuzzy", candidate.id, _label(candidate)
                )
        return EntityMatch(name, confidence, "unmatched")

    def match_players(self, entities: Iterable[ExtractedEntity]) -> List[EntityMatch]:
        results = []
        for entity in entities:
            match = self._best(entity.name, entity.confidence, self._candidate_people(), person_name_variants)
            if not match.matched:
                self._flag_name(entity.name)
            results.append(match)
        return results

    def match_tags(self, entities: Iterable[ExtractedEntity], tag_type: str, source_table: str) -> List[EntityMatch]:
        results = []
        for entity in entities:
            match = self._best(entity.name, entity.confidence, self._candidate_tags(tag_type), tag_name_variants)
            if not match.matched:
                self._suggest_tag(entity.name, tag_type, source_table)
            results.append(match)
        return results

    def resolve_tag_names(self, names: Iterable[str], tag_type: str, source_table: str) -> List[EntityMatch]:
        entities = [ExtractedEntity(name=n) for n in names if n and n.strip()]
        return self.match_tags(entities, tag_type, source_table)

    # -- review queues ----------------------------------------------------

    def _flag_name(self, name: str) -> None:
        self._insert_best_effort(
            FlaggedName(
                flagged_name=name,
                observation_text=self.source_text,
                attempted_match=name,
                resolution_status="unmatched",
            ),
            what="flagged name",
        )

    def _suggest_tag(self, name: str, tag_type: str, source_table: str) -> None:
        self._insert_best_effort(
            TagSuggestion(suggested_tag=name, proposed_type=tag_type, source_table=source_table),
            what="tag suggestion",
        )

    def _insert_best_effort(self, row: Any, *, what: str) -> None:
        try:
            with self.db.begin_nested():
                self.db.add(row)
        except SQLAlchemyError as e:
            logger.warning(f"Could not record {what} (non-critical): {e}")


def _label(candidate: Any) -> str:
    if isinstance(candidate, Person):
        return candidate.best_name
    return candidate.name
