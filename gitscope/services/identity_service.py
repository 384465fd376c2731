"""
Email and identity resolution used by the statistics engine.

Resolution is one hop: a merge ``alias -> middle`` plus ``middle -> canonical``
attributes commits by ``alias`` to ``middle`` and commits by ``middle`` to
``canonical``.
"""

from dataclasses import dataclass, field
from typing import Dict, Set

from bson import ObjectId
from pymongo.database import Database

from gitscope.repositories.person import (
    EmailMergeRepository,
    GitHubPersonEmailRepository,
    PersonRepository,
)


@dataclass
class IdentityMap:
    merges: Dict[str, str] = field(default_factory=dict)
    primary_email_by_github_person: Dict[ObjectId, str] = field(default_factory=dict)

    def emails_for(self, github_person_id: ObjectId) -> Set[str]:
        """Emails whose commits count for this GitHub person; empty when unlinked."""
        primary = self.primary_email_by_github_person.get(github_person_id)
        if not primary:
            return set()
        # A primary email that is itself merged away belongs to its target
        emails = set() if primary in self.merges else {primary}
        emails.update(source for source, target in self.merges.items() if target == primary)
        return emails


class IdentityService:
    def __init__(self, db: Database):
        self.merge_repo = EmailMergeRepository(db)
        self.person_email_repo = GitHubPersonEmailRepository(db)
        self.person_repo = PersonRepository(db)

    def load(self, project_id: ObjectId) -> IdentityMap:
        links = self.person_email_repo.find_by_project(project_id)
        people = {p.id: p for p in self.person_repo.find_by_ids([link.person_id for link in links])}
        primary = {
            link.github_person_id: people[link.person_id].primary_email
            for link in links
            if link.person_id in people
        }
        return IdentityMap(
            merges=self.merge_repo.merge_map(project_id),
            primary_email_by_github_person=primary,
        )
