"""Channel points voting: match a viewer's free-text redemption to a submitted idea.

Viewers type anything containing the idea's vote code ("5", "#5", "idea 123456",
or the whole millisecond ID). The first run of digits is taken as the candidate
and compared as a string against each idea's full ID and its last six characters.
"""
import copy
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Tuple

from redis.exceptions import RedisError

from lib.error_handler import InvalidIdeaIdError, IdeaNotFoundError, VoteProcessingError, StorageError
from .storage import StorageService

logger = logging.getLogger(__name__)

VOTE_CODE_LENGTH = 6
DIGIT_RUN = re.compile(r'\d+')

@dataclass
class VoteResult:
    idea_id: str
    votes: int
    voters: int

def parse_idea_id(user_input) -> Optional[str]:
    """Extract the candidate idea ID from redemption text, or None"""
    if not user_input or not isinstance(user_input, str):
        return None

    match = DIGIT_RUN.search(user_input.lower().strip())
    if not match:
        return None

    digits = match.group(0)
    if len(digits) <= VOTE_CODE_LENGTH:
        return digits
    return digits[-VOTE_CODE_LENGTH:]

def find_idea(ideas: List[Optional[Dict[str, Any]]], candidate: str) -> Optional[Tuple[int, Dict[str, Any]]]:
    """Return (position, idea) of the first idea whose ID or vote code equals candidate.

    Exact and suffix checks run together per idea, so an earlier suffix match wins
    over a later exact match.
    """
    for index, idea in enumerate(ideas):
        if not isinstance(idea, dict):
            continue
        idea_id = str(idea.get('id', ''))
        if idea_id == candidate or idea_id[-VOTE_CODE_LENGTH:] == candidate:
            return index, idea
    return None

def apply_vote(idea: Dict[str, Any], user_id: Optional[str], username: Optional[str],
               points_spent: int, user_input: str, voted_at: str) -> Dict[str, Any]:
    """Return a copy of idea with one more vote recorded.

    Raises ValueError when the stored votes or voters fields are unusable.
    """
    updated = copy.deepcopy(idea)
    try:
        updated['votes'] = int(updated.get('votes') or 0) + 1
    except (TypeError, ValueError):
        raise ValueError(f"Idea {updated.get('id')} has a non-numeric vote count: {updated.get('votes')!r}")
    voters = updated.get('voters') or []
    if not isinstance(voters, list):
        raise ValueError(f"Idea {updated.get('id')} has a malformed voters list")
    updated['voters'] = voters
    updated['voters'].append({
        'userId': user_id,
        'username': username,
        'votedAt': voted_at,
        'pointsSpent': points_spent,
        'userInput': user_input
    })
    updated['lastVoteAt'] = voted_at
    return updated

class VotingService:
    def __init__(self, storage_service: StorageService, default_points_cost: int = 100, clock=None):
        self.storage = storage_service
        self.default_points_cost = default_points_cost
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def process_vote(self, user_input, user_id: Optional[str] = None, username: Optional[str] = None,
                     points_spent: Optional[int] = None) -> VoteResult:
        """Record one vote for the idea referenced by user_input.

        Load, mutate and write back are separate Redis calls with no lock, so two
        concurrent votes for the same idea can lose one update.
        """
        candidate = parse_idea_id(user_input)
        if candidate is None:
            raise InvalidIdeaIdError(f"Could not parse an idea ID from: {user_input!r}")

        logger.info(f"Processing vote for candidate {candidate} from {username} ({user_id})")

        try:
            ideas = self.storage.load_ideas()
        except (RedisError, StorageError) as e:
            raise VoteProcessingError(f"Failed to load ideas: {str(e)}")

        found = find_idea(ideas, candidate)
        if found is None:
            raise IdeaNotFoundError(f"No idea matches candidate {candidate} ({len(ideas)} ideas checked)")

        index, idea = found
        if points_spent is None:
            points_spent = self.default_points_cost

        voted_at = self.clock().isoformat()
        try:
            updated = apply_vote(idea, user_id, username, points_spent, user_input, voted_at)
        except ValueError as e:
            raise VoteProcessingError(str(e))

        try:
            self.storage.replace_idea(index, updated)
        except (RedisError, StorageError) as e:
            raise VoteProcessingError(f"Failed to store vote for idea {updated.get('id')}: {str(e)}")

        logger.info(f"Vote recorded for idea {updated['id']}: {updated['votes']} votes")
        return VoteResult(
            idea_id=str(updated['id']),
            votes=updated['votes'],
            voters=len(updated['voters'])
        )
