import pytest
from datetime import datetime, timezone
import threading

from redis.exceptions import ConnectionError

from api.services.voting import VotingService, parse_idea_id, find_idea, apply_vote
from lib.error_handler import InvalidIdeaIdError, IdeaNotFoundError, VoteProcessingError
from conftest import make_idea, seed_ideas, stored_ideas

FIXED_NOW = datetime(2024, 12, 5, 20, 0, 0, tzinfo=timezone.utc)

@pytest.fixture
def voting_service(storage_service):
    return VotingService(storage_service, default_points_cost=100, clock=lambda: FIXED_NOW)

@pytest.mark.parametrize('user_input', ['5', '42', '012345', '999999'])
def test_parse_short_digit_strings_unchanged(user_input):
    assert parse_idea_id(user_input) == user_input

def test_parse_keeps_leading_zeros():
    assert parse_idea_id('012345') == '012345'
    assert parse_idea_id('000001') == '000001'

def test_parse_long_digit_strings_keep_last_six():
    assert parse_idea_id('1733333333333') == '333333'
    assert parse_idea_id('12345678901234567890') == '567890'
    assert parse_idea_id('1234567') == '234567'

@pytest.mark.parametrize('user_input', ['idea-5', '#5', 'idea 5', 'vote 5', '  VOTE 5  ', 'Idea #5 please'])
def test_parse_mixed_formats(user_input):
    assert parse_idea_id(user_input) == '5'

def test_parse_takes_first_digit_run():
    assert parse_idea_id('idea 12 or 34') == '12'
    assert parse_idea_id('vote for idea 1733333333333!') == '333333'

@pytest.mark.parametrize('user_input', ['invalid', '', '   ', None, 12345, ['5']])
def test_parse_rejects_input_without_digits(user_input):
    assert parse_idea_id(user_input) is None

def test_find_idea_by_suffix_in_list_order():
    ideas = [make_idea('1700001'), make_idea('1800001')]
    index, idea = find_idea(ideas, '800001')
    assert index == 1
    assert idea['id'] == '1800001'

def test_find_idea_exact_match():
    ideas = [make_idea('1733333333333'), make_idea('5')]
    assert find_idea(ideas, '5')[0] == 1

def test_find_idea_earlier_suffix_beats_later_exact():
    ideas = [make_idea('1000123456'), make_idea('123456')]
    index, idea = find_idea(ideas, '123456')
    assert index == 0
    assert idea['id'] == '1000123456'

def test_find_idea_compares_strings_not_numbers():
    ideas = [make_idea('12345')]
    assert find_idea(ideas, '012345') is None

def test_find_idea_skips_unreadable_entries():
    ideas = [None, make_idea('1700001')]
    assert find_idea(ideas, '700001')[0] == 1

def test_find_idea_miss():
    assert find_idea([], '5') is None
    assert find_idea([make_idea('1700001')], '123456') is None

def test_apply_vote_does_not_mutate_original():
    idea = make_idea('1700001', votes=1, voters=[{'userId': 'a'}])
    updated = apply_vote(idea, 'b', 'Bee', 100, '700001', FIXED_NOW.isoformat())
    assert idea['votes'] == 1
    assert len(idea['voters']) == 1
    assert updated['votes'] == 2
    assert len(updated['voters']) == 2

def test_apply_vote_initializes_missing_voters():
    idea = {'id': '1700001', 'votes': 0}
    updated = apply_vote(idea, 'u1', 'User', 100, '1', FIXED_NOW.isoformat())
    assert updated['voters'] == [{
        'userId': 'u1',
        'username': 'User',
        'votedAt': FIXED_NOW.isoformat(),
        'pointsSpent': 100,
        'userInput': '1'
    }]

def test_vote_by_suffix_updates_idea_in_place(voting_service, redis_client):
    existing_voters = [
        {'userId': '1', 'username': 'a', 'votedAt': 'x', 'pointsSpent': 100, 'userInput': '333333'},
        {'userId': '2', 'username': 'b', 'votedAt': 'y', 'pointsSpent': 100, 'userInput': '333333'}
    ]
    seed_ideas(redis_client, [make_idea('1733333333333', votes=2, voters=existing_voters)])

    result = voting_service.process_vote('333333', user_id='99', username='Viewer', points_spent=250)

    assert result.idea_id == '1733333333333'
    assert result.votes == 3
    assert result.voters == 3

    ideas = stored_ideas(redis_client)
    assert len(ideas) == 1
    assert ideas[0]['votes'] == 3
    assert len(ideas[0]['voters']) == 3
    assert ideas[0]['voters'][-1] == {
        'userId': '99',
        'username': 'Viewer',
        'votedAt': FIXED_NOW.isoformat(),
        'pointsSpent': 250,
        'userInput': '333333'
    }
    assert ideas[0]['lastVoteAt'] == FIXED_NOW.isoformat()
    assert redis_client.write_calls() == ['lset']

def test_vote_keeps_other_positions(voting_service, redis_client):
    seed_ideas(redis_client, [make_idea('1700001'), make_idea('1800001'), make_idea('1900001')])

    voting_service.process_vote('800001')

    ideas = stored_ideas(redis_client)
    assert [idea['id'] for idea in ideas] == ['1700001', '1800001', '1900001']
    assert [idea['votes'] for idea in ideas] == [0, 1, 0]

def test_vote_defaults_points_spent(voting_service, redis_client):
    seed_ideas(redis_client, [make_idea('1700001')])

    voting_service.process_vote('idea 700001')

    assert stored_ideas(redis_client)[0]['voters'][0]['pointsSpent'] == 100

def test_duplicate_votes_are_counted(voting_service, redis_client):
    seed_ideas(redis_client, [make_idea('1700001')])

    voting_service.process_vote('700001', user_id='1')
    result = voting_service.process_vote('700001', user_id='1')

    assert result.votes == 2
    idea = stored_ideas(redis_client)[0]
    assert idea['votes'] == len(idea['voters']) == 2

@pytest.mark.parametrize('user_input', ['', None, 'no digits here'])
def test_invalid_input_never_touches_storage(voting_service, redis_client, user_input):
    with pytest.raises(InvalidIdeaIdError) as exc_info:
        voting_service.process_vote(user_input)

    assert exc_info.value.user_message == 'Invalid idea ID format'
    assert exc_info.value.status_code == 400
    assert redis_client.calls == []

def test_empty_list_is_not_found(voting_service, redis_client):
    with pytest.raises(IdeaNotFoundError) as exc_info:
        voting_service.process_vote('5')

    assert exc_info.value.user_message == 'Idea not found'
    assert exc_info.value.status_code == 400
    assert redis_client.write_calls() == []
    assert stored_ideas(redis_client) == []

def test_load_failure_is_processing_error(voting_service, redis_client):
    redis_client.fail = True

    with pytest.raises(VoteProcessingError) as exc_info:
        voting_service.process_vote('5')

    assert exc_info.value.user_message == 'Failed to process vote'
    assert exc_info.value.status_code == 500

def test_persist_failure_leaves_idea_unchanged(voting_service, redis_client):
    seed_ideas(redis_client, [make_idea('1700001', votes=4, voters=[{}] * 4)])
    redis_client.fail_writes = True

    with pytest.raises(VoteProcessingError):
        voting_service.process_vote('700001')

    idea = stored_ideas(redis_client)[0]
    assert idea['votes'] == 4
    assert len(idea['voters']) == 4
    assert 'lastVoteAt' not in idea

def test_garbled_vote_count_is_processing_error(voting_service, redis_client):
    seed_ideas(redis_client, [make_idea('1700001', votes='lots')])

    with pytest.raises(VoteProcessingError) as exc_info:
        voting_service.process_vote('700001')

    assert exc_info.value.status_code == 500
    assert redis_client.write_calls() == []
    assert stored_ideas(redis_client)[0]['votes'] == 'lots'

def test_garbled_voters_list_is_processing_error(voting_service, redis_client):
    seed_ideas(redis_client, [make_idea('1700001', votes=1, voters='alice')])

    with pytest.raises(VoteProcessingError):
        voting_service.process_vote('700001')

    assert redis_client.write_calls() == []

def test_apply_vote_rejects_non_numeric_votes():
    with pytest.raises(ValueError):
        apply_vote(make_idea('1700001', votes={'n': 1}), 'u1', 'User', 100, '1', FIXED_NOW.isoformat())

class LockstepStorage:
    """Storage wrapper that holds every caller after load_ideas until all of them have loaded"""

    def __init__(self, storage, barrier):
        self.storage = storage
        self.barrier = barrier

    def load_ideas(self):
        ideas = self.storage.load_ideas()
        self.barrier.wait()
        return ideas

    def __getattr__(self, name):
        return getattr(self.storage, name)

def test_concurrent_votes_lose_an_update(redis_client, storage_service):
    """Two invocations that both read before either writes record only one vote."""
    seed_ideas(redis_client, [make_idea('1700001')])
    racing_storage = LockstepStorage(storage_service, threading.Barrier(2, timeout=5))
    results = []
    errors = []

    def vote(user_id):
        try:
            service = VotingService(racing_storage, clock=lambda: FIXED_NOW)
            results.append(service.process_vote('700001', user_id=user_id))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=vote, args=(user_id,)) for user_id in ('a', 'b')]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert errors == []
    assert [result.votes for result in results] == [1, 1]
    idea = stored_ideas(redis_client)[0]
    assert idea['votes'] == 1
    assert len(idea['voters']) == 1
    assert idea['voters'][0]['userId'] in ('a', 'b')
