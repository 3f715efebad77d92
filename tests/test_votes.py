import threading

import pytest

from council_node.council_runtime.errors import (
    DuplicateVoteError,
    NotFoundError,
    ProposalClosedError,
    ValidationError,
)
from council_node.council_runtime.models import Tally
from council_node.council_runtime.proposals import ProposalStore
from council_node.council_runtime.votes import VoteLedger


@pytest.fixture
def store(clock):
    return ProposalStore(clock=clock)


@pytest.fixture
def ledger(store, clock):
    return VoteLedger(store, clock=clock)


@pytest.fixture
def pid(store):
    return store.create("T", "D", "alice").id


def test_single_vote_counts_once(ledger, pid):
    vote = ledger.cast(pid, "bob", "approve")

    assert vote.proposal_id == pid
    assert vote.voter == "bob"
    assert vote.choice == "approve"
    assert vote.timestamp
    assert ledger.tally(pid) == Tally(approve=1)
    assert ledger.tally(pid).total == 1
    assert ledger.has_voted(pid, "bob")
    assert not ledger.has_voted(pid, "carol")


def test_second_vote_same_voter_rejected(ledger, pid):
    ledger.cast(pid, "bob", "approve")
    before = ledger.tally(pid)

    with pytest.raises(DuplicateVoteError):
        ledger.cast(pid, "bob", "reject")

    assert ledger.tally(pid) == before
    assert len(ledger) == 1


@pytest.mark.parametrize("padded", [" bob", "bob ", "  bob\t"])
def test_has_voted_matches_duplicate_check_for_padded_names(ledger, pid, padded):
    ledger.cast(pid, "bob", "approve")

    assert ledger.has_voted(pid, padded)
    with pytest.raises(DuplicateVoteError):
        ledger.cast(pid, padded, "reject")


def test_has_voted_blank_voter(ledger, pid):
    assert not ledger.has_voted(pid, "   ")


def test_same_voter_on_two_proposals(ledger, store, pid):
    other = store.create("T2", "D2", "alice").id
    ledger.cast(pid, "bob", "approve")
    ledger.cast(other, "bob", "reject")
    assert ledger.tally(pid).approve == 1
    assert ledger.tally(other).reject == 1


def test_unknown_proposal(ledger):
    with pytest.raises(NotFoundError):
        ledger.cast("unknown-id", "bob", "approve")
    assert len(ledger) == 0


@pytest.mark.parametrize("choice", ["maybe", "", "yes", None])
def test_invalid_choice_rejected(ledger, pid, choice):
    with pytest.raises(ValidationError):
        ledger.cast(pid, "bob", choice)
    assert not ledger.has_voted(pid, "bob")


def test_choice_is_normalised(ledger, pid):
    assert ledger.cast(pid, "bob", " Approve ").choice == "approve"


def test_blank_voter_rejected(ledger, pid):
    with pytest.raises(ValidationError):
        ledger.cast(pid, "  ", "approve")


def test_closed_proposal_rejects_votes(ledger, store, pid):
    store.transition(pid, "approved")
    with pytest.raises(ProposalClosedError):
        ledger.cast(pid, "bob", "approve")


def test_active_proposal_accepts_votes(ledger, store, pid):
    store.transition(pid, "active")
    ledger.cast(pid, "bob", "abstain")
    assert ledger.tally(pid).abstain == 1


def test_tally_partitions_votes(ledger, pid):
    choices = ["approve", "reject", "abstain", "approve", "approve", "abstain"]
    for i, c in enumerate(choices):
        ledger.cast(pid, f"member-{i}", c)

    t = ledger.tally(pid)
    assert (t.approve, t.reject, t.abstain) == (3, 1, 2)
    assert t.approve + t.reject + t.abstain == t.total == len(ledger.list_for(pid))
    assert t.percentages() == {"approve": 50.0, "reject": 16.7, "abstain": 33.3}


def test_empty_tally(ledger, pid):
    t = ledger.tally(pid)
    assert t.to_dict() == {"approve": 0, "reject": 0, "abstain": 0, "total": 0}
    assert t.percentages() == {"approve": 0.0, "reject": 0.0, "abstain": 0.0}


def test_list_for_ordering(ledger, pid):
    ledger.cast(pid, "a", "approve")
    ledger.cast(pid, "b", "reject")
    ledger.cast(pid, "c", "abstain")

    assert [v.voter for v in ledger.list_for(pid)] == ["a", "b", "c"]
    assert [v.voter for v in ledger.list_for(pid, newest_first=True)] == ["c", "b", "a"]
    assert ledger.list_for("other") == []


def test_restore_drops_persisted_duplicates(ledger, pid):
    first = ledger.cast(pid, "bob", "approve")
    ledger.restore([first, first])
    assert len(ledger) == 1


def test_concurrent_casts_for_same_key(ledger, pid):
    """Only one of many simultaneous casts by the same voter may succeed."""
    barrier = threading.Barrier(16)
    results = []

    def worker(choice):
        barrier.wait()
        try:
            ledger.cast(pid, "bob", choice)
            results.append("ok")
        except DuplicateVoteError:
            results.append("dup")

    threads = [threading.Thread(target=worker, args=(["approve", "reject"][i % 2],)) for i in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count("ok") == 1
    assert results.count("dup") == 15
    assert ledger.tally(pid).total == 1
