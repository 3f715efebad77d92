import random
import threading

import pytest

from council_node.council_runtime.errors import (
    DuplicateVoteError,
    InvalidTransitionError,
    NotFoundError,
    ProposalClosedError,
    StorageError,
    ValidationError,
)


# ============================================================
# Scenarios
# ============================================================


def test_submit_proposal_scenario(service):
    p = service.submit_proposal("T", "D", "alice")

    assert p.status == "pending"
    assert service.total_proposals == 1
    entries = service.audit_log()
    assert len(entries) == 1
    assert entries[0].action == "proposal_submitted"
    assert entries[0].actor == "alice"
    assert entries[0].details == {"proposal_id": p.id, "title": "T"}


def test_double_vote_scenario(service, proposal):
    service.cast_vote(proposal.id, "bob", "approve")
    with pytest.raises(DuplicateVoteError):
        service.cast_vote(proposal.id, "bob", "reject")

    assert service.tally(proposal.id).to_dict() == {"approve": 1, "reject": 0, "abstain": 0, "total": 1}


def test_unknown_proposal_scenario(service, proposal):
    votes_before = service.total_votes
    audit_before = service.total_audit_entries

    with pytest.raises(NotFoundError):
        service.cast_vote("unknown-id", "bob", "approve")

    assert service.total_votes == votes_before
    assert service.total_audit_entries == audit_before


# ============================================================
# Properties
# ============================================================


def test_cast_vote_writes_one_audit_entry(service, proposal):
    vote = service.cast_vote(proposal.id, "bob", "abstain")
    entry = service.audit_log(limit=1)[0]

    assert entry.action == "vote_cast"
    assert entry.actor == "bob"
    assert entry.details == {"proposal_id": proposal.id, "choice": "abstain"}
    assert vote.voter == "bob"
    assert service.total_audit_entries == 2


def test_random_command_sequence_keeps_invariants(service):
    rng = random.Random(1234)
    actors = ["alice", "bob", "carol", "dave"]
    pids = []

    for _ in range(300):
        before = service.total_audit_entries
        try:
            if not pids or rng.random() < 0.15:
                title = rng.choice(["T", "", "  ", "Budget"])
                pids.append(service.submit_proposal(title, "D", rng.choice(actors)).id)
            else:
                pid = rng.choice(pids + ["unknown-id"])
                service.cast_vote(pid, rng.choice(actors), rng.choice(["approve", "reject", "abstain"]))
        except (ValidationError, NotFoundError, DuplicateVoteError):
            assert service.total_audit_entries == before
        else:
            assert service.total_audit_entries == before + 1

    for pid in pids:
        t = service.tally(pid)
        assert t.approve + t.reject + t.abstain == t.total == len(service.votes_for(pid))
        voters = [v.voter for v in service.votes_for(pid)]
        assert len(voters) == len(set(voters))

    assert service.total_audit_entries == service.total_proposals + service.total_votes


def test_failed_submit_writes_no_audit(service):
    with pytest.raises(ValidationError):
        service.submit_proposal("   ", "D", "alice")
    with pytest.raises(ValidationError):
        service.submit_proposal("T", "D", "")
    assert service.total_proposals == 0
    assert service.total_audit_entries == 0


# ============================================================
# Status transitions
# ============================================================


def test_update_status_is_audited(service, proposal):
    updated = service.update_proposal_status(proposal.id, "active", "chair")

    assert updated.status == "active"
    entry = service.audit_log(limit=1)[0]
    assert entry.action == "proposal_status_changed"
    assert entry.actor == "chair"
    assert entry.details == {"proposal_id": proposal.id, "from": "pending", "to": "active"}


def test_bad_status_update_leaves_state_untouched(service, proposal):
    service.update_proposal_status(proposal.id, "rejected", "chair")
    before = service.total_audit_entries

    with pytest.raises(InvalidTransitionError):
        service.update_proposal_status(proposal.id, "approved", "chair")
    with pytest.raises(NotFoundError):
        service.update_proposal_status("unknown-id", "active", "chair")
    with pytest.raises(ValidationError):
        service.update_proposal_status(proposal.id, "approved", " ")

    assert service.total_audit_entries == before
    assert service.get_proposal(proposal.id).status == "rejected"


def test_votes_rejected_after_close(service, proposal):
    service.update_proposal_status(proposal.id, "approved", "chair")
    with pytest.raises(ProposalClosedError):
        service.cast_vote(proposal.id, "bob", "approve")
    assert service.total_votes == 0
    # submission + status change only
    assert service.total_audit_entries == 2


# ============================================================
# Read projections
# ============================================================


def test_dashboard_counters(service):
    a = service.submit_proposal("A", "D", "alice")
    b = service.submit_proposal("B", "D", "alice")
    c = service.submit_proposal("C", "D", "alice")
    service.update_proposal_status(b.id, "active", "chair")
    service.update_proposal_status(c.id, "rejected", "chair")
    service.cast_vote(a.id, "bob", "approve")

    assert service.stats() == {
        "total_proposals": 3,
        "active_proposals": 2,
        "total_votes": 1,
        "total_audit_entries": 6,
    }


def test_proposals_needing_vote_from(service):
    a = service.submit_proposal("A", "D", "alice")
    b = service.submit_proposal("B", "D", "alice")
    c = service.submit_proposal("C", "D", "alice")
    service.update_proposal_status(c.id, "approved", "chair")
    service.cast_vote(a.id, "bob", "approve")

    assert [p.id for p in service.proposals_needing_vote_from("bob")] == [b.id]
    assert [p.id for p in service.proposals_needing_vote_from("carol")] == [a.id, b.id]
    assert [p.id for p in service.proposals_needing_vote_from(" bob ")] == [b.id]


def test_audit_log_cannot_be_rewritten_by_readers(service, proposal):
    with pytest.raises(TypeError):
        service.audit_log()[0].details["proposal_id"] = "tampered"
    assert service.audit_log()[0].details == {"proposal_id": proposal.id, "title": "T"}


def test_list_proposals_orders(service):
    a = service.submit_proposal("A", "D", "alice")
    b = service.submit_proposal("B", "D", "alice")
    service.cast_vote(a.id, "bob", "approve")
    service.cast_vote(a.id, "carol", "reject")

    assert [p.id for p in service.list_proposals()] == [b.id, a.id]
    assert [p.id for p in service.list_proposals(order="oldest")] == [a.id, b.id]
    assert [p.id for p in service.list_proposals(order="most_votes")] == [a.id, b.id]


def test_audit_log_newest_first_with_limit(service, proposal):
    service.cast_vote(proposal.id, "bob", "approve")
    service.cast_vote(proposal.id, "carol", "approve")

    actions = [(e.action, e.actor) for e in service.audit_log(limit=2)]
    assert actions == [("vote_cast", "carol"), ("vote_cast", "bob")]
    assert [e.action for e in service.audit_log(newest_first=False)][0] == "proposal_submitted"


def test_get_proposal_unknown(service):
    with pytest.raises(NotFoundError):
        service.get_proposal("missing")


# ============================================================
# Storage failures and concurrency
# ============================================================


class BrokenStore:
    path = "broken.json"

    def save(self, state):
        raise OSError("disk full")

    def load(self):
        return None


def test_storage_failure_rolls_back_command(service, proposal):
    service.state_store = BrokenStore()

    with pytest.raises(StorageError):
        service.cast_vote(proposal.id, "bob", "approve")
    with pytest.raises(StorageError):
        service.submit_proposal("T2", "D2", "alice")

    assert service.total_votes == 0
    assert not service.has_voted(proposal.id, "bob")
    assert service.total_proposals == 1
    assert service.total_audit_entries == 1


def test_storage_failure_rolls_back_status_change(service, proposal):
    service.state_store = BrokenStore()
    with pytest.raises(StorageError):
        service.update_proposal_status(proposal.id, "active", "chair")
    assert service.get_proposal(proposal.id).status == "pending"


def test_concurrent_voters(service, proposal):
    barrier = threading.Barrier(20)
    errors = []

    def worker(i):
        barrier.wait()
        voter = f"member-{i % 10}"
        try:
            service.cast_vote(proposal.id, voter, "approve")
        except DuplicateVoteError:
            errors.append(voter)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert service.tally(proposal.id).total == 10
    assert len(errors) == 10
    assert service.total_audit_entries == 11
