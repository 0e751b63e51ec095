"""
Governance gate — member roster and proposal voting.

Quorum and threshold are expressed in basis points and looked up per proposal
kind from a :class:`GovernanceConfig`, so the rules that decide custody-level
changes sit in one auditable structure.

Voting is decided eagerly on each vote:

* quorum met *and* threshold met  → ``Passed``
* threshold unreachable even if every remaining member votes for → ``Rejected``

Expiry is lazy: there is no scheduler, so an ``Open`` proposal whose window
has elapsed is *reported* as ``Expired`` (or ``Rejected`` if quorum was met
but the threshold was not) by :meth:`GovernanceGate.status_of` without any
stored field changing.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from alphafund.core.exceptions import (
    AlreadyExecuted,
    AlreadyMember,
    AlreadyVoted,
    FundClosed,
    InvalidProposal,
    NotMember,
    NotPassed,
    ProposalClosed,
    ProposalNotFound,
    QuorumImpossible,
)
from alphafund.engine.state import (
    BPS_DENOMINATOR,
    EventKind,
    FundState,
    FundStatus,
    Manager,
    Proposal,
    ProposalKind,
    ProposalStatus,
)

logger = logging.getLogger(__name__)


class VotingRules(BaseModel):
    """Quorum over active members and threshold over votes cast, in bps."""

    model_config = ConfigDict(frozen=True)

    quorum_bps: int = Field(6000, gt=0, le=BPS_DENOMINATOR)
    threshold_bps: int = Field(5001, ge=0, le=BPS_DENOMINATOR)

    def quorum_met(self, cast: int, eligible: int) -> bool:
        return cast * BPS_DENOMINATOR >= self.quorum_bps * eligible

    def threshold_met(self, votes_for: int, cast: int) -> bool:
        return cast > 0 and votes_for * BPS_DENOMINATOR >= self.threshold_bps * cast


class GovernanceConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    voting_window: int = Field(3 * 24 * 60 * 60, gt=0)
    default_rules: VotingRules = VotingRules()
    overrides: Dict[ProposalKind, VotingRules] = Field(default_factory=dict)

    def rules_for(self, kind: ProposalKind) -> VotingRules:
        return self.overrides.get(kind, self.default_rules)


class GovernanceGate:
    """Roster checks and the proposal state machine over a :class:`FundState`."""

    def __init__(self, config: GovernanceConfig):
        self.config = config

    # ── Roster ──

    @staticmethod
    def active_members(state: FundState) -> List[Manager]:
        return [m for m in state.members.values() if m.active]

    @staticmethod
    def is_active(state: FundState, account: str) -> bool:
        member = state.members.get(account)
        return member is not None and member.active

    def require_member(self, state: FundState, account: str) -> Manager:
        if not self.is_active(state, account):
            raise NotMember(f"Account '{account}' is not an active member")
        return state.members[account]

    @staticmethod
    def admit(state: FundState, account: str, now: int) -> bool:
        """Activate ``account`` as a manager; False if it already was one."""
        member = state.members.get(account)
        if member is None:
            state.members[account] = Manager(account=account, active=True, joined_at=now)
            return True
        if member.active:
            return False
        # Rejoining keeps any commission still owed from the earlier tenure.
        member.active = True
        member.joined_at = now
        return True

    def deactivate(self, state: FundState, account: str) -> bool:
        """Deactivate ``account``; False if it was not active."""
        if not self.is_active(state, account):
            return False
        if len(self.active_members(state)) <= 1:
            raise QuorumImpossible("Cannot remove the last active manager")
        state.members[account].active = False
        return True

    # ── Proposals ──

    def get(self, state: FundState, proposal_id: int) -> Proposal:
        proposal = state.proposals.get(proposal_id)
        if proposal is None:
            raise ProposalNotFound(proposal_id)
        return proposal

    def status_of(self, state: FundState, proposal: Proposal, now: int) -> ProposalStatus:
        """Effective status, resolving an elapsed voting window lazily."""
        if proposal.status != ProposalStatus.OPEN or now < proposal.closes_at:
            return proposal.status
        rules = self.config.rules_for(proposal.kind)
        eligible = len(self.active_members(state))
        if rules.quorum_met(proposal.votes_cast, eligible):
            return ProposalStatus.REJECTED
        return ProposalStatus.EXPIRED

    def propose(
        self,
        state: FundState,
        proposer: str,
        kind: ProposalKind,
        payload: Optional[Mapping[str, Any]],
        now: int,
    ) -> Proposal:
        self.require_member(state, proposer)
        clean = self._validate_payload(state, kind, dict(payload or {}))

        proposal = Proposal(
            id=state.next_proposal_id,
            kind=kind,
            payload=clean,
            proposer=proposer,
            created_at=now,
            closes_at=now + self.config.voting_window,
        )
        state.proposals[proposal.id] = proposal
        state.next_proposal_id += 1
        state.emit(
            EventKind.PROPOSAL_CREATED,
            account=proposer,
            proposal_id=proposal.id,
            data={"kind": kind.value, "payload": clean},
        )
        return proposal

    def _validate_payload(
        self, state: FundState, kind: ProposalKind, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        if kind in (ProposalKind.ADD_MANAGER, ProposalKind.REMOVE_MANAGER):
            account = payload.get("account")
            if not isinstance(account, str) or not account:
                raise InvalidProposal(f"{kind.value} requires a non-empty 'account'")
            if kind == ProposalKind.ADD_MANAGER:
                if self.is_active(state, account):
                    raise AlreadyMember(f"Account '{account}' is already an active member")
            else:
                if not self.is_active(state, account):
                    raise NotMember(f"Account '{account}' is not an active member")
                if len(self.active_members(state)) <= 1:
                    raise QuorumImpossible(
                        "Removing the last active manager would leave no one to vote"
                    )
            return {"account": account}

        if kind == ProposalKind.CHANGE_COMMISSION_RATE:
            rate = payload.get("rate_bps")
            if isinstance(rate, bool) or not isinstance(rate, int):
                raise InvalidProposal("ChangeCommissionRate requires an integer 'rate_bps'")
            if not 0 <= rate <= BPS_DENOMINATOR:
                raise InvalidProposal(f"rate_bps must be between 0 and 10000 (got {rate})")
            return {"rate_bps": rate}

        if state.status == FundStatus.CLOSED:
            raise FundClosed("Fund is already closed")
        return {}

    def vote(
        self, state: FundState, voter: str, proposal_id: int, support: bool, now: int
    ) -> ProposalStatus:
        """Record one vote and decide the proposal if the outcome is settled."""
        self.require_member(state, voter)
        proposal = self.get(state, proposal_id)

        status = self.status_of(state, proposal, now)
        if status != ProposalStatus.OPEN:
            raise ProposalClosed(f"Proposal {proposal_id} is {status.value}")
        if proposal.has_voted(voter):
            raise AlreadyVoted(f"Account '{voter}' already voted on proposal {proposal_id}")

        (proposal.votes_for if support else proposal.votes_against).add(voter)
        state.emit(
            EventKind.VOTE_CAST,
            account=voter,
            proposal_id=proposal_id,
            data={"support": support},
        )

        decided = self._evaluate(state, proposal)
        if decided != ProposalStatus.OPEN:
            proposal.status = decided
            proposal.decided_at = now
            state.emit(
                EventKind.PROPOSAL_DECIDED,
                proposal_id=proposal_id,
                data={
                    "status": decided.value,
                    "for": len(proposal.votes_for),
                    "against": len(proposal.votes_against),
                },
            )
            logger.info(
                "Proposal %d %s (%d for, %d against)",
                proposal_id,
                decided.value,
                len(proposal.votes_for),
                len(proposal.votes_against),
            )
        return proposal.status

    def _evaluate(self, state: FundState, proposal: Proposal) -> ProposalStatus:
        rules = self.config.rules_for(proposal.kind)
        active = {m.account for m in self.active_members(state)}
        votes_for = len(proposal.votes_for)
        cast = proposal.votes_cast

        if rules.quorum_met(cast, len(active)) and rules.threshold_met(votes_for, cast):
            return ProposalStatus.PASSED

        remaining = len(active - proposal.votes_for - proposal.votes_against)
        if not rules.threshold_met(votes_for + remaining, cast + remaining):
            return ProposalStatus.REJECTED
        return ProposalStatus.OPEN

    def claim_for_execution(self, state: FundState, proposal_id: int, now: int) -> Proposal:
        """Check a proposal may be executed; the caller applies the effect."""
        proposal = self.get(state, proposal_id)
        status = self.status_of(state, proposal, now)
        if status == ProposalStatus.EXECUTED:
            raise AlreadyExecuted(f"Proposal {proposal_id} was already executed")
        if status != ProposalStatus.PASSED:
            raise NotPassed(f"Proposal {proposal_id} is {status.value}, not Passed")
        return proposal

    @staticmethod
    def mark_executed(state: FundState, proposal: Proposal, now: int, effect: str) -> None:
        proposal.status = ProposalStatus.EXECUTED
        proposal.executed_at = now
        state.emit(
            EventKind.PROPOSAL_EXECUTED,
            proposal_id=proposal.id,
            data={"kind": proposal.kind.value, "effect": effect},
        )
