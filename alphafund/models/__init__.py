"""SQLModel table models — import here so metadata is populated."""

from alphafund.models.event import FundEventRecord  # noqa: F401
from alphafund.models.fund import FundRecord  # noqa: F401
from alphafund.models.investor import InvestorPosition  # noqa: F401
from alphafund.models.member import MemberRecord  # noqa: F401
from alphafund.models.proposal import ProposalRecord  # noqa: F401
