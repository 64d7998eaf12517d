"""Model types for chain configuration and runtime."""

from quick_chain.models.branch_spec import DEFAULT_BRANCH
from quick_chain.models.branch_spec import BranchSpec
from quick_chain.models.chain_run import ChainOutcome
from quick_chain.models.chain_run import ChainRun
from quick_chain.models.chain_spec import ChainSpec
from quick_chain.models.kinds import ChainKind
from quick_chain.models.kinds import ChainStatus
from quick_chain.models.kinds import ErrorKind
from quick_chain.models.kinds import FailureMode
from quick_chain.models.kinds import StepFailureKind
from quick_chain.models.model_spec import ModelSpec
from quick_chain.models.retry_policy import RetryPolicy
from quick_chain.models.run_input import RunInput
from quick_chain.models.step_result import StepError
from quick_chain.models.step_result import StepResult
from quick_chain.models.step_spec import StepSpec

__all__ = [
    "DEFAULT_BRANCH",
    "BranchSpec",
    "ChainKind",
    "ChainOutcome",
    "ChainRun",
    "ChainSpec",
    "ChainStatus",
    "ErrorKind",
    "FailureMode",
    "ModelSpec",
    "RetryPolicy",
    "RunInput",
    "StepError",
    "StepFailureKind",
    "StepResult",
    "StepSpec",
]
