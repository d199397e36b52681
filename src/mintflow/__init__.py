from .config import MintConfig, load_config_from_env
from .engine.exceptions import MintFlowError
from .engine.session import MintOutcome, MintState
from .minting import MintOrchestrator
from .schemas import AnalysisResult, MintRequest, UserContext

__all__ = [
    "MintConfig",
    "load_config_from_env",
    "MintFlowError",
    "MintOutcome",
    "MintState",
    "MintOrchestrator",
    "AnalysisResult",
    "MintRequest",
    "UserContext",
]
