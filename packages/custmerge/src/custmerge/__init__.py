"""custmerge - Customer name duplicate detection and merge-rule validation."""

from custmerge.config import MatchConfig
from custmerge.errors import ConfigError, CustmergeError, EmptyNameError
from custmerge.scanner import MergeScanner, MergeService
from custmerge.scoring import PairScorer
from custmerge.store import JsonMergeStore
from custmerge.types import MergeGroupCandidate, MergeRule, ScanResult, SimilarityResult, ValidationResult
from custmerge.validation import RuleValidator

__all__ = [
    "ConfigError",
    "CustmergeError",
    "EmptyNameError",
    "JsonMergeStore",
    "MatchConfig",
    "MergeGroupCandidate",
    "MergeRule",
    "MergeScanner",
    "MergeService",
    "PairScorer",
    "RuleValidator",
    "ScanResult",
    "SimilarityResult",
    "ValidationResult",
]
