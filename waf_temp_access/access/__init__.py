from .backoff import UNVERSIONED_POLICY, VERSIONED_POLICY, RetryPolicy
from .cidr import to_cidr
from .coordinator import AccessCoordinator
from .errors import AccessGrantError, LockExhaustedError
from .factory import make_coordinator
from .results import FailureKind, GrantRecord, IpSetGrant, MutationResult, Outcome, RuleGrant
from .state import clear_state, load_state, save_state
from .unversioned import UnversionedRuleMutator
from .versioned import VersionedSetMutator
