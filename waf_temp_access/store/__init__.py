from .base import RuleStore, VersionedSetStore
from .errors import AuthError, DuplicateRuleError, RuleNotFoundError, StaleTokenError, StoreError, TemporaryError
from .factory import make_session, make_stores
from .memory import MemoryIpSetStore, MemoryRuleStore
from .types import AllowListRef, AllowListSnapshot, IngressRuleSpec
