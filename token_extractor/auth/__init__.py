"""Login flow, token capture and session hygiene."""

from .authenticator import LoginSession, LoginState, StepOutcome, TokenAuthenticator, build_authenticator
from .hygiene import secure_cleanup
from .settings import LoginFlowSettings, SelectorStrategies
from .token_capture import NetworkTokenObserver, TokenSlot, find_token_in_value, scan_storage

__all__ = [
    'LoginSession',
    'LoginState',
    'StepOutcome',
    'TokenAuthenticator',
    'build_authenticator',
    'secure_cleanup',
    'LoginFlowSettings',
    'SelectorStrategies',
    'NetworkTokenObserver',
    'TokenSlot',
    'find_token_in_value',
    'scan_storage',
]
