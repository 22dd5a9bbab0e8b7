from functools import lru_cache
from typing import Optional
from fastapi import Depends
from loginguard.config import settings
from loginguard.core.store import Store
from loginguard.security.captcha_manager import ProofVerifier, ProviderVerifier
from loginguard.security.login_guard import LoginGuard
from loginguard.services.retention_sweeper import RetentionSweeper


@lru_cache
def get_store() -> Store:
    return Store(settings=settings)


def get_verifier() -> Optional[ProofVerifier]:
    return ProviderVerifier(settings)


def get_login_guard(
    store: Store = Depends(get_store),
    verifier: Optional[ProofVerifier] = Depends(get_verifier)
) -> LoginGuard:
    return LoginGuard(store=store, settings=store.settings, verifier=verifier)


def get_sweeper(store: Store = Depends(get_store)) -> RetentionSweeper:
    return RetentionSweeper(store, store.settings)
