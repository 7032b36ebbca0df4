"""Credential strategies and the immutable settings an ECS client is built from."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from alibabacloud_credentials.client import Client as CredentialClient
from alibabacloud_credentials.models import Config as CredentialConfig

from ..config import EcsClientConfig
from ..exceptions import ConfigError

logger = logging.getLogger(__name__)

ACCESS_KEY_SETTING = "ecs.access_key"
SECRET_KEY_SETTING = "ecs.secret_key"
SESSION_TOKEN_SETTING = "ecs.session_token"


@dataclass(frozen=True)
class DefaultChainCredentials:
    """Environment variables, then local credential files, then the instance RAM role."""

    def to_credential_client(self) -> CredentialClient:
        return CredentialClient()


@dataclass(frozen=True)
class StaticKeyCredentials:
    access_key_id: str
    access_key_secret: str = field(repr=False)

    def to_credential_client(self) -> CredentialClient:
        return CredentialClient(CredentialConfig(
            type="access_key",
            access_key_id=self.access_key_id,
            access_key_secret=self.access_key_secret,
        ))


@dataclass(frozen=True)
class SessionCredentials:
    access_key_id: str
    access_key_secret: str = field(repr=False)
    security_token: str = field(repr=False)

    def to_credential_client(self) -> CredentialClient:
        return CredentialClient(CredentialConfig(
            type="sts",
            access_key_id=self.access_key_id,
            access_key_secret=self.access_key_secret,
            security_token=self.security_token,
        ))


Credentials = DefaultChainCredentials | StaticKeyCredentials | SessionCredentials


def resolve_credentials(access_key: str, secret_key: str, session_token: str) -> Credentials:
    """Pick the credential strategy for the configured key, secret and session token.

    A session token is only valid together with both key and secret; it never
    falls back to the default chain on its own.
    """
    if not access_key and not secret_key:
        if session_token:
            raise ConfigError(
                f"Setting [{SESSION_TOKEN_SETTING}] is set but "
                f"[{ACCESS_KEY_SETTING}] and [{SECRET_KEY_SETTING}] are not"
            )
        logger.debug("Using either environment variables, credential files or instance RAM role credentials")
        return DefaultChainCredentials()

    if not access_key or not secret_key:
        missing = ACCESS_KEY_SETTING if not access_key else SECRET_KEY_SETTING
        present = SECRET_KEY_SETTING if not access_key else ACCESS_KEY_SETTING
        if session_token:
            raise ConfigError(f"Setting [{SESSION_TOKEN_SETTING}] is set but [{missing}] is not")
        raise ConfigError(f"Setting [{present}] is set but [{missing}] is not")

    if not session_token:
        logger.debug("Using basic key/secret credentials")
        return StaticKeyCredentials(access_key, secret_key)

    logger.debug("Using basic session credentials")
    return SessionCredentials(access_key, secret_key, session_token)


@dataclass(frozen=True)
class ClientSettings:
    """Everything needed to build one ECS client. Replaced, never mutated, on reload."""

    credentials: Credentials
    region: str
    endpoint: str = ""
    connect_timeout: float = 2.0
    read_timeout: float = 5.0


def client_settings_from_config(config: EcsClientConfig) -> ClientSettings:
    return ClientSettings(
        credentials=resolve_credentials(config.access_key, config.secret_key, config.session_token),
        region=config.region.lower(),
        endpoint=config.endpoint.lower(),
        connect_timeout=config.connect_timeout,
        read_timeout=config.read_timeout,
    )
