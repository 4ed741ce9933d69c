'''
Process configuration loaded from environment variables.

Values come from the process environment, optionally seeded from a
.env file in the working directory via python-dotenv. Secrets are
excluded from repr so settings can be logged safely.
'''

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from dotenv import load_dotenv

from hedgesync.core.consolidation import DEFAULT_KEY_PREFIX
from hedgesync.infrastructure.metaapi_feed import DEFAULT_METAAPI_BASE
from hedgesync.infrastructure.symbol_catalog import DEFAULT_TTL_SECONDS

__all__ = ['Settings']

_REQUIRED = (
    'SF_LOGIN_URL',
    'SF_CLIENT_ID',
    'SF_CLIENT_SECRET',
    'SF_USERNAME',
    'SF_PASSWORD',
    'METATRADER_TOKEN',
)


@dataclass(frozen=True)
class Settings:

    '''
    Runtime configuration for an import process.

    Args:
        sf_login_url (str): Salesforce OAuth login host
        sf_client_id (str): Connected app consumer key
        sf_client_secret (str): Connected app consumer secret
        sf_username (str): Integration user name
        sf_password (str): Integration user password plus security token
        metatrader_token (str): MetaApi auth token
        sf_grant_type (str): OAuth grant type
        metatrader_base (str): MetaApi client API base URL
        hedge_key_prefix (str): Prefix of consolidated external keys
        symbol_cache_ttl (float): Symbol catalog TTL in seconds
        log_level (str): Minimum log level
    '''

    sf_login_url: str
    sf_client_id: str
    sf_client_secret: str = field(repr=False)
    sf_username: str
    sf_password: str = field(repr=False)
    metatrader_token: str = field(repr=False)
    sf_grant_type: str = 'password'
    metatrader_base: str = DEFAULT_METAAPI_BASE
    hedge_key_prefix: str = DEFAULT_KEY_PREFIX
    symbol_cache_ttl: float = DEFAULT_TTL_SECONDS
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:

        '''
        Build settings from the environment.

        When environ is None, a .env file is loaded into os.environ
        first without overriding variables already set.

        Args:
            environ (Mapping[str, str] | None): Variables to read, defaults to os.environ

        Returns:
            Settings: Validated settings

        Raises:
            ValueError: If a required variable is missing or a value is malformed
        '''

        if environ is None:
            load_dotenv()
            environ = os.environ

        missing = [name for name in _REQUIRED if not environ.get(name, '').strip()]
        if missing:
            msg = f"Missing required environment variables: {', '.join(missing)}"
            raise ValueError(msg)

        raw_ttl = environ.get('SYMBOL_CACHE_TTL', '').strip()
        try:
            ttl = float(raw_ttl) if raw_ttl else float(DEFAULT_TTL_SECONDS)
        except ValueError:
            msg = f"SYMBOL_CACHE_TTL must be a number, got '{raw_ttl}'"
            raise ValueError(msg) from None

        if ttl <= 0:
            msg = 'SYMBOL_CACHE_TTL must be positive'
            raise ValueError(msg)

        def _get(name: str, default: str) -> str:
            return environ.get(name, '').strip() or default

        return cls(
            sf_login_url=environ['SF_LOGIN_URL'].strip(),
            sf_client_id=environ['SF_CLIENT_ID'].strip(),
            sf_client_secret=environ['SF_CLIENT_SECRET'].strip(),
            sf_username=environ['SF_USERNAME'].strip(),
            sf_password=environ['SF_PASSWORD'].strip(),
            metatrader_token=environ['METATRADER_TOKEN'].strip(),
            sf_grant_type=_get('SF_GRANT_TYPE', 'password'),
            metatrader_base=_get('METATRADER_BASE', DEFAULT_METAAPI_BASE),
            hedge_key_prefix=_get('HEDGE_KEY_PREFIX', DEFAULT_KEY_PREFIX),
            symbol_cache_ttl=ttl,
            log_level=_get('LOG_LEVEL', 'INFO').upper(),
        )
