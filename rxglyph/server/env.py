'''Class for handling environment configuration and defaults.'''


import os

from rxglyph.lib.util import log_level


class EnvError(Exception):
    pass


class Env:
    '''Configuration of the REST service, read from the environment.'''

    ENVIRONMENTS = ('dev', 'prod')

    def __init__(self, environ=None):
        self.environ = os.environ if environ is None else environ

        self.env_name = self.default('RXGLYPH_ENV', 'dev').strip().lower()
        if self.env_name not in self.ENVIRONMENTS:
            raise EnvError(f'RXGLYPH_ENV must be one of {", ".join(self.ENVIRONMENTS)}, '
                           f'not {self.env_name!r}')
        self.host = self.default('HOST', '0.0.0.0')
        self.port = self.integer('PORT', 8000)
        self.log_level = self.custom('LOG_LEVEL', 'info', self._parse_log_level)

        self.allowed_origins = self.list('ALLOWED_ORIGINS')
        self.rest_api_key = self.default('REST_API_KEY', '').strip() or None
        self.require_api_key_in_prod = self.boolean('REST_REQUIRE_API_KEY_IN_PROD', True)
        self.rate_limit_per_min = self.integer('REST_RATE_LIMIT_PER_MIN', 600)
        self.rate_limit_burst = self.integer('REST_RATE_LIMIT_BURST',
                                             self.rate_limit_per_min)

        if self.is_prod:
            if not self.allowed_origins:
                raise EnvError('ALLOWED_ORIGINS must be set in production '
                               '(RXGLYPH_ENV=prod)')
            if self.require_api_key_in_prod and not self.rest_api_key:
                raise EnvError('REST_API_KEY must be set in production '
                               '(or set REST_REQUIRE_API_KEY_IN_PROD=0)')

    @property
    def is_prod(self):
        return self.env_name == 'prod'

    def default(self, envvar, default):
        return self.environ.get(envvar, default)

    def boolean(self, envvar, default):
        value = self.environ.get(envvar)
        if value is None:
            return default
        return value.strip().lower() not in ('', '0', 'false', 'no', 'off')

    def integer(self, envvar, default):
        value = self.environ.get(envvar)
        if value is None:
            return default
        try:
            return int(value)
        except Exception:
            raise EnvError(f'cannot convert envvar {envvar} value {value} to an integer')

    def custom(self, envvar, default, parse):
        value = self.environ.get(envvar)
        if value is None:
            return parse(default)
        try:
            return parse(value)
        except Exception as e:
            raise EnvError(f'cannot parse envvar {envvar} value {value}') from e

    def list(self, envvar, default=''):
        value = self.environ.get(envvar, default)
        return [item.strip() for item in value.split(',') if item.strip()]

    @classmethod
    def _parse_log_level(cls, name):
        return log_level(name)

    def summary(self):
        '''Startup configuration, safe to log.'''
        return {
            'env': self.env_name,
            'host': self.host,
            'port': self.port,
            'allowed_origins': self.allowed_origins,
            'api_key': 'set' if self.rest_api_key else 'unset',
            'rate_limit_per_min': self.rate_limit_per_min,
            'rate_limit_burst': self.rate_limit_burst,
        }
