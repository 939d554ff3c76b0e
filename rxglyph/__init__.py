version = 'rxglyph 0.1.0'
version_short = version.split()[-1]


def _lazy_import(name):
    """Lazy import to avoid pulling in fastapi at module load time."""
    import importlib
    if name == 'create_app':
        mod = importlib.import_module('rxglyph.server.rest_api')
        return mod.create_app
    if name == 'Env':
        mod = importlib.import_module('rxglyph.server.env')
        return mod.Env
    raise AttributeError(f'module {__name__!r} has no attribute {name!r}')


def __getattr__(name):
    return _lazy_import(name)
