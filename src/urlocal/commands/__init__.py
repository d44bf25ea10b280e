"""Built-in CLI sub-commands for urlocal.

* :mod:`~urlocal.commands.get` -- fetch a URL through the cache.
* :mod:`~urlocal.commands.cache` -- inspect and administer the cache.
* :mod:`~urlocal.commands.config` -- view and modify global settings.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``cache`` and ``config``) or a plain callback
function registered directly on the root app (``get``).
"""
