# flake8: noqa
"""Observable futures: await once or subscribe many times"""

from importlib import import_module
from typing import TYPE_CHECKING

from ._core import ObservableFuture, State
from ._hot import make_hot
from ._types import Init, Reject, Resolve, Unsubscribe

if TYPE_CHECKING:
    from ._logging import init_loguru
else:
    _exports = {
        '._logging': ['init_loguru'],
    }
    _submodule_by_name = {
        name: modname for modname, names in _exports.items() for name in names
    }

    def __getattr__(name: str):
        if mod := _submodule_by_name.get(name):
            mod = import_module(mod, __package__)
            globals()[name] = obj = getattr(mod, name)
            return obj
        raise AttributeError(f'No attribute {name}')

    def __dir__():
        return __all__


__all__ = [
    'Init',
    'ObservableFuture',
    'Reject',
    'Resolve',
    'State',
    'Unsubscribe',
    'init_loguru',
    'make_hot',
]
