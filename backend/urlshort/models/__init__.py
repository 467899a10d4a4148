from .url import Url
from .click import Click

__all__ = ["Url", "Click"]
